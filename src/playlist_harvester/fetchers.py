"""Playlist detail fetcher backed by the session cache."""

from __future__ import annotations

import logging
from typing import Any

from .api import SpotifyApi
from .auth import TokenProvider, call_with_reauth
from .cancellation import CancellationScope
from .errors import (
    AccessDenied,
    ApiError,
    AuthError,
    NotFound,
    ServerUnavailable,
    TransportError,
)
from .extraction import description_to_text, extract_description_emails
from .models import DetailCache, DetailRecord, ProgressListener
from .retry import RetryPolicy


def build_record(payload: dict[str, Any], playlist_id: str = "") -> DetailRecord:
    """Normalize a playlist payload and extract emails from its description."""
    description = str(payload.get("description") or "")
    owner = payload.get("owner") or {}
    followers = payload.get("followers") or {}
    images = payload.get("images") or []
    urls = payload.get("external_urls") or {}
    return DetailRecord(
        id=str(payload.get("id") or playlist_id),
        name=str(payload.get("name") or ""),
        owner=str(owner.get("display_name") or owner.get("id") or ""),
        description=description,
        emails=tuple(extract_description_emails(description)),
        followers=int(followers.get("total") or 0),
        url=str(urls.get("spotify") or ""),
        image=images[0].get("url") if images and isinstance(images[0], dict) else None,
        description_text=description_to_text(description),
    )


class DetailFetcher:
    """Resolves playlist ids to detail records, fetching each id at most once.

    A failure on one playlist never raises: the record is simply absent.
    Only ``UserCancelled`` propagates, so callers can stop cleanly.
    """

    def __init__(
        self,
        *,
        api: SpotifyApi,
        tokens: TokenProvider,
        cache: DetailCache,
        scope: CancellationScope,
        listener: ProgressListener,
        logger: logging.Logger,
        auth_policy: RetryPolicy,
    ) -> None:
        self._api = api
        self._tokens = tokens
        self._cache = cache
        self._scope = scope
        self._listener = listener
        self._logger = logger
        self._auth_policy = auth_policy

    @property
    def cache(self) -> DetailCache:
        return self._cache

    def get_detail(self, playlist_id: str) -> DetailRecord | None:
        cached = self._cache.get(playlist_id)
        if cached is not None:
            return cached

        cancel = self._scope.token_or_new()
        try:
            payload = call_with_reauth(
                self._tokens,
                lambda access: self._api.get_playlist(access, playlist_id, cancel=cancel),
                policy=self._auth_policy,
                cancel=cancel,
                logger=self._logger,
            )
        except AuthError as exc:
            self._logger.warning("Token refresh failed for playlist %s: %s", playlist_id, exc)
            self._listener.on_error(exc.message)
            return None
        except (AccessDenied, NotFound) as exc:
            self._logger.debug(exc.message)
            return None
        except ServerUnavailable as exc:
            self._logger.info(exc.message)
            return None
        except (ApiError, TransportError) as exc:
            self._logger.info("Skipping playlist %s: %s", playlist_id, exc.message)
            return None

        return self._cache.put(build_record(payload, playlist_id))
