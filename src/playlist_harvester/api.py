"""Spotify Web API client: token exchange, playlist search and playlist detail."""

from __future__ import annotations

import logging
from functools import partial
from typing import Any

from requests import Response, Session
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .cancellation import CancellationToken
from .errors import (
    AccessDenied,
    AuthError,
    AuthExpired,
    InvalidCredentials,
    InvalidQuery,
    NotFound,
    RateLimited,
    ServerUnavailable,
    UnexpectedResponse,
)
from .models import AccessToken, Credential, PlaylistSummary, SearchPage
from .retry import UNBOUNDED, RateLimitWaiter, RetryPolicy

SERVER_ERROR_STATUSES = frozenset({500, 502, 503})


def make_api_session(user_agent: str) -> Session:
    """Create requests session that retries connection failures only.

    HTTP statuses are left to the callers' own retry policies.
    """
    session = Session()
    session.headers.update({"User-Agent": user_agent})
    retry = Retry(
        total=2,
        connect=2,
        read=0,
        status=0,
        backoff_factor=0.6,
        allowed_methods=frozenset({"GET", "POST"}),
        raise_on_status=False,
    )
    adapter = HTTPAdapter(max_retries=retry)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    return session


def _json_or_empty(response: Response) -> dict[str, Any]:
    try:
        payload = response.json()
    except ValueError:
        return {}
    return payload if isinstance(payload, dict) else {}


def _status_text(response: Response) -> str:
    return f"{response.status_code} {response.reason or ''}".strip()


def parse_search_page(payload: dict[str, Any]) -> SearchPage:
    playlists = payload.get("playlists") or {}
    items: list[PlaylistSummary | None] = []
    for item in playlists.get("items") or []:
        if isinstance(item, dict) and item.get("id"):
            items.append(PlaylistSummary(id=str(item["id"]), raw=item))
        else:
            items.append(None)
    return SearchPage(total=int(playlists.get("total") or 0), items=items)


class SpotifyApi:
    """Thin wrapper over the three endpoints the harvester consumes."""

    def __init__(
        self,
        *,
        session: Session,
        waiter: RateLimitWaiter,
        token_url: str,
        api_base_url: str,
        timeout: float,
        logger: logging.Logger,
        rate_limit_policy: RetryPolicy = UNBOUNDED,
    ) -> None:
        self._session = session
        self._waiter = waiter
        self._token_url = token_url
        self._api_base_url = api_base_url.rstrip("/")
        self._timeout = timeout
        self._logger = logger
        self._rate_limit_policy = rate_limit_policy

    def _send(
        self, method: str, url: str, *, operation: str, cancel: CancellationToken, **kwargs: Any
    ) -> Response:
        """Issue one request, waiting out 429s and reissuing it unchanged."""
        attempt = 0
        while True:
            send = partial(self._session.request, method, url, timeout=self._timeout, **kwargs)
            response: Response = cancel.call(send, timeout=self._timeout)
            if response.status_code != 429:
                return response
            attempt += 1
            if not self._rate_limit_policy.allows(attempt):
                raise RateLimited(status=429)
            self._waiter.wait(response.headers.get("Retry-After"), operation, cancel)

    def request_token(self, credential: Credential, cancel: CancellationToken) -> AccessToken:
        """Exchange client credentials for a bearer token."""
        response = self._send(
            "POST",
            self._token_url,
            operation="authentication",
            cancel=cancel,
            data={"grant_type": "client_credentials"},
            auth=(credential.client_id, credential.client_secret),
        )
        if response.status_code == 200:
            value = _json_or_empty(response).get("access_token")
            if not value:
                raise AuthError("Authentication failed: no access token in response.")
            return AccessToken(value=str(value))

        if response.status_code == 400:
            payload = _json_or_empty(response)
            error = payload.get("error")
            if error == "invalid_client":
                raise InvalidCredentials()
            if error == "invalid_grant":
                raise AuthError("Invalid grant type. This shouldn't happen - please restart.")
            detail = payload.get("error_description") or error or "Bad request"
            raise AuthError(f"Authentication failed: {detail}")
        if response.status_code in SERVER_ERROR_STATUSES:
            raise ServerUnavailable(status=response.status_code)
        raise AuthError(f"Authentication failed: {_status_text(response)}")

    def search_playlists(
        self,
        access_token: AccessToken,
        query: str,
        *,
        limit: int,
        offset: int,
        cancel: CancellationToken,
    ) -> SearchPage:
        response = self._send(
            "GET",
            f"{self._api_base_url}/search",
            operation="search",
            cancel=cancel,
            params={"q": query, "type": "playlist", "limit": limit, "offset": offset},
            headers={"Authorization": f"Bearer {access_token.value}"},
        )
        status = response.status_code
        if status == 200:
            return parse_search_page(_json_or_empty(response))
        if status == 401:
            raise AuthExpired()
        if status == 403:
            raise AccessDenied(status=status)
        if status == 400:
            raise InvalidQuery(status=status)
        if status in SERVER_ERROR_STATUSES:
            raise ServerUnavailable(status=status)
        raise UnexpectedResponse(f"Search failed: {_status_text(response)}", status=status)

    def get_playlist(
        self, access_token: AccessToken, playlist_id: str, *, cancel: CancellationToken
    ) -> dict[str, Any]:
        response = self._send(
            "GET",
            f"{self._api_base_url}/playlists/{playlist_id}",
            operation=f"playlist {playlist_id}",
            cancel=cancel,
            headers={"Authorization": f"Bearer {access_token.value}"},
        )
        status = response.status_code
        if status == 200:
            return _json_or_empty(response)
        if status == 401:
            raise AuthExpired()
        if status == 403:
            raise AccessDenied(f"Access denied for playlist {playlist_id}", status=status)
        if status == 404:
            raise NotFound(f"Playlist {playlist_id} not found", status=status)
        if status in SERVER_ERROR_STATUSES:
            raise ServerUnavailable(
                f"Server error for playlist {playlist_id}: {status}", status=status
            )
        raise UnexpectedResponse(f"Error fetching playlist {playlist_id}: {status}", status=status)
