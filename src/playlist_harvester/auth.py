"""Client-credentials token provider with single-flight refresh."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from typing import TypeVar

from .api import SpotifyApi
from .cancellation import CancellationToken
from .errors import AuthError, AuthExpired, HarvesterError, MissingCredentials
from .models import AccessToken, Credential
from .retry import RetryPolicy

T = TypeVar("T")


class TokenProvider:
    """Owns the one live access token and the credential it came from.

    Exchanges are serialized by a lock, so callers that need a fresh token
    while another caller is refreshing wait for that refresh and reuse its
    result instead of starting a second exchange.
    """

    def __init__(self, *, api: SpotifyApi, logger: logging.Logger) -> None:
        self._api = api
        self._logger = logger
        self._lock = threading.Lock()
        self._token: AccessToken | None = None
        self._credential: Credential | None = None
        self.exchange_count = 0

    @property
    def current(self) -> AccessToken | None:
        return self._token

    def acquire(self, credential: Credential, cancel: CancellationToken) -> AccessToken:
        """Return the live token, exchanging the credential when there is none."""
        if not credential.is_complete:
            raise MissingCredentials()
        with self._lock:
            if self._credential != credential:
                self._token = None
                self._credential = credential
            if self._token is not None:
                return self._token
            return self._exchange(credential, cancel)

    def ensure(self, cancel: CancellationToken) -> AccessToken:
        token = self._token
        if token is not None:
            return token
        return self.refresh(None, cancel)

    def invalidate(self, stale: AccessToken | None) -> None:
        """Drop the token if it is still the one that was rejected."""
        with self._lock:
            if stale is None or self._token == stale:
                self._token = None

    def refresh(self, stale: AccessToken | None, cancel: CancellationToken) -> AccessToken:
        """Replace a rejected token; reuse a replacement another caller already made."""
        with self._lock:
            if self._token is not None and self._token != stale:
                return self._token
            if stale is not None:
                self._logger.info(
                    "Access token rejected after %.0fs; requesting a new one",
                    time.time() - stale.acquired_at,
                )
            self._token = None
            if self._credential is None:
                raise AuthExpired()
            return self._exchange(self._credential, cancel)

    def _exchange(self, credential: Credential, cancel: CancellationToken) -> AccessToken:
        self.exchange_count += 1
        self._logger.debug("Requesting access token for client %s", credential.client_id)
        token = self._api.request_token(credential, cancel)
        self._token = AccessToken(value=token.value, acquired_at=time.time())
        return self._token


def call_with_reauth(
    tokens: TokenProvider,
    fn: Callable[[AccessToken], T],
    *,
    policy: RetryPolicy,
    cancel: CancellationToken,
    logger: logging.Logger,
) -> T:
    """Run ``fn`` with a bearer token, re-acquiring it after a 401.

    Only the single call is repeated; the caller's loop is not restarted.
    """
    access = _renew(tokens.ensure, cancel)
    attempt = 0
    while True:
        try:
            return fn(access)
        except AuthExpired:
            tokens.invalidate(access)
            attempt += 1
            if not policy.allows(attempt):
                raise
            logger.info("Access token rejected; refreshing (attempt %d)", attempt)
            stale = access
            access = _renew(lambda current: tokens.refresh(stale, current), cancel)


def _renew(
    acquire: Callable[[CancellationToken], AccessToken], cancel: CancellationToken
) -> AccessToken:
    """Obtain a token; a failed exchange surfaces as expired authentication."""
    try:
        return acquire(cancel)
    except AuthError:
        raise
    except HarvesterError as exc:
        raise AuthExpired(
            f"Authentication expired and could not be renewed: {exc.message}"
        ) from exc
