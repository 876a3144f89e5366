"""Cooperative cancellation for the running operation."""

from __future__ import annotations

import socket
import threading
import time
from collections.abc import Callable
from concurrent.futures import Executor, Future, ThreadPoolExecutor, wait
from typing import TypeVar

from requests.exceptions import ConnectionError as RequestsConnectionError
from requests.exceptions import RequestException, Timeout

from .errors import (
    DnsFailure,
    HarvesterError,
    NetworkFailure,
    RequestTimeout,
    UserCancelled,
)

T = TypeVar("T")

POLL_INTERVAL = 0.05
DNS_MARKERS = (
    "NameResolutionError",
    "Failed to resolve",
    "getaddrinfo",
    "Name or service not known",
)


class CancellationToken:
    """Per-operation cancellation flag consulted at every suspension point.

    Blocking calls run on ``executor``; without one, each call gets a
    short-lived single-thread pool.
    """

    def __init__(self, executor: Executor | None = None) -> None:
        self._event = threading.Event()
        self._executor = executor

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise UserCancelled()

    def sleep(self, seconds: float) -> None:
        """Sleep for ``seconds`` unless cancelled first."""
        if self._event.wait(max(seconds, 0.0)):
            raise UserCancelled()

    def call(self, fn: Callable[..., T], *args: object, timeout: float, **kwargs: object) -> T:
        """Run a blocking call, racing it against cancellation and a timeout.

        The call runs on a worker thread; an abandoned call keeps running in
        the background but its result is discarded.
        """
        self.raise_if_cancelled()
        executor = self._executor
        if executor is None:
            executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="harvester-call")
        try:
            return self._await(executor.submit(fn, *args, **kwargs), timeout)
        finally:
            if executor is not self._executor:
                executor.shutdown(wait=False)

    def _await(self, future: Future[T], timeout: float) -> T:
        deadline = time.monotonic() + timeout
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                future.cancel()
                raise RequestTimeout()
            done, _ = wait([future], timeout=min(POLL_INTERVAL, remaining))
            if done:
                try:
                    return future.result()
                except RequestException as exc:
                    raise classify_error(exc, self) from exc
            if self._event.is_set():
                future.cancel()
                raise UserCancelled()


class CancellationScope:
    """Holds the single active token; a new operation supersedes the old one."""

    def __init__(self, executor: Executor | None = None) -> None:
        self._executor = executor
        self._lock = threading.Lock()
        self._current: CancellationToken | None = None

    @property
    def current(self) -> CancellationToken | None:
        return self._current

    def begin(self) -> CancellationToken:
        token = CancellationToken(self._executor)
        with self._lock:
            self._current = token
        return token

    def cancel(self) -> bool:
        """Signal the active token. Return False when nothing is running."""
        with self._lock:
            token = self._current
        if token is None:
            return False
        token.cancel()
        return True

    def end(self, token: CancellationToken) -> None:
        with self._lock:
            if self._current is token:
                self._current = None

    def token_or_new(self) -> CancellationToken:
        """Active token, or a detached one for calls made outside an operation."""
        return self._current or CancellationToken(self._executor)


def classify_error(
    exc: BaseException, token: CancellationToken | None = None
) -> HarvesterError | UserCancelled:
    """Map a transport exception onto the error taxonomy."""
    if isinstance(exc, (HarvesterError, UserCancelled)):
        return exc
    if token is not None and token.cancelled:
        return UserCancelled()
    if isinstance(exc, (Timeout, TimeoutError)):
        return RequestTimeout()
    text = f"{type(exc).__name__}: {exc}"
    if any(marker in text for marker in DNS_MARKERS) or isinstance(exc, socket.gaierror):
        return DnsFailure()
    if isinstance(exc, (RequestsConnectionError, ConnectionError)):
        return NetworkFailure()
    if isinstance(exc, RequestException):
        return NetworkFailure(f"Request failed: {exc}")
    return HarvesterError(f"Unexpected error: {exc}")
