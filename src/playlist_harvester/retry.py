"""Retry policies and the rate-limit waiter."""

from __future__ import annotations

import logging
import math
from collections.abc import Callable
from dataclasses import dataclass

from .cancellation import CancellationToken
from .errors import RateLimitedNoRetryInfo

RATE_LIMIT_BUFFER_SECONDS = 1

SleepFn = Callable[[float, CancellationToken], None]
StatusFn = Callable[[str], None]


def cancellable_sleep(seconds: float, token: CancellationToken) -> None:
    """Default sleep: returns early with UserCancelled when the token fires."""
    token.sleep(seconds)


@dataclass(frozen=True)
class RetryPolicy:
    """How many times to retry and how long to pause between attempts.

    ``max_attempts`` counts retries after the first try; ``None`` retries
    until the operation is cancelled.
    """

    max_attempts: int | None = None
    base_delay: float = 0.0
    multiplier: float = 2.0
    max_delay: float = 60.0

    def allows(self, attempt: int) -> bool:
        """Return True if retry number ``attempt`` (1-based) may run."""
        return self.max_attempts is None or attempt <= self.max_attempts

    def delay_for(self, attempt: int) -> float:
        if self.base_delay <= 0:
            return 0.0
        delay = self.base_delay * self.multiplier ** max(attempt - 1, 0)
        return min(delay, self.max_delay)


UNBOUNDED = RetryPolicy()


def parse_retry_after(value: str | int | float | None) -> int | None:
    """Parse a Retry-After header given in seconds."""
    if value is None:
        return None
    try:
        seconds = int(float(str(value).strip()))
    except ValueError:
        return None
    return max(seconds, 0)


class RateLimitWaiter:
    """Waits out a 429 while surfacing a once-per-second countdown."""

    def __init__(
        self,
        *,
        status_fn: StatusFn,
        logger: logging.Logger,
        sleep_fn: SleepFn = cancellable_sleep,
        tick: float = 1.0,
    ) -> None:
        self._status_fn = status_fn
        self._logger = logger
        self._sleep_fn = sleep_fn
        self._tick = tick

    def delay_for(self, retry_after: str | int | float | None) -> int:
        seconds = parse_retry_after(retry_after)
        if seconds is None:
            raise RateLimitedNoRetryInfo()
        return seconds + RATE_LIMIT_BUFFER_SECONDS

    def wait(
        self,
        retry_after: str | int | float | None,
        operation: str,
        token: CancellationToken,
    ) -> float:
        """Suspend for retry_after + 1 seconds; return the delay waited."""
        delay = self.delay_for(retry_after)
        self._logger.info("Rate limited during %s; waiting %d seconds", operation, delay)
        self._status_fn(f"Rate limited. Waiting {delay} seconds...")
        remaining = float(delay)
        while remaining > 0:
            step = min(self._tick, remaining)
            self._sleep_fn(step, token)
            remaining -= step
            if remaining > 0:
                seconds = math.ceil(remaining)
                self._status_fn(f"Rate limited. Retrying {operation} in {seconds} seconds...")
        self._status_fn(f"Retrying {operation}...")
        return float(delay)
