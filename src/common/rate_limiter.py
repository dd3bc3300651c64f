from __future__ import annotations

import threading
import time
from typing import Callable, Optional


class RateLimitError(RuntimeError):
    """Raised when a non-blocking acquire would exceed the rate limit."""


class MinIntervalRateLimiter:
    """
    A single-permit throttle: a token bucket of size 1 refilled every
    `min_interval` seconds, plus a mutex so only one call is in flight.

    - `acquire()` waits for the previous holder to `release()`, then waits
      until `min_interval` has passed since the previous acquisition.
    - If `blocking=False`, raises `RateLimitError` instead of waiting.
    - Usable as a context manager around the guarded call.

    Designed for a single process making calls to a shared-quota API.
    Not a distributed limiter.
    """

    def __init__(
        self,
        min_interval: float,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if min_interval < 0:
            raise ValueError("min_interval must be >= 0")
        self._min_interval = float(min_interval)
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._next_at: Optional[float] = None

    @property
    def min_interval(self) -> float:
        return self._min_interval

    def delay(self) -> float:
        """Seconds until the next permit is refilled (>= 0)."""
        if self._next_at is None:
            return 0.0
        return max(0.0, self._next_at - self._clock())

    def acquire(self, *, blocking: bool = True) -> None:
        """
        Acquire the permit.

        - If `blocking`, sleeps until allowed.
        - If not, raises RateLimitError if the permit is held or not refilled yet.
        """
        if not self._lock.acquire(blocking=blocking):
            raise RateLimitError("rate limit exceeded; a call is already in flight")
        try:
            delay = self.delay()
            if delay > 0.0:
                if not blocking:
                    raise RateLimitError("rate limit exceeded; no slot available")
                self._sleep(delay)
            self._next_at = self._clock() + self._min_interval
        except BaseException:
            self._lock.release()
            raise

    def release(self) -> None:
        self._lock.release()

    def __enter__(self) -> "MinIntervalRateLimiter":
        self.acquire(blocking=True)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()


__all__ = ["MinIntervalRateLimiter", "RateLimitError"]
