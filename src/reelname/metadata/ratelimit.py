"""Token-bucket rate limiting for metadata providers."""

from __future__ import annotations

import threading
import time
from typing import Callable


class RateLimiter:
    """Thread-safe token bucket allowing ``rate`` calls per second.

    The bucket starts full so the first ``burst`` calls pass immediately;
    afterwards ``wait`` blocks until a token has been refilled.
    """

    def __init__(
        self,
        rate: float,
        *,
        burst: int | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if rate <= 0:
            raise ValueError("rate must be positive")
        self._rate = float(rate)
        self._capacity = float(burst if burst is not None else max(1, int(rate)))
        self._tokens = self._capacity
        self._clock = clock
        self._sleep = sleep
        self._updated = clock()
        self._lock = threading.Lock()

    @property
    def rate(self) -> float:
        return self._rate

    def wait(self) -> None:
        """Block until a request may be issued."""
        while True:
            with self._lock:
                now = self._clock()
                elapsed = max(0.0, now - self._updated)
                self._tokens = min(self._capacity, self._tokens + elapsed * self._rate)
                self._updated = now
                if self._tokens >= 1:
                    self._tokens -= 1
                    return
                delay = (1 - self._tokens) / self._rate
            self._sleep(delay)


__all__ = ["RateLimiter"]
