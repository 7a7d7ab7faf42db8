"""
Rate limiters consulted between batch chunks.
"""

from __future__ import annotations

import threading
import time
from typing import Callable, Literal, Protocol


class RateLimiter(Protocol):
    def acquire(self) -> None:
        """Block until the next unit of work may start."""


class FixedDelayRateLimiter:
    """Sleep a fixed delay on every acquire."""

    def __init__(
        self,
        delay: float = 1.0,
        *,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if delay < 0:
            raise ValueError("delay must be >= 0")
        self.delay = delay
        self._sleep = sleep

    def acquire(self) -> None:
        if self.delay > 0:
            self._sleep(self.delay)


class TokenBucketRateLimiter:
    """
    Token bucket allowing bursts of up to *capacity* acquisitions, refilled
    at *rate* tokens per second.
    """

    def __init__(
        self,
        rate: float,
        capacity: int = 1,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if rate <= 0:
            raise ValueError("rate must be > 0")
        if capacity <= 0:
            raise ValueError("capacity must be > 0")
        self.rate = rate
        self.capacity = capacity
        self._clock = clock
        self._sleep = sleep
        self._tokens = float(capacity)
        self._updated = clock()
        self._lock = threading.Lock()

    def _refill(self) -> None:
        now = self._clock()
        elapsed = max(0.0, now - self._updated)
        self._tokens = min(float(self.capacity), self._tokens + elapsed * self.rate)
        self._updated = now

    def acquire(self) -> None:
        with self._lock:
            self._refill()
            if self._tokens < 1.0:
                wait = (1.0 - self._tokens) / self.rate
                self._sleep(wait)
                self._refill()
                # The injected clock may not advance with the injected sleep.
                self._tokens = max(self._tokens, 1.0)
            self._tokens -= 1.0


RateLimiterKind = Literal["fixed", "token-bucket"]


def build_rate_limiter(kind: RateLimiterKind, delay: float) -> RateLimiter:
    """
    Limiter pacing batch chunks *delay* seconds apart.

    ``fixed`` always waits the full delay after a chunk. ``token-bucket``
    refills one token per *delay* seconds, so time a chunk spent running
    counts toward the wait.
    """
    if kind == "fixed" or delay == 0:
        return FixedDelayRateLimiter(delay)
    if kind == "token-bucket":
        return TokenBucketRateLimiter(rate=1.0 / delay, capacity=1)
    raise ValueError(f"Unknown rate limiter: {kind}")
