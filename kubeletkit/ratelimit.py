"""Per-item rate limiters that decide how long an item waits before it is retried.

All delays are expressed in seconds as floats.
"""

from __future__ import annotations

import threading
import time
from abc import ABC, abstractmethod
from typing import Hashable


class RateLimiter(ABC):
    """Decides how long an item must wait before it is processed again."""

    @abstractmethod
    def when(self, item: Hashable) -> float:
        """Record a new attempt for *item* and return its delay in seconds."""

    @abstractmethod
    def forget(self, item: Hashable) -> None:
        """Stop tracking *item*; its next attempt starts from scratch."""

    @abstractmethod
    def num_requeues(self, item: Hashable) -> int:
        """Return how many times *item* has been requeued."""


class ItemExponentialFailureRateLimiter(RateLimiter):
    """Delay of ``base_delay * 2**failures`` per item, capped at ``max_delay``."""

    def __init__(self, base_delay: float, max_delay: float) -> None:
        self.base_delay = base_delay
        self.max_delay = max_delay
        self._failures: dict[Hashable, int] = {}
        self._lock = threading.Lock()

    def when(self, item: Hashable) -> float:
        with self._lock:
            exponent = self._failures.get(item, 0)
            self._failures[item] = exponent + 1
        try:
            backoff = self.base_delay * 2.0**exponent
        except OverflowError:
            return self.max_delay
        return min(backoff, self.max_delay)

    def forget(self, item: Hashable) -> None:
        with self._lock:
            self._failures.pop(item, None)

    def num_requeues(self, item: Hashable) -> int:
        with self._lock:
            return self._failures.get(item, 0)


class ItemFastSlowRateLimiter(RateLimiter):
    """A short delay for the first attempts of an item, a long one afterwards."""

    def __init__(self, fast_delay: float, slow_delay: float, max_fast_attempts: int) -> None:
        self.fast_delay = fast_delay
        self.slow_delay = slow_delay
        self.max_fast_attempts = max_fast_attempts
        self._attempts: dict[Hashable, int] = {}
        self._lock = threading.Lock()

    def when(self, item: Hashable) -> float:
        with self._lock:
            attempts = self._attempts.get(item, 0) + 1
            self._attempts[item] = attempts
        if attempts <= self.max_fast_attempts:
            return self.fast_delay
        return self.slow_delay

    def forget(self, item: Hashable) -> None:
        with self._lock:
            self._attempts.pop(item, None)

    def num_requeues(self, item: Hashable) -> int:
        with self._lock:
            return self._attempts.get(item, 0)


class BucketRateLimiter(RateLimiter):
    """An overall token bucket shared by all items.

    The bucket holds at most *burst* tokens and refills at *rate* tokens per
    second; an attempt without a token waits until one becomes available.
    """

    def __init__(self, rate: float, burst: int) -> None:
        if rate <= 0:
            raise ValueError(f"rate must be positive, got {rate}")
        if burst < 1:
            raise ValueError(f"burst must be at least 1, got {burst}")
        self.rate = float(rate)
        self.burst = burst
        self._tokens = float(burst)
        self._last = time.monotonic()
        self._lock = threading.Lock()

    def when(self, item: Hashable) -> float:
        with self._lock:
            now = time.monotonic()
            elapsed = max(0.0, now - self._last)
            self._tokens = min(float(self.burst), self._tokens + elapsed * self.rate)
            self._last = now
            self._tokens -= 1.0
            if self._tokens >= 0:
                return 0.0
            return -self._tokens / self.rate

    def forget(self, item: Hashable) -> None:
        pass

    def num_requeues(self, item: Hashable) -> int:
        return 0


class MaxOfRateLimiter(RateLimiter):
    """Combines limiters, using the longest delay any of them asks for."""

    def __init__(self, *args: RateLimiter) -> None:
        self.limiters = tuple(args)

    def when(self, item: Hashable) -> float:
        return max((limiter.when(item) for limiter in self.limiters), default=0.0)

    def forget(self, item: Hashable) -> None:
        for limiter in self.limiters:
            limiter.forget(item)

    def num_requeues(self, item: Hashable) -> int:
        return max((limiter.num_requeues(item) for limiter in self.limiters), default=0)


def default_item_based_rate_limiter() -> RateLimiter:
    """Per-item exponential backoff from one millisecond up to 1000 seconds."""
    return ItemExponentialFailureRateLimiter(0.001, 1000.0)