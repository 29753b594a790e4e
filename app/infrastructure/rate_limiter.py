"""Sliding-window rate limiting for internal trigger endpoints.

The limiter is injected into routes through a dependency, so a shared-store
implementation of ``RateLimiter`` can replace the in-process one when several
instances run behind a load balancer.
"""

import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Dict, Protocol


@dataclass
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    retry_after: float  # seconds until the oldest hit leaves the window


class RateLimiter(Protocol):
    def hit(self, key: str) -> RateLimitDecision:
        """Record a request for ``key`` and decide whether it may proceed."""
        ...


class SlidingWindowRateLimiter:
    """In-process sliding window: at most ``max_requests`` per ``window_seconds`` per key.

    Keys with no hit left inside the window are dropped, so the table only
    holds callers seen during the last window.
    """

    def __init__(self, max_requests: int, window_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._hits: Dict[str, Deque[float]] = {}
        self._lock = threading.Lock()

    def hit(self, key: str) -> RateLimitDecision:
        now = self._clock()
        window_start = now - self.window_seconds

        with self._lock:
            self._evict_idle(window_start)
            hits = self._hits.setdefault(key, deque())
            while hits and hits[0] <= window_start:
                hits.popleft()

            if len(hits) >= self.max_requests:
                return RateLimitDecision(
                    allowed=False,
                    limit=self.max_requests,
                    remaining=0,
                    retry_after=max(0.0, hits[0] + self.window_seconds - now),
                )

            hits.append(now)
            return RateLimitDecision(
                allowed=True,
                limit=self.max_requests,
                remaining=self.max_requests - len(hits),
                retry_after=0.0,
            )

    def _evict_idle(self, window_start: float) -> None:
        idle = [key for key, hits in self._hits.items() if not hits or hits[-1] <= window_start]
        for key in idle:
            del self._hits[key]
