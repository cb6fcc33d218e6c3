"""
TaskDesk Rate Limiter — Fixed-window request ceilings per client.

Two counters share one interface:
- Redis-backed (INCR + expiry, shared across server processes)
- In-process windows (single process; also used when Redis is down)

Used at the edge (100 requests / 60 s per client IP by default) and by the
auth gate to cap identity-provider key-set fetches.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from taskdesk.engine.cache import RedisCache
from taskdesk.engine.errors import RateLimitError

logger = logging.getLogger("taskdesk.engine.rate_limit")


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of counting one request against a window."""
    allowed: bool
    count: int
    limit: int
    retry_after: int

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.count)


class FixedWindowCounter:
    """
    In-process fixed windows keyed by client.

    A window opens on the first hit for a key and lasts window_seconds;
    expired windows are pruned lazily.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._windows: Dict[str, Tuple[float, int]] = {}
        self._lock = threading.Lock()
        self._hits_since_prune = 0

    def hit(self, key: str, window_seconds: int) -> Tuple[int, float]:
        """Count a hit. Returns (count in current window, seconds until reset)."""
        now = self._clock()
        with self._lock:
            started, count = self._windows.get(key, (now, 0))
            if now - started >= window_seconds:
                started, count = now, 0
            count += 1
            self._windows[key] = (started, count)

            self._hits_since_prune += 1
            if self._hits_since_prune >= 1000:
                self._prune(now, window_seconds)
        return count, max(0.0, window_seconds - (now - started))

    def _prune(self, now: float, window_seconds: int) -> None:
        expired = [k for k, (started, _) in self._windows.items() if now - started >= window_seconds]
        for k in expired:
            del self._windows[k]
        self._hits_since_prune = 0

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()


class RateLimiter:
    """
    Fixed-window rate limiter.

    Uses Redis when a cache is given and its breaker lets the call through,
    otherwise the in-process counter. Redis is picked up again as soon as
    the breaker closes.
    """

    def __init__(
        self,
        max_requests: int = 100,
        window_seconds: int = 60,
        cache: Optional[RedisCache] = None,
        clock: Callable[[], float] = time.monotonic,
        name: str = "api",
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.name = name
        self._cache = cache
        self._local = FixedWindowCounter(clock=clock)

    def hit(self, client_id: str) -> RateLimitDecision:
        """Count one request for client_id and decide."""
        count = -1
        retry_after = float(self.window_seconds)

        if self._cache is not None:
            # the cache's breaker decides whether Redis is tried
            count = self._cache.incr(f"{self.name}:{client_id}", ttl=self.window_seconds)
            if count < 0:
                logger.debug("Redis rate limit counter unavailable, using in-process window")

        if count < 0:
            count, retry_after = self._local.hit(f"{self.name}:{client_id}", self.window_seconds)

        return RateLimitDecision(
            allowed=count <= self.max_requests,
            count=count,
            limit=self.max_requests,
            retry_after=max(1, math.ceil(retry_after)),
        )

    def check(self, client_id: str) -> bool:
        """
        Check if request is within rate limit.

        Returns:
            True if allowed, False if rate limit exceeded.
        """
        return self.hit(client_id).allowed

    def enforce(self, client_id: str) -> RateLimitDecision:
        """Count a request; raise RateLimitError if it exceeds the ceiling."""
        decision = self.hit(client_id)
        if not decision.allowed:
            raise RateLimitError(
                retry_after=decision.retry_after,
                client_id=client_id,
                limiter=self.name,
            )
        return decision

    def reset(self) -> None:
        """Clear in-process windows."""
        self._local.reset()
