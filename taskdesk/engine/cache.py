"""
TaskDesk Redis Cache Layer — Shared counters for the edge rate limiter.

Redis is optional: when it is not configured or unreachable the rate limiter
falls back to in-process windows. Failures trip a circuit breaker so a sick
Redis does not add latency to every request.
"""

from __future__ import annotations

import logging
import time
from typing import Optional

import redis

logger = logging.getLogger("taskdesk.engine.cache")


class RedisCache:
    """
    Redis wrapper with typed operations and circuit breaker.

    Every operation returns a neutral value (-1) on failure instead of raising;
    callers decide how to degrade. A failed connect opens the breaker, so the
    connection is retried once the failure window has passed.
    """

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379/0",
        prefix: str = "taskdesk:",
        default_ttl: int = 60,
    ):
        self._redis_url = redis_url
        self._prefix = prefix
        self._default_ttl = default_ttl
        self._client: Optional[redis.Redis] = None
        self._available = False

        # Circuit breaker state
        self._failure_count = 0
        self._failure_threshold = 5
        self._failure_window = 30  # seconds
        self._first_failure_time = 0.0
        self._circuit_open = False

    def connect(self) -> bool:
        """Initialize Redis connection."""
        try:
            self._client = redis.Redis.from_url(
                self._redis_url,
                decode_responses=True,
                socket_timeout=5,
                socket_connect_timeout=5,
                retry_on_timeout=True,
            )
            self._client.ping()
            self._available = True
            self._circuit_open = False
            self._failure_count = 0
            logger.info(f"Redis connected ({self._prefix})")
            return True
        except redis.RedisError as e:
            logger.warning(f"Redis connection failed ({self._prefix}): {e}")
            self._available = False
            # retry after the failure window via _check_circuit
            self._circuit_open = True
            self._first_failure_time = time.time()
            return False

    def _check_circuit(self) -> bool:
        """Check circuit breaker state."""
        if self._circuit_open:
            # Try to recover after window
            if time.time() - self._first_failure_time > self._failure_window:
                self._circuit_open = False
                self._failure_count = 0
                return self.connect()
            return False
        return self._available

    def _record_failure(self) -> None:
        """Record a Redis failure for circuit breaker."""
        now = time.time()
        if self._failure_count == 0:
            self._first_failure_time = now

        self._failure_count += 1

        if self._failure_count >= self._failure_threshold:
            elapsed = now - self._first_failure_time
            if elapsed <= self._failure_window:
                self._circuit_open = True
                logger.error(
                    f"Redis circuit breaker OPEN: {self._failure_count} failures in {elapsed:.1f}s"
                )

    def _make_key(self, key: str) -> str:
        """Build prefixed key."""
        return f"{self._prefix}{key}"

    # ── Counter Operations (for rate limiting) ──

    def incr(self, key: str, ttl: Optional[int] = None) -> int:
        """
        Increment a counter. Returns new value or -1 on failure.

        The TTL is set only when the key is created, so the window is fixed
        from the first request rather than sliding with every hit.
        """
        if not self._check_circuit():
            return -1
        try:
            full_key = self._make_key(key)
            pipe = self._client.pipeline()
            pipe.set(full_key, 0, ex=ttl or self._default_ttl, nx=True)
            pipe.incr(full_key)
            results = pipe.execute()
            return int(results[1])
        except redis.RedisError:
            self._record_failure()
            return -1

    # ── Health & Management ──

    def close(self) -> None:
        """Close the Redis connection and release resources."""
        if self._client is not None:
            try:
                self._client.close()
            except redis.RedisError as e:
                logger.debug(f"Redis close failed: {e}")
            self._client = None
        self._available = False
        self._circuit_open = False
        self._failure_count = 0

    @property
    def is_available(self) -> bool:
        return self._available and not self._circuit_open

    @property
    def is_circuit_open(self) -> bool:
        return self._circuit_open


def create_rate_limit_cache(redis_url: str, window_seconds: int = 60) -> RedisCache:
    """Create and connect the rate limiting counter cache."""
    cache = RedisCache(redis_url=redis_url, prefix="taskdesk:rate:", default_ttl=window_seconds)
    cache.connect()
    return cache
