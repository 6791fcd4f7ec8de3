"""
Duplicate suppression: a short-lived, content-addressed lock per message digest.

Contract for every backend: within one TTL window at most one caller observes
`check_and_lock(key) is False` (wins the lock) for a given key. Entries are never
deleted explicitly; they expire after the TTL so the same message may be
resubmitted afterwards.
"""

from __future__ import annotations

import threading
import time
from typing import Any, Callable, Protocol

from backend_feerelay.relay_logging import get_logger

logger = get_logger(__name__)


class DuplicateCache(Protocol):
    def check_and_lock(self, key: str) -> bool:
        """Atomically lock `key`. Return True if it was already locked (caller must reject)."""
        ...


class MemoryLockCache:
    """
    In-process time-windowed lock map for single-instance deployments.

    The check and the set happen under one lock, so concurrent requests for the
    same digest cannot both win. Expired entries are purged on every call, which
    bounds memory to the keys seen within one TTL window.
    """

    def __init__(self, ttl_sec: float = 5.0, *, clock: Callable[[], float] = time.monotonic) -> None:
        if ttl_sec <= 0:
            raise ValueError("ttl_sec must be positive")
        self._ttl_sec = ttl_sec
        self._clock = clock
        self._expiry: dict[str, float] = {}
        self._lock = threading.Lock()

    def check_and_lock(self, key: str) -> bool:
        now = self._clock()
        with self._lock:
            self._purge(now)
            if key in self._expiry:
                return True
            self._expiry[key] = now + self._ttl_sec
            return False

    def _purge(self, now: float) -> None:
        expired = [k for k, deadline in self._expiry.items() if deadline <= now]
        for k in expired:
            del self._expiry[k]

    def __len__(self) -> int:
        with self._lock:
            self._purge(self._clock())
            return len(self._expiry)


class RedisLockCache:
    """Networked backend for multi-instance deployments: one atomic SET NX PX per check."""

    def __init__(self, redis_client: Any, ttl_sec: float = 5.0) -> None:
        if ttl_sec <= 0:
            raise ValueError("ttl_sec must be positive")
        self._redis = redis_client
        self._ttl_ms = max(1, int(ttl_sec * 1000))

    @classmethod
    def from_url(cls, url: str, ttl_sec: float = 5.0) -> "RedisLockCache":
        import redis

        return cls(redis.from_url(url), ttl_sec=ttl_sec)

    def check_and_lock(self, key: str) -> bool:
        # SET returns None when NX finds an existing key
        won = self._redis.set(key, "1", nx=True, px=self._ttl_ms)
        return not won


def build_cache(redis_url: str, ttl_sec: float) -> DuplicateCache:
    """Redis when REDIS_URL is configured, in-memory otherwise."""
    if redis_url:
        logger.info("duplicate_cache_backend", backend="redis", ttl_sec=ttl_sec)
        return RedisLockCache.from_url(redis_url, ttl_sec=ttl_sec)
    logger.info("duplicate_cache_backend", backend="memory", ttl_sec=ttl_sec)
    return MemoryLockCache(ttl_sec)
