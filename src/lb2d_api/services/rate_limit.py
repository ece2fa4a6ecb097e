"""Sliding-window request limiting per client key.

The default store keeps a process-local map of request instants. Restarting
the process resets every window, and each worker process enforces its own
quota, so N instances admit up to N times `MAX_REQUESTS` per window. Select
`RATE_LIMIT_BACKEND=redis` to share windows between processes.
"""

from __future__ import annotations

import logging
import math
import random
import secrets
from collections.abc import Callable
from threading import Lock
from typing import Any, Final, Protocol

import redis

from lb2d_api.core.settings import settings

logger = logging.getLogger(__name__)

WINDOW_MS: Final[int] = 60_000
MAX_REQUESTS: Final[int] = 100
CLEANUP_PROBABILITY: Final[float] = 0.01
UNKNOWN_CLIENT: Final[str] = "unknown"


class RateLimitStore(Protocol):
    """Decides whether one more request from `key` fits in its window."""

    window_ms: int

    def allow(self, key: str, now_ms: float) -> bool: ...


def retry_after_seconds(window_ms: int) -> int:
    """Return the advisory wait, in whole seconds, sent with a 429."""
    return math.ceil(window_ms / 1000)


class InMemoryRateLimitStore:
    """Process-local sliding window keyed by client identifier."""

    def __init__(
        self,
        window_ms: int = WINDOW_MS,
        max_requests: int = MAX_REQUESTS,
        *,
        cleanup_probability: float = CLEANUP_PROBABILITY,
        rng: Callable[[], float] = random.random,
    ) -> None:
        self.window_ms = window_ms
        self.max_requests = max_requests
        self._cleanup_probability = cleanup_probability
        self._rng = rng
        self._requests: dict[str, list[float]] = {}
        self._lock = Lock()

    def _recent(self, timestamps: list[float], now_ms: float) -> list[float]:
        cutoff = now_ms - self.window_ms
        return [t for t in timestamps if t > cutoff]

    def allow(self, key: str, now_ms: float) -> bool:
        """Record a request at `now_ms` if the window has room.

        Entries at or before `now_ms - window_ms` fall out of the window. A
        denied request is not recorded.
        """
        with self._lock:
            recent = self._recent(self._requests.get(key, []), now_ms)
            if len(recent) >= self.max_requests:
                self._requests[key] = recent
                return False

            recent.append(now_ms)
            self._requests[key] = recent

            if self._rng() < self._cleanup_probability:
                self._cleanup_locked(now_ms)
            return True

    def cleanup(self, now_ms: float) -> None:
        """Prune every window and drop keys with no remaining requests."""
        with self._lock:
            self._cleanup_locked(now_ms)

    def _cleanup_locked(self, now_ms: float) -> None:
        for key in list(self._requests):
            recent = self._recent(self._requests[key], now_ms)
            if recent:
                self._requests[key] = recent
            else:
                del self._requests[key]

    def keys(self) -> list[str]:
        """Return the client keys currently tracked."""
        with self._lock:
            return list(self._requests)

    def reset(self) -> None:
        """Forget every tracked client."""
        with self._lock:
            self._requests.clear()


# Trims the window, counts it, and records the request only when under quota.
_SLIDING_WINDOW_LUA: Final[str] = """
redis.call('ZREMRANGEBYSCORE', KEYS[1], '-inf', ARGV[1])
if redis.call('ZCARD', KEYS[1]) >= tonumber(ARGV[3]) then
    return 0
end
redis.call('ZADD', KEYS[1], ARGV[2], ARGV[4])
redis.call('PEXPIRE', KEYS[1], ARGV[5])
return 1
"""


class RedisRateLimitStore:
    """Sliding window shared between processes through a Redis sorted set.

    If Redis becomes unreachable the store logs the failure and keeps limiting
    with a process-local window instead of rejecting traffic.
    """

    def __init__(
        self,
        client: Any,
        window_ms: int = WINDOW_MS,
        max_requests: int = MAX_REQUESTS,
        *,
        prefix: str = "ratelimit",
    ) -> None:
        self.window_ms = window_ms
        self.max_requests = max_requests
        self._prefix = prefix
        self._redis = client
        self._script = client.register_script(_SLIDING_WINDOW_LUA)
        self._fallback = InMemoryRateLimitStore(window_ms, max_requests)

    def allow(self, key: str, now_ms: float) -> bool:
        if self._redis is not None:
            member = f"{now_ms}:{secrets.token_hex(4)}"
            try:
                result = self._script(
                    keys=[f"{self._prefix}:{key}"],
                    args=[now_ms - self.window_ms, now_ms, self.max_requests, member, self.window_ms],
                )
                return bool(int(result))
            except redis.RedisError as err:
                logger.warning("Redis rate limit backend unavailable, using local window: %s", err)
                self._redis = None
        return self._fallback.allow(key, now_ms)


_STORE: RateLimitStore | None = None
_STORE_LOCK = Lock()


def build_rate_limit_store() -> RateLimitStore:
    """Create the store selected by `RATE_LIMIT_BACKEND`."""
    if settings.rate_limit_backend == "redis":
        client = redis.from_url(settings.redis_url)  # type: ignore[no-untyped-call]
        return RedisRateLimitStore(client)
    return InMemoryRateLimitStore()


def get_rate_limit_store() -> RateLimitStore:
    """Return the process-wide rate limit store."""
    global _STORE
    with _STORE_LOCK:
        if _STORE is None:
            _STORE = build_rate_limit_store()
        return _STORE


__all__ = [
    "WINDOW_MS",
    "MAX_REQUESTS",
    "UNKNOWN_CLIENT",
    "RateLimitStore",
    "InMemoryRateLimitStore",
    "RedisRateLimitStore",
    "build_rate_limit_store",
    "get_rate_limit_store",
    "retry_after_seconds",
]
