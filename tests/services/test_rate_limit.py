# tests/services/test_rate_limit.py
"""Tests for the sliding-window rate limit stores."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import redis

from lb2d_api.core.settings import settings
from lb2d_api.services.rate_limit import (
    MAX_REQUESTS,
    WINDOW_MS,
    InMemoryRateLimitStore,
    RedisRateLimitStore,
    build_rate_limit_store,
    retry_after_seconds,
)

NEVER = lambda: 1.0  # noqa: E731 - rng that never triggers cleanup
ALWAYS = lambda: 0.0  # noqa: E731 - rng that always triggers cleanup


def _store(**kwargs) -> InMemoryRateLimitStore:
    kwargs.setdefault("rng", NEVER)
    return InMemoryRateLimitStore(**kwargs)


class TestSlidingWindow:
    """Allow/deny decisions for a single key."""

    def test_defaults(self):
        store = InMemoryRateLimitStore()
        assert store.window_ms == WINDOW_MS == 60_000
        assert store.max_requests == MAX_REQUESTS == 100

    def test_hundred_requests_in_ten_seconds_then_deny(self):
        store = _store()
        ip = "203.0.113.5"
        decisions = [store.allow(ip, 1_000 + i * 100) for i in range(100)]
        assert all(decisions)
        assert store.allow(ip, 10_900) is False
        assert retry_after_seconds(store.window_ms) == 60

    def test_allowed_again_after_window_passes(self):
        store = _store()
        ip = "203.0.113.5"
        for i in range(100):
            assert store.allow(ip, i * 100)
        assert store.allow(ip, 9_999) is False
        assert store.allow(ip, 61_000) is True

    def test_denied_requests_are_not_recorded(self):
        store = _store(max_requests=2, window_ms=1_000)
        assert store.allow("k", 0)
        assert store.allow("k", 100)
        for t in (200, 300, 400):
            assert store.allow("k", t) is False
        # Only the two allowed instants count, so one slot frees at t=1000.
        assert store.allow("k", 1_000) is True
        assert store.allow("k", 1_050) is False
        assert store.allow("k", 1_100) is True

    def test_boundary_entry_is_dropped(self):
        store = _store(max_requests=1, window_ms=1_000)
        assert store.allow("k", 0)
        assert store.allow("k", 999) is False
        # An entry exactly window_ms old is outside the window.
        assert store.allow("k", 1_000) is True

    def test_current_instant_counts(self):
        store = _store(max_requests=2, window_ms=1_000)
        assert store.allow("k", 500)
        assert store.allow("k", 500)
        assert store.allow("k", 500) is False

    def test_matches_reference_model(self):
        """Each decision equals 'prior allowed instants in window < quota'."""
        window, quota = 1_000, 3
        store = _store(max_requests=quota, window_ms=window)
        instants = [0, 10, 20, 30, 400, 990, 1_005, 1_011, 1_015, 1_020, 1_500, 2_100, 2_101, 2_102, 2_103]
        allowed: list[int] = []
        for t in instants:
            expected = sum(1 for a in allowed if a > t - window) < quota
            assert store.allow("k", t) is expected, t
            if expected:
                allowed.append(t)


class TestKeyIndependence:
    def test_exhausting_one_key_leaves_others_alone(self):
        store = _store(max_requests=3)
        for t in range(3):
            assert store.allow("198.51.100.1", t)
        assert store.allow("198.51.100.1", 5) is False
        assert store.allow("198.51.100.2", 5) is True
        assert store.allow("unknown", 5) is True


class TestCleanup:
    """Stale keys are dropped so the map does not grow without bound."""

    def test_cleanup_drops_empty_keys_and_keeps_live_ones(self):
        store = _store(window_ms=1_000)
        store.allow("old", 0)
        store.allow("fresh", 1_500)
        store.cleanup(2_000)
        assert store.keys() == ["fresh"]

    def test_cleanup_runs_probabilistically_on_allow(self):
        store = _store(window_ms=1_000, rng=NEVER)
        store.allow("old", 0)
        store.allow("new", 5_000)
        assert sorted(store.keys()) == ["new", "old"]

        sweeping = InMemoryRateLimitStore(window_ms=1_000, rng=ALWAYS)
        sweeping.allow("old", 0)
        sweeping.allow("new", 5_000)
        assert sweeping.keys() == ["new"]

    def test_cleanup_probability_is_one_percent(self):
        rng = MagicMock(return_value=0.5)
        store = InMemoryRateLimitStore(rng=rng)
        store.allow("k", 0)
        rng.assert_called_once_with()
        assert InMemoryRateLimitStore()._cleanup_probability == 0.01

    def test_reset_forgets_everything(self):
        store = _store()
        store.allow("a", 0)
        store.reset()
        assert store.keys() == []


class TestRedisStore:
    """Shared-window backend driven through a Lua script."""

    def _client(self, result=1):
        client = MagicMock()
        script = MagicMock(return_value=result)
        client.register_script.return_value = script
        return client, script

    def test_allow_passes_window_arguments(self):
        client, script = self._client(result=1)
        store = RedisRateLimitStore(client, window_ms=60_000, max_requests=100)

        assert store.allow("203.0.113.5", 120_000) is True

        kwargs = script.call_args.kwargs
        assert kwargs["keys"] == ["ratelimit:203.0.113.5"]
        cutoff, now, quota, member, ttl = kwargs["args"]
        assert cutoff == 60_000
        assert now == 120_000
        assert quota == 100
        assert member.startswith("120000")
        assert ttl == 60_000

    def test_deny_when_script_returns_zero(self):
        client, _ = self._client(result=0)
        store = RedisRateLimitStore(client)
        assert store.allow("k", 1) is False

    def test_falls_back_to_local_window_when_redis_fails(self):
        client, script = self._client()
        script.side_effect = redis.ConnectionError("down")
        store = RedisRateLimitStore(client, window_ms=1_000, max_requests=1)

        assert store.allow("k", 0) is True
        assert store.allow("k", 10) is False
        # Redis is not retried after the first failure.
        assert script.call_count == 1


class TestBackendSelection:
    def test_memory_backend_by_default(self):
        assert isinstance(build_rate_limit_store(), InMemoryRateLimitStore)

    def test_redis_backend(self, monkeypatch):
        client, _ = TestRedisStore()._client()
        monkeypatch.setattr(settings, "rate_limit_backend", "redis")
        with patch("lb2d_api.services.rate_limit.redis.from_url", return_value=client) as from_url:
            store = build_rate_limit_store()
        from_url.assert_called_once_with(settings.redis_url)
        assert isinstance(store, RedisRateLimitStore)
