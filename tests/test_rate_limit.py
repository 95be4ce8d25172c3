"""Tests for the per-user fixed-window rate limiter."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from releasegate.app.middleware.rate_limit import (
    InMemoryRateLimitStore,
    RateLimitEntry,
    RateLimiter,
    RedisRateLimitStore,
    create_rate_limit_store,
    get_rate_limiter,
    reset_rate_limiter,
)


class FakeClock:
    def __init__(self, now: float = 1_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestRateLimiter:
    """Tests for the fixed-window algorithm."""

    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def limiter(self, clock):
        return RateLimiter(InMemoryRateLimitStore(), clock=clock)

    @pytest.mark.asyncio
    async def test_first_request_creates_window(self, limiter, clock):
        result = await limiter.check_and_consume("user", 10, 3600)
        assert result.allowed is True
        assert result.count == 1
        assert result.remaining == 9
        assert result.reset_at == clock.now + 3600

    @pytest.mark.asyncio
    async def test_blocks_after_limit(self, limiter):
        for _ in range(10):
            assert (await limiter.check_and_consume("user", 10, 3600)).allowed

        result = await limiter.check_and_consume("user", 10, 3600)
        assert result.allowed is False
        assert result.remaining == 0
        assert result.retry_after == 3600

    @pytest.mark.asyncio
    async def test_denied_request_does_not_count(self, limiter):
        for _ in range(3):
            await limiter.check_and_consume("user", 2, 60)
        entry = await limiter.store.get("user")
        assert entry.count == 2

    @pytest.mark.asyncio
    async def test_window_resets(self, limiter, clock):
        for _ in range(2):
            await limiter.check_and_consume("user", 2, 60)
        assert not (await limiter.check_and_consume("user", 2, 60)).allowed

        clock.now += 60
        result = await limiter.check_and_consume("user", 2, 60)
        assert result.allowed is True
        assert result.count == 1
        assert result.reset_at == clock.now + 60

    @pytest.mark.asyncio
    async def test_keys_are_independent(self, limiter):
        await limiter.check_and_consume("enhance:user", 1, 60)
        assert not (await limiter.check_and_consume("enhance:user", 1, 60)).allowed
        assert (await limiter.check_and_consume("github:user", 1, 60)).allowed


class TestInMemoryRateLimitStore:
    @pytest.mark.asyncio
    async def test_lru_eviction_drops_oldest(self):
        store = InMemoryRateLimitStore(max_entries=10, clock=FakeClock(50.0))
        for i in range(11):
            await store.set(f"user{i}", RateLimitEntry(count=1, reset_at=100.0))

        # 11 > 10, so the oldest 20% (2 entries) are evicted
        assert len(store) == 9
        assert await store.get("user0") is None
        assert await store.get("user1") is None
        assert await store.get("user10") is not None

    @pytest.mark.asyncio
    async def test_expired_windows_go_before_live_counters(self):
        store = InMemoryRateLimitStore(max_entries=3, clock=FakeClock(50.0))
        await store.set("live-oldest", RateLimitEntry(count=5, reset_at=100.0))
        await store.set("expired-a", RateLimitEntry(count=1, reset_at=10.0))
        await store.set("expired-b", RateLimitEntry(count=1, reset_at=20.0))
        await store.set("live-newest", RateLimitEntry(count=1, reset_at=100.0))

        assert len(store) == 2
        assert (await store.get("live-oldest")).count == 5
        assert await store.get("live-newest") is not None
        assert await store.get("expired-a") is None

    @pytest.mark.asyncio
    async def test_under_capacity_keeps_expired_entries(self):
        store = InMemoryRateLimitStore(max_entries=10, clock=FakeClock(50.0))
        await store.set("old", RateLimitEntry(count=1, reset_at=10.0))
        assert len(store) == 1

    @pytest.mark.asyncio
    async def test_get_returns_copy(self):
        store = InMemoryRateLimitStore()
        await store.set("k", RateLimitEntry(count=1, reset_at=10.0))
        entry = await store.get("k")
        entry.count = 99
        assert (await store.get("k")).count == 1

    @pytest.mark.asyncio
    async def test_increment_missing_key(self):
        store = InMemoryRateLimitStore()
        assert await store.increment("missing") is None


class TestRedisRateLimitStore:
    """Redis store against a mocked client."""

    @pytest.fixture
    def redis_client(self):
        client = MagicMock()
        client.hgetall = AsyncMock(return_value={b"count": b"3", b"reset_at": b"1700.5"})
        client.hincrby = AsyncMock(return_value=4)
        pipe = MagicMock()
        pipe.execute = AsyncMock(return_value=[True, True])
        client.pipeline.return_value = pipe
        return client

    @pytest.mark.asyncio
    async def test_get_decodes_hash(self, redis_client):
        store = RedisRateLimitStore(redis_client=redis_client)
        entry = await store.get("user")
        assert entry == RateLimitEntry(count=3, reset_at=1700.5)
        redis_client.hgetall.assert_awaited_once_with("ratelimit:user")

    @pytest.mark.asyncio
    async def test_get_missing(self, redis_client):
        redis_client.hgetall = AsyncMock(return_value={})
        store = RedisRateLimitStore(redis_client=redis_client)
        assert await store.get("user") is None

    @pytest.mark.asyncio
    async def test_set_writes_hash_with_ttl(self, redis_client):
        store = RedisRateLimitStore(redis_client=redis_client)
        with patch("releasegate.app.middleware.rate_limit.time.time", return_value=1000.0):
            await store.set("user", RateLimitEntry(count=1, reset_at=1060.0))

        pipe = redis_client.pipeline.return_value
        pipe.hset.assert_called_once_with(
            "ratelimit:user", mapping={"count": 1, "reset_at": 1060.0}
        )
        pipe.expire.assert_called_once_with("ratelimit:user", 61)
        pipe.execute.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_increment(self, redis_client):
        store = RedisRateLimitStore(redis_client=redis_client)
        entry = await store.increment("user")
        redis_client.hincrby.assert_awaited_once_with("ratelimit:user", "count", 1)
        assert entry.count == 3


class TestStoreSelection:
    def test_uses_in_memory_by_default(self):
        assert isinstance(create_rate_limit_store(use_redis=False), InMemoryRateLimitStore)

    def test_uses_redis_when_enabled(self):
        assert isinstance(create_rate_limit_store(use_redis=True), RedisRateLimitStore)

    def test_process_wide_limiter_is_shared(self):
        reset_rate_limiter()
        assert get_rate_limiter() is get_rate_limiter()
