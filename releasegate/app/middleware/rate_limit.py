"""Per-user rate limiting for the gateway.

Counts requests per user in fixed windows. The counters live behind a
RateLimitStore so the in-memory map can be swapped for Redis without
touching the handlers.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Optional

from releasegate.app.core.config import settings
from releasegate.app.core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class RateLimitEntry:
    """Counter for one user within the current window."""
    count: int = 0
    reset_at: float = 0.0


@dataclass
class RateLimitResult:
    """Result of a rate limit check."""
    allowed: bool
    limit: int
    count: int
    remaining: int
    reset_at: float
    retry_after: Optional[int] = None


class RateLimitStore(ABC):
    """Storage for rate limit entries, keyed by user."""

    @abstractmethod
    async def get(self, key: str) -> Optional[RateLimitEntry]:
        """Return the entry for key, or None if there is none."""

    @abstractmethod
    async def set(self, key: str, entry: RateLimitEntry) -> None:
        """Replace the entry for key."""

    @abstractmethod
    async def increment(self, key: str) -> Optional[RateLimitEntry]:
        """Add one to the count for key and return the updated entry."""


class InMemoryRateLimitStore(RateLimitStore):
    """Process-local store backed by an OrderedDict.

    Not durable and not shared: counters reset on restart and each server
    instance counts on its own. Use RedisRateLimitStore when running more
    than one instance.

    Memory optimization:
    - Uses OrderedDict for LRU cache behavior
    - Limits max entries to prevent unbounded memory growth
    - Drops finished windows before evicting live counters
    """

    DEFAULT_MAX_ENTRIES = 10000

    def __init__(
        self,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.time,
    ):
        self._max_entries = max_entries
        self._entries: OrderedDict[str, RateLimitEntry] = OrderedDict()
        self._lock = asyncio.Lock()
        self._clock = clock

    def __len__(self) -> int:
        return len(self._entries)

    def _drop_expired(self) -> None:
        now = self._clock()
        expired = [k for k, e in self._entries.items() if now >= e.reset_at]
        for key in expired:
            del self._entries[key]

    def _enforce_lru_limit(self) -> None:
        """Enforce max entries limit, expired windows first, then LRU."""
        if len(self._entries) <= self._max_entries:
            return
        self._drop_expired()
        if len(self._entries) > self._max_entries:
            # Remove oldest 20% of entries
            remove_count = max(1, int(self._max_entries * 0.2))
            for _ in range(remove_count):
                if not self._entries:
                    break
                self._entries.popitem(last=False)

    async def get(self, key: str) -> Optional[RateLimitEntry]:
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            self._entries.move_to_end(key)
            return RateLimitEntry(count=entry.count, reset_at=entry.reset_at)

    async def set(self, key: str, entry: RateLimitEntry) -> None:
        async with self._lock:
            self._entries[key] = RateLimitEntry(count=entry.count, reset_at=entry.reset_at)
            self._entries.move_to_end(key)
            self._enforce_lru_limit()

    async def increment(self, key: str) -> Optional[RateLimitEntry]:
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            entry.count += 1
            self._entries.move_to_end(key)
            return RateLimitEntry(count=entry.count, reset_at=entry.reset_at)


class RedisRateLimitStore(RateLimitStore):
    """Redis-backed store shared by every server instance.

    Each entry is a hash {count, reset_at} that expires with its window.
    """

    def __init__(
        self,
        redis_client: Optional[Any] = None,
        redis_url: Optional[str] = None,
        key_prefix: str = "ratelimit:",
    ):
        self._redis_url = redis_url or settings.redis_url
        self._redis = redis_client
        self._prefix = key_prefix

    async def _get_redis(self) -> Any:
        """Get or create Redis connection."""
        if self._redis is None:
            import redis.asyncio as aioredis
            self._redis = aioredis.from_url(self._redis_url)
        return self._redis

    @staticmethod
    def _decode(raw: dict) -> Optional[RateLimitEntry]:
        if not raw:
            return None
        values = {
            (k.decode() if isinstance(k, bytes) else k): (v.decode() if isinstance(v, bytes) else v)
            for k, v in raw.items()
        }
        try:
            return RateLimitEntry(count=int(values["count"]), reset_at=float(values["reset_at"]))
        except (KeyError, ValueError):
            return None

    async def get(self, key: str) -> Optional[RateLimitEntry]:
        redis_client = await self._get_redis()
        return self._decode(await redis_client.hgetall(self._prefix + key))

    async def set(self, key: str, entry: RateLimitEntry) -> None:
        redis_client = await self._get_redis()
        ttl = max(1, int(entry.reset_at - time.time()) + 1)
        pipe = redis_client.pipeline()
        pipe.hset(self._prefix + key, mapping={"count": entry.count, "reset_at": entry.reset_at})
        pipe.expire(self._prefix + key, ttl)
        await pipe.execute()

    async def increment(self, key: str) -> Optional[RateLimitEntry]:
        redis_client = await self._get_redis()
        await redis_client.hincrby(self._prefix + key, "count", 1)
        return await self.get(key)


class RateLimiter:
    """Fixed-window limiter: at most ``limit`` accepted requests per window.

    Concurrent requests for the same user may race between the read and
    the increment; counts are advisory, so a small over- or under-count is
    acceptable.
    """

    def __init__(
        self,
        store: Optional[RateLimitStore] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store or InMemoryRateLimitStore(clock=clock)
        self._clock = clock

    async def check_and_consume(
        self, user_id: str, limit: int, window_seconds: float
    ) -> RateLimitResult:
        """Count one request for user_id and report whether it is allowed."""
        now = self._clock()
        entry = await self.store.get(user_id)

        if entry is None or now >= entry.reset_at:
            entry = RateLimitEntry(count=1, reset_at=now + window_seconds)
            await self.store.set(user_id, entry)
            return RateLimitResult(
                allowed=True,
                limit=limit,
                count=1,
                remaining=max(0, limit - 1),
                reset_at=entry.reset_at,
            )

        if entry.count >= limit:
            return RateLimitResult(
                allowed=False,
                limit=limit,
                count=entry.count,
                remaining=0,
                reset_at=entry.reset_at,
                retry_after=max(1, int(entry.reset_at - now)),
            )

        updated = await self.store.increment(user_id) or RateLimitEntry(
            count=entry.count + 1, reset_at=entry.reset_at
        )
        return RateLimitResult(
            allowed=True,
            limit=limit,
            count=updated.count,
            remaining=max(0, limit - updated.count),
            reset_at=updated.reset_at,
        )


def create_rate_limit_store(use_redis: Optional[bool] = None) -> RateLimitStore:
    """Select the store from settings.

    Uses Redis when enabled, otherwise the in-memory store.
    """
    should_use_redis = use_redis if use_redis is not None else settings.redis_enabled
    if should_use_redis:
        logger.info("Using Redis rate limit store")
        return RedisRateLimitStore()
    logger.debug("Using in-memory rate limit store")
    return InMemoryRateLimitStore(max_entries=settings.rate_limit_max_entries)


_rate_limiter: Optional[RateLimiter] = None


def get_rate_limiter() -> RateLimiter:
    """Get or create the process-wide rate limiter."""
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = RateLimiter(create_rate_limit_store())
    return _rate_limiter


def reset_rate_limiter() -> None:
    """Drop the process-wide limiter (tests)."""
    global _rate_limiter
    _rate_limiter = None
