"""
Key-value cache collaborator — in-memory TTL/LRU with optional Redis.

MemoryManager persists agent memory here (24h TTL) and LLMRouter caches
provider availability here (5 min TTL). Both only rely on the async
get / set / delete contract, so the backing store is swappable.

Usage:
    from crytonix.cache import create_cache

    cache = create_cache(settings)
    await cache.set("agent-memory-abc", state, ttl=86400)
    state = await cache.get("agent-memory-abc")   # None on miss or expiry
"""

from __future__ import annotations

import json
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Protocol

logger = logging.getLogger(__name__)


class CacheBackend(Protocol):
    """The contract the core consumes."""

    async def get(self, key: str) -> Optional[Any]: ...

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None: ...

    async def delete(self, key: str) -> None: ...


# ---------------------------------------------------------------------------
# In-memory
# ---------------------------------------------------------------------------

@dataclass
class CacheEntry:
    """A cached value with expiration metadata."""

    value: Any
    created_at: float             # time.monotonic()
    expires_at: float             # time.monotonic() + ttl
    hit_count: int = 0

    @property
    def is_expired(self) -> bool:
        return time.monotonic() > self.expires_at


class InMemoryCache:
    """
    In-process LRU cache with TTL expiration.

    Safe for single-threaded asyncio: no awaits happen while the
    OrderedDict is being mutated.
    """

    def __init__(self, max_size: int = 1000, default_ttl: int = 3600):
        self._max_size = max_size
        self._default_ttl = default_ttl

        # LRU ordered dict: most recently used at the end
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()

        self._hits: int = 0
        self._misses: int = 0
        self._evictions: int = 0

    @property
    def size(self) -> int:
        return len(self._entries)

    async def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)

        if entry is None:
            self._misses += 1
            return None

        if entry.is_expired:
            del self._entries[key]
            self._misses += 1
            self._evictions += 1
            return None

        self._entries.move_to_end(key)
        entry.hit_count += 1
        self._hits += 1
        return entry.value

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        ttl_seconds = ttl if ttl is not None else self._default_ttl
        now = time.monotonic()

        if key in self._entries:
            del self._entries[key]

        while len(self._entries) >= self._max_size:
            evicted_key, _ = self._entries.popitem(last=False)
            self._evictions += 1
            logger.debug("cache_eviction", extra={"key": evicted_key[:32]})

        self._entries[key] = CacheEntry(
            value=value,
            created_at=now,
            expires_at=now + ttl_seconds,
        )

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> int:
        """Clear all entries. Returns number of entries cleared."""
        count = len(self._entries)
        self._entries.clear()
        return count

    def get_stats(self) -> dict[str, Any]:
        total = self._hits + self._misses
        return {
            "size": self.size,
            "max_size": self._max_size,
            "default_ttl": self._default_ttl,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round(self._hits / total, 3) if total else 0.0,
            "evictions": self._evictions,
        }


# ---------------------------------------------------------------------------
# Redis
# ---------------------------------------------------------------------------

class RedisCache:
    """Redis-backed cache. Values are stored as JSON strings."""

    def __init__(self, url: Optional[str] = None, client: Any = None):
        if client is None:
            import redis.asyncio as redis_async

            client = redis_async.from_url(url, decode_responses=True)
        self._client = client

    async def get(self, key: str) -> Optional[Any]:
        raw = await self._client.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        payload = json.dumps(value, default=str)
        if ttl:
            await self._client.set(key, payload, ex=ttl)
        else:
            await self._client.set(key, payload)

    async def delete(self, key: str) -> None:
        await self._client.delete(key)

    async def close(self) -> None:
        await self._client.aclose()


# ---------------------------------------------------------------------------
# Unified cache
# ---------------------------------------------------------------------------

class AppCache:
    """
    Redis when configured, memory otherwise.

    A Redis error on any call is logged and that call is served from the
    in-memory store instead; it never propagates to the caller.
    """

    def __init__(
        self,
        redis: Optional[RedisCache] = None,
        memory: Optional[InMemoryCache] = None,
    ):
        self._redis = redis
        self._memory = memory or InMemoryCache()

    @property
    def uses_redis(self) -> bool:
        return self._redis is not None

    async def get(self, key: str) -> Optional[Any]:
        if self._redis is not None:
            try:
                return await self._redis.get(key)
            except Exception as e:
                logger.error("redis_get_failed", extra={"key": key, "error": str(e)[:200]})
        return await self._memory.get(key)

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        if self._redis is not None:
            try:
                await self._redis.set(key, value, ttl)
                return
            except Exception as e:
                logger.error("redis_set_failed", extra={"key": key, "error": str(e)[:200]})
        await self._memory.set(key, value, ttl)

    async def delete(self, key: str) -> None:
        if self._redis is not None:
            try:
                await self._redis.delete(key)
                return
            except Exception as e:
                logger.error("redis_delete_failed", extra={"key": key, "error": str(e)[:200]})
        await self._memory.delete(key)

    async def get_or_set(
        self,
        key: str,
        factory: Callable[[], Awaitable[Any]],
        ttl: Optional[int] = None,
    ) -> Any:
        """Return the cached value, or compute, store, and return it."""
        cached = await self.get(key)
        if cached is not None:
            return cached

        value = await factory()
        await self.set(key, value, ttl)
        return value


def create_cache(settings: Any = None) -> AppCache:
    """Build an AppCache from Settings (Redis only when REDIS_URL is set)."""
    max_size = getattr(settings, "cache_max_size", 1000)
    default_ttl = getattr(settings, "cache_ttl_seconds", 3600)
    memory = InMemoryCache(max_size=max_size, default_ttl=default_ttl)

    redis_url = getattr(settings, "redis_url", None)
    redis = RedisCache(url=redis_url) if redis_url else None
    if redis is not None:
        logger.info("cache_backend_redis", extra={"url": redis_url.split("@")[-1]})
    return AppCache(redis=redis, memory=memory)
