"""
Cache-aside stores for rendered timeline payloads.

The pipeline only needs ``get`` and ``put`` with a TTL. Redis is used when a
``REDIS_URL`` is configured and reachable; otherwise an in-process store.
"""
from __future__ import annotations

import logging
import time
from typing import Callable, Dict, Optional, Protocol, Tuple

import redis.asyncio as redis
from redis.exceptions import RedisError

from regional_timeline.config import CACHE_SCHEMA_VERSION
from regional_timeline.core.regions import normalize_region_code

logger = logging.getLogger(__name__)


def timeline_cache_key(region: str, version: str = CACHE_SCHEMA_VERSION) -> str:
    """Key for a region's rendered timeline, e.g. ``timeline:v2:DE``."""
    return f"timeline:{version}:{normalize_region_code(region)}"


class CacheStore(Protocol):
    async def get(self, key: str) -> Optional[bytes]:
        ...

    async def put(self, key: str, value: bytes, ttl: int) -> None:
        ...

    async def close(self) -> None:
        ...


class MemoryCacheStore:
    """Dict-backed store with per-entry expiry."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: Dict[str, Tuple[bytes, float]] = {}

    async def get(self, key: str) -> Optional[bytes]:
        entry = self._entries.get(key)
        if entry is None:
            return None

        value, expires_at = entry
        if self._clock() >= expires_at:
            self._entries.pop(key, None)
            return None
        return value

    async def put(self, key: str, value: bytes, ttl: int) -> None:
        self._entries[key] = (value, self._clock() + ttl)

    async def close(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class RedisCacheStore:
    """Redis-backed store; expiry is delegated to ``SET ... EX``."""

    def __init__(self, client: redis.Redis):
        self.redis = client

    @classmethod
    def from_url(cls, redis_url: str) -> "RedisCacheStore":
        return cls(redis.from_url(redis_url))

    async def ping(self) -> bool:
        return bool(await self.redis.ping())

    async def get(self, key: str) -> Optional[bytes]:
        value = await self.redis.get(key)
        if value is None:
            return None
        return value if isinstance(value, bytes) else str(value).encode("utf-8")

    async def put(self, key: str, value: bytes, ttl: int) -> None:
        await self.redis.set(key, value, ex=ttl)

    async def close(self) -> None:
        await self.redis.aclose()


async def create_cache_store(redis_url: str | None) -> CacheStore:
    """
    Connect to Redis if configured, falling back to the in-memory store.

    Args:
        redis_url: e.g. "redis://localhost:6379/0", or empty

    Returns:
        A ready cache store
    """
    if not redis_url:
        logger.info("No REDIS_URL configured, using in-memory cache")
        return MemoryCacheStore()

    store = RedisCacheStore.from_url(redis_url)
    try:
        await store.ping()
    except (RedisError, OSError) as e:
        logger.warning(f"Redis not available, using in-memory cache: {e}")
        await store.close()
        return MemoryCacheStore()

    logger.info("Connected to Redis for timeline cache")
    return store


__all__ = [
    "CacheStore",
    "MemoryCacheStore",
    "RedisCacheStore",
    "create_cache_store",
    "timeline_cache_key",
]
