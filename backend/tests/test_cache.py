"""Tests for the cache-aside stores."""
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from regional_timeline.core.cache import (
    MemoryCacheStore,
    RedisCacheStore,
    create_cache_store,
    timeline_cache_key,
)


def test_timeline_cache_key_is_versioned_and_upper_cased():
    assert timeline_cache_key("de") == "timeline:v2:DE"
    assert timeline_cache_key("JP", version="v3") == "timeline:v3:JP"


class TestMemoryCacheStore:

    @pytest.mark.asyncio
    async def test_round_trip_before_expiry(self, fake_clock):
        store = MemoryCacheStore(clock=fake_clock)
        payload = b'{"timeline": []}'

        await store.put("timeline:v2:DE", payload, ttl=300)
        fake_clock.advance(299)

        assert await store.get("timeline:v2:DE") == payload

    @pytest.mark.asyncio
    async def test_absent_after_expiry(self, fake_clock):
        store = MemoryCacheStore(clock=fake_clock)

        await store.put("timeline:v2:DE", b"x", ttl=300)
        fake_clock.advance(300)

        assert await store.get("timeline:v2:DE") is None
        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_missing_key(self):
        assert await MemoryCacheStore().get("nope") is None

    @pytest.mark.asyncio
    async def test_overwrite_refreshes_ttl(self, fake_clock):
        store = MemoryCacheStore(clock=fake_clock)

        await store.put("k", b"old", ttl=10)
        fake_clock.advance(8)
        await store.put("k", b"new", ttl=10)
        fake_clock.advance(8)

        assert await store.get("k") == b"new"


class TestRedisCacheStore:

    @pytest.mark.asyncio
    async def test_put_sets_expiry(self):
        client = MagicMock()
        client.set = AsyncMock()
        store = RedisCacheStore(client)

        await store.put("timeline:v2:DE", b"payload", ttl=300)

        client.set.assert_awaited_once_with("timeline:v2:DE", b"payload", ex=300)

    @pytest.mark.asyncio
    async def test_get_returns_bytes(self):
        client = MagicMock()
        client.get = AsyncMock(side_effect=[b"payload", None, "text"])
        store = RedisCacheStore(client)

        assert await store.get("k") == b"payload"
        assert await store.get("k") is None
        assert await store.get("k") == b"text"


class TestCreateCacheStore:

    @pytest.mark.asyncio
    async def test_no_url_uses_memory(self):
        store = await create_cache_store("")
        assert isinstance(store, MemoryCacheStore)

    @pytest.mark.asyncio
    async def test_reachable_redis(self):
        client = MagicMock()
        client.ping = AsyncMock(return_value=True)

        with patch("redis.asyncio.from_url", return_value=client) as from_url:
            store = await create_cache_store("redis://localhost:6379/0")

        from_url.assert_called_once_with("redis://localhost:6379/0")
        assert isinstance(store, RedisCacheStore)

    @pytest.mark.asyncio
    async def test_unreachable_redis_falls_back_to_memory(self):
        client = MagicMock()
        client.ping = AsyncMock(side_effect=RedisConnectionError("Connection refused"))
        client.aclose = AsyncMock()

        with patch("redis.asyncio.from_url", return_value=client):
            store = await create_cache_store("redis://localhost:6379/0")

        assert isinstance(store, MemoryCacheStore)
        client.aclose.assert_awaited_once()
