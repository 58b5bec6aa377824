"""
Unit tests for the Redis cache store.
"""

from unittest.mock import AsyncMock, patch

import pytest
import redis.exceptions

from query_cacher.adapters.cache_store import RedisCacheStore
from query_cacher.shared.config import CacherConfig
from query_cacher.shared.errors import ExternalServiceError


class TestRedisCacheStore:
    """Test cases for RedisCacheStore."""

    @pytest.fixture
    def redis_client(self):
        client = AsyncMock()
        client.get.return_value = b'{"id":1}'
        client.ping.return_value = True
        return client

    @pytest.fixture
    def cache_store(self, redis_client):
        store = RedisCacheStore("redis://localhost:6379/0")
        store.redis = redis_client
        return store

    @pytest.mark.asyncio
    async def test_get(self, cache_store, redis_client):
        assert await cache_store.get("cacher:entity:find_one:{id:1}") == b'{"id":1}'
        redis_client.get.assert_awaited_once_with("cacher:entity:find_one:{id:1}")

    @pytest.mark.asyncio
    async def test_set_uses_setex(self, cache_store, redis_client):
        await cache_store.set("key", '{"id":1}', 30)
        redis_client.setex.assert_awaited_once_with("key", 30, '{"id":1}')

    @pytest.mark.asyncio
    async def test_delete(self, cache_store, redis_client):
        await cache_store.delete("key")
        redis_client.delete.assert_awaited_once_with("key")

    @pytest.mark.asyncio
    async def test_errors_propagate(self, cache_store, redis_client):
        redis_client.get.side_effect = redis.exceptions.ConnectionError("Redis connection failed")
        with pytest.raises(redis.exceptions.ConnectionError):
            await cache_store.get("key")

        redis_client.setex.side_effect = redis.exceptions.TimeoutError("timeout")
        with pytest.raises(redis.exceptions.TimeoutError):
            await cache_store.set("key", "1", 10)

    @pytest.mark.asyncio
    async def test_start_pings(self, redis_client):
        store = RedisCacheStore("redis://localhost:6379/0")
        with patch("redis.asyncio.from_url", return_value=redis_client) as from_url:
            await store.start()

        from_url.assert_called_once()
        assert from_url.call_args.args[0] == "redis://localhost:6379/0"
        redis_client.ping.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_start_failure(self, redis_client):
        redis_client.ping.side_effect = redis.exceptions.ConnectionError("refused")
        store = RedisCacheStore("redis://localhost:6379/0")
        with patch("redis.asyncio.from_url", return_value=redis_client):
            with pytest.raises(ExternalServiceError) as exc_info:
                await store.start()

        assert exc_info.value.details["code"] == "REDIS_START_FAILED"
        assert "refused" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_stop(self, cache_store, redis_client):
        await cache_store.stop()
        redis_client.aclose.assert_awaited_once()
        assert cache_store.redis is None

    @pytest.mark.asyncio
    async def test_health_check(self, cache_store, redis_client):
        assert await cache_store.health_check() is True
        redis_client.ping.side_effect = redis.exceptions.ConnectionError("down")
        assert await cache_store.health_check() is False

    def test_from_config(self):
        config = CacherConfig(redis_url="redis://cache:6379/2", redis_socket_timeout=1.5)
        store = RedisCacheStore.from_config(config)
        assert store.redis_url == "redis://cache:6379/2"
        assert store.socket_timeout == 1.5
