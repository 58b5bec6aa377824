"""
Cache store adapters.

`CacheStore` is the narrow boundary the cacher needs from a key-value store.
`RedisCacheStore` implements it with redis.asyncio. Errors raised by Redis
during get/set/delete are not caught here: an outage must surface as an
error, never as a cold cache.
"""

from typing import Optional, Protocol, TYPE_CHECKING, Union

import redis.asyncio as redis

from ..shared.errors import ExternalServiceError
from ..shared.logging import get_logger

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from ..shared.config import CacherConfig


class CacheStore(Protocol):
    """Key-value store consumed by the cacher."""

    async def get(self, key: str) -> Optional[Union[bytes, str]]:
        ...

    async def set(self, key: str, value: Union[bytes, str], ttl_seconds: int) -> None:
        ...

    async def delete(self, key: str) -> None:
        ...


class RedisCacheStore:
    """Redis-backed cache store."""

    def __init__(self, redis_url: str, *, socket_timeout: float = 5.0):
        self.redis_url = redis_url
        self.socket_timeout = socket_timeout
        self.logger = get_logger("cacher.redis")
        self.redis: Optional[redis.Redis] = None

    @classmethod
    def from_config(cls, config: "CacherConfig") -> "RedisCacheStore":
        return cls(config.redis_url, socket_timeout=config.redis_socket_timeout)

    async def start(self):
        """Connect to Redis and verify the connection."""
        try:
            await self._client().ping()

            self.logger.info("Redis cache store started", redis_url=self.redis_url)

        except Exception as e:
            self.logger.error("Failed to start Redis cache store", error=str(e))
            raise ExternalServiceError("redis", str(e), {"code": "REDIS_START_FAILED"}) from e

    async def stop(self):
        """Close the Redis connection."""
        if self.redis:
            await self.redis.aclose()
            self.redis = None
            self.logger.info("Redis cache store stopped")

    async def get(self, key: str) -> Optional[bytes]:
        return await self._client().get(key)

    async def set(self, key: str, value: Union[bytes, str], ttl_seconds: int) -> None:
        await self._client().setex(key, ttl_seconds, value)

    async def delete(self, key: str) -> None:
        await self._client().delete(key)

    async def health_check(self) -> bool:
        """Check Redis health."""
        try:
            await self._client().ping()
            return True
        except Exception:
            return False

    def _client(self) -> redis.Redis:
        if self.redis is None:
            self.redis = redis.from_url(
                self.redis_url,
                socket_connect_timeout=self.socket_timeout,
                socket_timeout=self.socket_timeout,
                health_check_interval=30
            )
        return self.redis
