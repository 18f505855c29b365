"""Redis caching layer with TTL support."""

from __future__ import annotations

import json
from datetime import timedelta
from typing import TYPE_CHECKING, Any

import redis.asyncio as redis
from attrs import field, frozen
from beartype import beartype

from .config import get_settings
from .logging_utils import get_logger

__all__ = [
    "Cache",
    "CacheConfig",
    "get_cache",
]

if TYPE_CHECKING:
    from redis.asyncio import Redis as RedisType
else:
    RedisType = redis.Redis

logger = get_logger(__name__)


@frozen
class CacheConfig:
    """Immutable cache configuration."""

    url: str = field()
    default_ttl: int = field(default=3600)
    max_connections: int = field(default=10)
    decode_responses: bool = field(default=True)


class Cache:
    """Redis cache manager with async support.

    Values are stored as JSON; anything that is not JSON decodes back to the
    raw string.
    """

    def __init__(self, redis_client: RedisType | None = None) -> None:
        """Create a cache wrapper.

        Args:
            redis_client: Optional existing Redis client. If provided the
                instance is used directly and :py:meth:`connect` becomes a no-op.
        """
        self._redis: RedisType | None = redis_client
        self._config = self._get_config()

    @beartype
    def _get_config(self) -> CacheConfig:
        """Get cache configuration from settings."""
        settings = get_settings()
        return CacheConfig(
            url=settings.redis_url,
            default_ttl=settings.redis_ttl_seconds,
        )

    async def connect(self) -> None:
        """Create Redis connection pool."""
        if self._redis is not None:
            return

        self._redis = redis.from_url(
            self._config.url,
            max_connections=self._config.max_connections,
            decode_responses=self._config.decode_responses,
        )
        logger.info("Redis client created")

    async def disconnect(self) -> None:
        """Close Redis connection."""
        if self._redis is None:
            return

        await self._redis.aclose()
        self._redis = None

    def _client(self) -> RedisType:
        if self._redis is None:
            raise RuntimeError("Cache not connected")
        return self._redis

    @beartype
    async def get(self, key: str) -> Any | None:
        """Get value from cache."""
        value = await self._client().get(key)
        if value is None:
            return None

        try:
            return json.loads(value)
        except (json.JSONDecodeError, TypeError):
            return value

    @beartype
    async def set(
        self,
        key: str,
        value: Any,
        ttl: int | timedelta | None = None,
    ) -> bool:
        """Set value in cache with optional TTL."""
        if ttl is None:
            ttl = self._config.default_ttl

        if isinstance(ttl, int):
            ttl = timedelta(seconds=ttl)

        result = await self._client().setex(key, ttl, json.dumps(value, default=str))
        return bool(result)

    @beartype
    async def delete(self, key: str) -> bool:
        """Delete key from cache."""
        result = await self._client().delete(key)
        return bool(result > 0)

    @beartype
    async def clear_pattern(self, pattern: str) -> int:
        """Clear all keys matching pattern."""
        client = self._client()
        keys = [key async for key in client.scan_iter(match=pattern)]

        if keys:
            return int(await client.delete(*keys))
        return 0

    @beartype
    async def health_check(self) -> bool:
        """Check whether Redis answers a ping."""
        if self._redis is None:
            return False
        try:
            await self._redis.ping()
        except redis.RedisError:
            return False
        return True


_cache: Cache | None = None


@beartype
def get_cache() -> Cache:
    """Get global cache instance."""
    global _cache
    if _cache is None:
        _cache = Cache()
    return _cache
