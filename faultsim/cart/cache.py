"""Byte-oriented key-value caches backing the cart store.

Backends:
- InMemoryCache: process-local dict, for tests and demos
- RedisCache: Redis via ``redis.asyncio``

Backend failures are translated to the transient storage error classes, so
real faults classify the same way as injected ones.
"""

import logging
from typing import Optional, Protocol, runtime_checkable

import redis.asyncio as aioredis
from redis import exceptions as redis_exceptions

from ..config import Settings
from ..errors import PoolExhaustedError, StorageConnectionError, StorageTimeoutError

logger = logging.getLogger(__name__)


@runtime_checkable
class CacheBackend(Protocol):
    """Capability the cart store needs from its cache."""

    async def get(self, key: str) -> Optional[bytes]: ...

    async def set(self, key: str, value: bytes) -> None: ...

    async def ping(self) -> bool: ...


class InMemoryCache:
    """Dict-backed cache."""

    def __init__(self):
        self._data: dict[str, bytes] = {}

    async def get(self, key: str) -> Optional[bytes]:
        return self._data.get(key)

    async def set(self, key: str, value: bytes) -> None:
        self._data[key] = bytes(value)

    async def ping(self) -> bool:
        return True

    def __len__(self) -> int:
        return len(self._data)


class RedisCache:
    """Redis-backed cache.

    Example:
        cache = RedisCache("redis://localhost:6379/0")
        await cache.set("user-1", b"...")
        value = await cache.get("user-1")
        await cache.close()
    """

    def __init__(
        self,
        url: str = "redis://localhost:6379/0",
        *,
        ttl_seconds: Optional[int] = None,
        client: Optional[aioredis.Redis] = None,
    ):
        """Initialize Redis cache.

        Args:
            url: Redis connection URL
            ttl_seconds: Expiry for written keys (None means no expiry)
            client: Pre-built client, mainly for tests
        """
        self.url = url
        self._ttl = ttl_seconds
        self._client = client or aioredis.from_url(url, decode_responses=False)

    async def get(self, key: str) -> Optional[bytes]:
        try:
            return await self._client.get(key)
        except redis_exceptions.RedisError as e:
            _raise_classified(e, "GET", key)
            raise

    async def set(self, key: str, value: bytes) -> None:
        try:
            if self._ttl:
                await self._client.setex(key, self._ttl, value)
            else:
                await self._client.set(key, value)
        except redis_exceptions.RedisError as e:
            _raise_classified(e, "SET", key)
            raise

    async def ping(self) -> bool:
        try:
            return bool(await self._client.ping())
        except redis_exceptions.RedisError as e:
            _raise_classified(e, "PING", "")
            raise

    async def close(self) -> None:
        await self._client.aclose()


def _raise_classified(error: Exception, command: str, key: str) -> None:
    """Re-raise a redis-py error as a storage error when it has a category.

    Errors without a storage category are left for the caller to re-raise.
    """
    target = f"{command} {key}" if key else command
    message = f"Redis {target} failed: {error}"
    if isinstance(error, redis_exceptions.TimeoutError):
        raise StorageTimeoutError(message) from error
    if isinstance(error, redis_exceptions.ConnectionError):
        if "too many connections" in str(error).lower():
            raise PoolExhaustedError(message) from error
        raise StorageConnectionError(message) from error


def build_cache(settings: Settings) -> CacheBackend:
    """Redis when ``redis_url`` is configured, otherwise in-memory."""
    if settings.redis_url:
        logger.info(f"Using Redis cart cache at {settings.redis_url}")
        return RedisCache(settings.redis_url)
    logger.info("REDIS_URL not set, using in-memory cart cache")
    return InMemoryCache()
