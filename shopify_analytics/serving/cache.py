"""
Cache Module

Cache-aside layer shared by collection and analytics:
- ``CacheBackend`` interface with per-call TTL
- Redis backend (connection pooling, JSON serialization)
- In-process backend for development and tests
- Stable key construction and pattern invalidation

Concurrent misses on the same key may compute the value twice; there is no
single-flight guarantee.
"""

import asyncio
import fnmatch
import hashlib
import json
import time
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, Union

import structlog
from redis.asyncio import ConnectionPool, Redis
from redis.exceptions import RedisError

from shopify_analytics.config import Settings, get_settings
from shopify_analytics.config.settings import RedisSettings

logger = structlog.get_logger(__name__)

TTL = Union[int, timedelta]


def _seconds(ttl: Optional[TTL]) -> Optional[int]:
    if isinstance(ttl, timedelta):
        return int(ttl.total_seconds())
    return ttl


def _serialize(value: Any) -> Optional[str]:
    try:
        return json.dumps(value, default=str)
    except (TypeError, ValueError) as e:
        logger.warning("Failed to serialize value for cache", error=str(e))
        return None


def _deserialize(raw: Any) -> Any:
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


def cache_key(
    entity: str,
    store_id: Any,
    start: Optional[Union[datetime, int]] = None,
    end: Optional[Union[datetime, int]] = None,
    filters: Optional[Dict[str, Any]] = None,
) -> str:
    """
    Build a cache key: ``<entity>_<store_id>[_<start_ts>_<end_ts>][_<md5(filters)>]``.

    Filters are hashed from their key-sorted JSON so equal filter dicts
    always map onto the same key.
    """
    parts = [entity, str(store_id)]
    for bound in (start, end):
        if bound is None:
            continue
        parts.append(str(int(bound.timestamp()) if isinstance(bound, datetime) else int(bound)))
    if filters is not None:
        encoded = json.dumps(filters, sort_keys=True, separators=(",", ":"), default=str)
        parts.append(hashlib.md5(encoded.encode("utf-8")).hexdigest())
    return "_".join(parts)


def window_end(now: datetime) -> datetime:
    """
    End of the hour containing ``now``.

    Default reporting windows end here so that calls made within the same
    hour share one cache key.
    """
    return now.replace(minute=0, second=0, microsecond=0) + timedelta(hours=1)


class CacheBackend(ABC):
    """Key/value store with per-entry TTL and glob-pattern invalidation"""

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """Get value from cache, None on miss"""

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: Optional[TTL] = None) -> bool:
        """Store a JSON-serializable value"""

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete key from cache"""

    @abstractmethod
    async def delete_pattern(self, pattern: str) -> int:
        """Delete all keys matching a glob pattern"""

    async def close(self) -> None:
        return None


class RedisCache(CacheBackend):
    """
    Redis-backed cache.

    Redis failures are logged and treated as misses so an unavailable cache
    never takes analytics down with it.

    Example:
        cache = RedisCache.from_settings(settings.redis)
        await cache.set("products_42", payload, ttl=3600)
    """

    def __init__(self, client: Redis, pool: Optional[ConnectionPool] = None):
        self._client = client
        self._pool = pool

    @classmethod
    def from_settings(cls, redis_settings: RedisSettings) -> "RedisCache":
        pool = ConnectionPool.from_url(
            redis_settings.get_url(),
            max_connections=redis_settings.max_connections,
            socket_timeout=redis_settings.socket_timeout,
            decode_responses=True,
        )
        return cls(Redis(connection_pool=pool), pool)

    async def get(self, key: str) -> Optional[Any]:
        try:
            value = await self._client.get(key)
        except RedisError as e:
            logger.warning("Cache read failed", key=key, error=str(e))
            return None
        return _deserialize(value)

    async def set(self, key: str, value: Any, ttl: Optional[TTL] = None) -> bool:
        serialized = _serialize(value)
        if serialized is None:
            return False

        seconds = _seconds(ttl)
        try:
            if seconds:
                await self._client.setex(key, seconds, serialized)
            else:
                await self._client.set(key, serialized)
        except RedisError as e:
            logger.warning("Cache write failed", key=key, error=str(e))
            return False
        return True

    async def delete(self, key: str) -> bool:
        try:
            return await self._client.delete(key) > 0
        except RedisError as e:
            logger.warning("Cache delete failed", key=key, error=str(e))
            return False

    async def delete_pattern(self, pattern: str) -> int:
        try:
            keys = [key async for key in self._client.scan_iter(match=pattern)]
            if not keys:
                return 0
            return await self._client.delete(*keys)
        except RedisError as e:
            logger.warning("Cache pattern delete failed", pattern=pattern, error=str(e))
            return 0

    async def close(self) -> None:
        await self._client.aclose()
        if self._pool:
            await self._pool.disconnect()
        logger.info("Redis connection closed")


class MemoryCache(CacheBackend):
    """
    In-process cache for development and tests.

    Values are stored JSON-encoded, so callers get fresh copies and the
    same serialization rules as Redis apply.
    """

    def __init__(self, clock: Optional[Callable[[], float]] = None):
        self._entries: Dict[str, Tuple[Optional[float], str]] = {}
        self._lock = asyncio.Lock()
        self._clock = clock or time.monotonic

    async def get(self, key: str) -> Optional[Any]:
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, raw = entry
            if expires_at is not None and self._clock() >= expires_at:
                del self._entries[key]
                return None
        return _deserialize(raw)

    async def set(self, key: str, value: Any, ttl: Optional[TTL] = None) -> bool:
        serialized = _serialize(value)
        if serialized is None:
            return False
        seconds = _seconds(ttl)
        expires_at = self._clock() + seconds if seconds else None
        async with self._lock:
            self._entries[key] = (expires_at, serialized)
        return True

    async def delete(self, key: str) -> bool:
        async with self._lock:
            return self._entries.pop(key, None) is not None

    async def delete_pattern(self, pattern: str) -> int:
        async with self._lock:
            keys = [key for key in self._entries if fnmatch.fnmatchcase(key, pattern)]
            for key in keys:
                del self._entries[key]
        return len(keys)

    def keys(self):
        return list(self._entries)


async def remember(
    cache: CacheBackend,
    key: str,
    ttl: Optional[TTL],
    factory: Callable[[], Awaitable[Any]],
) -> Any:
    """
    Get from cache or compute and cache.

    Args:
        cache: Cache backend
        key: Cache key
        factory: Async function to compute value if not cached
        ttl: Time-to-live

    Returns:
        Cached or computed value; exceptions from ``factory`` propagate and
        nothing is cached
    """
    value = await cache.get(key)
    if value is not None:
        logger.debug("Cache hit", key=key)
        return value

    value = await factory()
    await cache.set(key, value, ttl)
    return value


def create_cache(settings: Optional[Settings] = None) -> CacheBackend:
    """Build the configured cache backend"""
    settings = settings or get_settings()
    if settings.cache.backend == "memory":
        return MemoryCache()
    return RedisCache.from_settings(settings.redis)
