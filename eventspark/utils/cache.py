from typing import Any, Callable, Coroutine, Optional
import json
import logging

import redis.asyncio as redis
from redis.exceptions import RedisError

from ..core.config import settings

logger = logging.getLogger(__name__)

_redis_client: Optional[redis.Redis] = None


async def init_redis(url: str) -> None:
    """
    Initialize global redis client. Call on FastAPI startup.
    """
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.from_url(url, decode_responses=True)


async def close_redis() -> None:
    """
    Close global redis connection. Call on FastAPI shutdown.
    """
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None


def get_redis() -> redis.Redis:
    """
    Return initialized redis client or raise.
    """
    if _redis_client is None:
        raise RuntimeError("Redis is not initialized. Call init_redis on startup.")
    return _redis_client


def cache_enabled() -> bool:
    return settings.CACHE_ENABLED and _redis_client is not None


def make_key(key: str) -> str:
    return f"{settings.cache.KEY_PREFIX}{key}"


async def cache_get(
        key: str,
        ttl: int,
        db_loader: Callable[[], Coroutine[Any, Any, Any]],
        serializer: Callable[[Any], str],
        deserializer: Callable[[str], Any] = lambda s: json.loads(s),
) -> Any:
    """
    Caching-aside helper:
    - Try to read `key` from Redis.
    - If present, return deserialized value.
    - If missing, call async db_loader(), serialize with `serializer`, set with TTL and return DB object.
    - With caching disabled the loader is called directly.
    A Redis outage degrades to the loader instead of failing the request.
    """
    if not cache_enabled():
        return await db_loader()

    r = get_redis()
    full_key = make_key(key)
    try:
        cached = await r.get(full_key)
    except RedisError as e:
        logger.warning(f"Cache read failed for {full_key}: {e}")
        return await db_loader()
    if cached is not None:
        return deserializer(cached)

    obj = await db_loader()
    if obj is None:
        return None

    try:
        await r.set(full_key, serializer(obj), ex=ttl)
    except RedisError as e:
        logger.warning(f"Cache write failed for {full_key}: {e}")
    return obj


async def get_version(key: str) -> int:
    if not cache_enabled():
        return 0
    try:
        value = await get_redis().get(make_key(key))
    except RedisError as e:
        logger.warning(f"Cache version read failed for {key}: {e}")
        return 0
    return int(value or 0)


async def bump_version(key: str) -> None:
    """Increment a version key, orphaning every cache entry built on the old one."""
    if not cache_enabled():
        return
    try:
        await get_redis().incr(make_key(key))
    except RedisError as e:
        logger.warning(f"Cache version bump failed for {key}: {e}")


async def invalidate_cache(key: str) -> None:
    """
    Delete key from cache (explicit invalidation).
    """
    if not cache_enabled():
        return
    try:
        await get_redis().delete(make_key(key))
    except RedisError as e:
        logger.warning(f"Cache invalidation failed for {key}: {e}")


async def health_check() -> dict[str, Any]:
    if not cache_enabled():
        return {"status": "disabled"}
    try:
        await get_redis().ping()
    except RedisError as e:
        logger.error(f"Redis health check failed: {e}")
        return {"status": "error", "message": str(e)}
    return {"status": "healthy"}
