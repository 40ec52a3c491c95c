"""
Redis caching service for occasion listings.

CACHING STRATEGY
================

What we cache:
  - Dashboard occasion listing responses (JSON-serialized, with stats)
  - Cache key pattern:
    "occasions:list:venue={venue}&status={status}&from={date_from}&to={date_to}"

Invalidation strategy:
  - Any occasion write (create, update) and every successful admission
    deletes all "occasions:list:*" keys
  - TTL-based expiry as safety net (REDIS_CACHE_TTL)

What we never cache:
  - Single occasions and remaining capacity. The admission path reads
    capacity from the database inside its own transaction; a stale number
    there would oversell.

Redis is optional. When it is disabled or unreachable every call degrades to
a miss / no-op and the dashboard reads the database directly.
"""

import json
from datetime import date
from typing import Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from venue_booking.core.config import get_settings
from venue_booking.core.logging import get_logger
from venue_booking.core.metrics import record_cache_operation

logger = get_logger(__name__)

LIST_KEY_PREFIX = "occasions:list:"

_redis_client: Optional[redis.Redis] = None


async def get_redis() -> Optional[redis.Redis]:
    """Get or create Redis connection. Returns None if Redis is disabled."""
    global _redis_client
    settings = get_settings()

    if not settings.REDIS_ENABLED:
        return None

    if _redis_client is None:
        client = redis.from_url(
            settings.REDIS_URL,
            encoding="utf-8",
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
            retry_on_timeout=True,
        )
        try:
            await client.ping()
        except (RedisError, OSError) as e:
            logger.error("redis_connection_failed", error=str(e))
            await client.aclose()
            return None
        _redis_client = client
        logger.info("redis_connected", url=settings.REDIS_URL)

    return _redis_client


async def close_redis() -> None:
    """Close Redis connection on shutdown."""
    global _redis_client
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None


def make_occasion_list_key(
    venue: Optional[str],
    occasion_status: Optional[str],
    date_from: Optional[date],
    date_to: Optional[date],
) -> str:
    return (
        f"{LIST_KEY_PREFIX}venue={venue or 'all'}&status={occasion_status or 'all'}"
        f"&from={date_from or ''}&to={date_to or ''}"
    )


async def get_cached_occasions(key: str) -> Optional[dict]:
    """Retrieve a cached occasion list response."""
    client = await get_redis()
    if not client:
        return None

    try:
        data = await client.get(key)
    except RedisError as e:
        logger.error("cache_get_error", key=key, error=str(e))
        return None

    record_cache_operation("get", hit=data is not None)
    if data:
        logger.debug("cache_hit", key=key)
        return json.loads(data)
    logger.debug("cache_miss", key=key)
    return None


async def set_cached_occasions(key: str, data: dict) -> None:
    """Cache an occasion list response with TTL."""
    client = await get_redis()
    if not client:
        return

    ttl = get_settings().REDIS_CACHE_TTL
    try:
        await client.setex(key, ttl, json.dumps(data, default=str))
        logger.debug("cache_set", key=key, ttl=ttl)
    except RedisError as e:
        logger.error("cache_set_error", key=key, error=str(e))


async def invalidate_occasion_cache() -> None:
    """
    Invalidate all cached occasion listings.
    Uses SCAN to find and delete all keys matching the prefix.
    """
    client = await get_redis()
    if not client:
        return

    try:
        deleted = 0
        async for key in client.scan_iter(match=f"{LIST_KEY_PREFIX}*", count=100):
            await client.delete(key)
            deleted += 1
        logger.info("cache_invalidated", keys_deleted=deleted)
    except RedisError as e:
        logger.error("cache_invalidation_error", error=str(e))
