from typing import Optional
import logging

from redis import asyncio as aioredis

from school_erp.core.config import settings

logger = logging.getLogger(__name__)

redis_client: Optional[aioredis.Redis] = None
_connect_failed = False


async def init_redis() -> Optional[aioredis.Redis]:
    """
    Connect to Redis when REDIS_URL is configured.
    Returns None (and remembers the failure) when Redis is not configured or unreachable.
    """
    global redis_client, _connect_failed
    if not settings.REDIS_URL:
        return None
    try:
        client = aioredis.from_url(settings.REDIS_URL, decode_responses=True)
        await client.ping()
        redis_client = client
        _connect_failed = False
        logger.info("Redis connection established successfully")
    except Exception as e:
        logger.warning(f"Redis unavailable, using fallbacks: {str(e)}")
        redis_client = None
        _connect_failed = True
    return redis_client


async def close_redis() -> None:
    """Close Redis connection"""
    global redis_client
    if redis_client:
        await redis_client.aclose()
        redis_client = None
        logger.info("Redis connection closed")


async def get_redis() -> Optional[aioredis.Redis]:
    """Get the Redis client, or None when running without Redis"""
    if redis_client is None and not _connect_failed:
        await init_redis()
    return redis_client
