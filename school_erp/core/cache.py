"""
Cache-aside helper over Redis.

Values are stored as JSON. When Redis is not configured or a Redis call
fails, the loader is called directly and the request carries on.
"""
from typing import Any, Awaitable, Callable, Optional
import json
import logging

from fastapi.encoders import jsonable_encoder

from school_erp.core.config import settings
from school_erp.core.redis import get_redis

logger = logging.getLogger(__name__)

KEY_PREFIX = "erp"


def cache_key(*parts: Any) -> str:
    return ":".join([KEY_PREFIX] + [str(p) for p in parts if p is not None and p != ""])


async def get_or_set(
    key: str,
    loader: Callable[[], Awaitable[Any]],
    ttl: Optional[int] = None
) -> Any:
    client = await get_redis()
    if client is None:
        return jsonable_encoder(await loader())

    try:
        cached = await client.get(key)
        if cached is not None:
            return json.loads(cached)
    except Exception as e:
        logger.warning(f"Cache read failed for {key}: {str(e)}")

    value = jsonable_encoder(await loader())

    try:
        await client.set(key, json.dumps(value), ex=ttl or settings.CACHE_DEFAULT_TTL)
    except Exception as e:
        logger.warning(f"Cache write failed for {key}: {str(e)}")
    return value


async def invalidate_prefix(prefix: str) -> None:
    client = await get_redis()
    if client is None:
        return
    try:
        keys = [key async for key in client.scan_iter(match=f"{prefix}*")]
        if keys:
            await client.delete(*keys)
    except Exception as e:
        logger.warning(f"Cache invalidation failed for {prefix}*: {str(e)}")
