from typing import Dict, Optional, Any
from dataclasses import dataclass
import time
import logging
from collections import defaultdict
from threading import Lock

from fastapi import Request

from school_erp.core.config import settings
from school_erp.core.errors import RateLimitExceeded
from school_erp.core.redis import get_redis

logger = logging.getLogger(__name__)


@dataclass
class RateLimitResult:
    success: bool
    limit: int
    remaining: int
    reset_at: int

    def headers(self) -> Dict[str, str]:
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset_at),
        }


def get_client_ip(request: Request) -> str:
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()
    return request.client.host if request.client else "unknown"


class RateLimiter:
    """
    Fixed-window rate limiter.

    Counts live in Redis (INCR + EXPIRE) when it is reachable, otherwise in a
    process-local bucket map. Any error while counting lets the request through.
    """

    def __init__(
        self,
        max_requests: int = 100,
        time_window: int = 60,
        cleanup_interval: int = 300
    ):
        if max_requests <= 0 or time_window <= 0:
            raise ValueError("max_requests and time_window must be positive")

        self.max_requests = max_requests
        self.time_window = time_window
        self._buckets: Dict[str, Dict[str, Any]] = defaultdict(dict)
        self._last_cleanup = time.time()
        self._cleanup_interval = cleanup_interval
        self._lock = Lock()

    def _generate_key(self, identifier: str, key_prefix: str) -> str:
        return f"ratelimit:{key_prefix}:{identifier}"

    def _cleanup_expired(self) -> None:
        """Remove expired buckets so the map does not grow without bound."""
        current_time = time.time()
        if current_time - self._last_cleanup < self._cleanup_interval:
            return

        with self._lock:
            expired_keys = [
                key for key, bucket in self._buckets.items()
                if bucket.get("reset_time", 0) < current_time
            ]
            for key in expired_keys:
                del self._buckets[key]
            self._last_cleanup = current_time

    async def _check_redis(self, client, key: str, limit: int, window: int) -> RateLimitResult:
        count = await client.incr(key)
        if count == 1:
            await client.expire(key, window)
        ttl = await client.ttl(key)
        if ttl is None or ttl < 0:
            await client.expire(key, window)
            ttl = window
        return RateLimitResult(
            success=count <= limit,
            limit=limit,
            remaining=max(0, limit - count),
            reset_at=int(time.time()) + int(ttl),
        )

    def _check_memory(self, key: str, limit: int, window: int) -> RateLimitResult:
        self._cleanup_expired()
        current_time = time.time()

        with self._lock:
            bucket = self._buckets[key]
            if not bucket or current_time >= bucket["reset_time"]:
                bucket.update({"count": 0, "reset_time": current_time + window})

            bucket["count"] += 1
            count = bucket["count"]
            return RateLimitResult(
                success=count <= limit,
                limit=limit,
                remaining=max(0, limit - count),
                reset_at=int(bucket["reset_time"]),
            )

    async def check(
        self,
        identifier: str,
        key_prefix: str,
        max_requests: Optional[int] = None,
        time_window: Optional[int] = None
    ) -> RateLimitResult:
        limit = max(1, max_requests or self.max_requests)
        window = max(1, time_window or self.time_window)
        key = self._generate_key(identifier, key_prefix)

        try:
            client = await get_redis()
            if client is not None:
                try:
                    result = await self._check_redis(client, key, limit, window)
                except Exception as e:
                    logger.warning(f"Redis rate limit failed, using memory buckets: {str(e)}")
                    result = self._check_memory(key, limit, window)
            else:
                result = self._check_memory(key, limit, window)
        except Exception as e:
            logger.error(f"Rate limit check error: {str(e)}", exc_info=True)
            return RateLimitResult(True, limit, limit, int(time.time()) + window)

        if not result.success:
            logger.warning(f"Rate limit exceeded for {key}")
        return result

    async def check_request(
        self,
        request: Request,
        key_prefix: str,
        max_requests: Optional[int] = None,
        time_window: Optional[int] = None
    ) -> RateLimitResult:
        return await self.check(get_client_ip(request), key_prefix, max_requests, time_window)

    async def enforce(
        self,
        request: Request,
        key_prefix: str,
        max_requests: Optional[int] = None,
        time_window: Optional[int] = None
    ) -> RateLimitResult:
        result = await self.check_request(request, key_prefix, max_requests, time_window)
        if not result.success:
            error = RateLimitExceeded(details={"retry_after": max(0, result.reset_at - int(time.time()))})
            error.headers = result.headers()
            raise error
        return result

    def reset(self, identifier: str, key_prefix: str) -> None:
        key = self._generate_key(identifier, key_prefix)
        with self._lock:
            self._buckets.pop(key, None)

    def reset_all(self) -> None:
        with self._lock:
            self._buckets.clear()


rate_limiter = RateLimiter(
    max_requests=settings.RATE_LIMIT_MAX_REQUESTS,
    time_window=settings.RATE_LIMIT_WINDOW_SECONDS,
)
