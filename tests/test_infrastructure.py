import pytest

from school_erp.core.cache import cache_key, get_or_set, invalidate_prefix
from school_erp.core.errors import RateLimitExceeded
from school_erp.core.rate_limiter import RateLimiter


async def test_rate_limiter_memory_buckets_block_after_limit():
    limiter = RateLimiter(max_requests=3, time_window=60)
    results = [await limiter.check("10.0.0.1", "login") for _ in range(4)]
    assert [r.success for r in results] == [True, True, True, False]
    assert results[0].remaining == 2
    assert results[-1].remaining == 0


async def test_rate_limiter_keys_are_independent():
    limiter = RateLimiter(max_requests=1, time_window=60)
    assert (await limiter.check("10.0.0.1", "login")).success
    assert (await limiter.check("10.0.0.2", "login")).success
    assert (await limiter.check("10.0.0.1", "log-login")).success
    assert not (await limiter.check("10.0.0.1", "login")).success


async def test_rate_limiter_reset_clears_bucket():
    limiter = RateLimiter(max_requests=1, time_window=60)
    await limiter.check("10.0.0.1", "login")
    limiter.reset("10.0.0.1", "login")
    assert (await limiter.check("10.0.0.1", "login")).success


def test_rate_limiter_rejects_bad_configuration():
    with pytest.raises(ValueError):
        RateLimiter(max_requests=0)


def test_rate_limit_error_is_429():
    assert RateLimitExceeded().status_code == 429


def test_cache_key_skips_empty_parts():
    assert cache_key("dashboard", "GHS001", None, "") == "erp:dashboard:GHS001"


async def test_cache_without_redis_calls_loader_every_time():
    calls = []

    async def loader():
        calls.append(1)
        return {"count": len(calls)}

    assert await get_or_set("erp:test", loader) == {"count": 1}
    assert await get_or_set("erp:test", loader) == {"count": 2}
    await invalidate_prefix("erp:test")
