from __future__ import annotations

import asyncio

from medcert.services.rate_limiter import (
    InMemoryRateLimiter,
    RateLimitConfig,
    RateLimitResult,
    _take,
    retry_after_header,
)


def test_bucket_allows_capacity_then_rejects() -> None:
    limiter = InMemoryRateLimiter()
    config = RateLimitConfig(capacity=3, refill_rate=0.001)

    async def _drain() -> list[bool]:
        return [(await limiter.check("ip:1", config)).allowed for _ in range(4)]

    assert asyncio.run(_drain()) == [True, True, True, False]


def test_keys_have_separate_buckets() -> None:
    limiter = InMemoryRateLimiter()
    config = RateLimitConfig(capacity=1, refill_rate=0.001)

    async def _run() -> tuple[bool, bool]:
        await limiter.check("ip:1", config)
        a = await limiter.check("ip:1", config)
        b = await limiter.check("ip:2", config)
        return a.allowed, b.allowed

    assert asyncio.run(_run()) == (False, True)


def test_reset_refills_bucket() -> None:
    limiter = InMemoryRateLimiter()
    config = RateLimitConfig(capacity=1, refill_rate=0.001)

    async def _run() -> bool:
        await limiter.check("user:x", config)
        await limiter.reset("user:x")
        return (await limiter.check("user:x", config)).allowed

    assert asyncio.run(_run()) is True


def test_take_refills_over_elapsed_time() -> None:
    config = RateLimitConfig(capacity=30, refill_rate=0.5)
    tokens, result = _take(0.0, 4.0, config)  # 4s at 0.5/s -> 2 tokens
    assert result.allowed
    assert tokens == 1.0


def test_take_never_exceeds_capacity() -> None:
    config = RateLimitConfig(capacity=5, refill_rate=1.0)
    tokens, _ = _take(5.0, 1000.0, config)
    assert tokens == 4.0


def test_rejection_reports_time_to_next_token() -> None:
    config = RateLimitConfig(capacity=30, refill_rate=0.5)
    _, result = _take(0.0, 0.0, config)
    assert not result.allowed
    assert result.retry_after == 2.0
    assert retry_after_header(result) == "2"


def test_retry_after_header_is_at_least_one_second() -> None:
    result = RateLimitResult(allowed=False, remaining=0, limit=10, retry_after=0.2)
    assert retry_after_header(result) == "1"
