"""Token-bucket rate limiting for the public verification endpoint.

A bucket holds up to `capacity` tokens and refills at `refill_rate`
tokens per second; each request takes one.  Bursts (a QR scan followed by
a page reload) pass, but sustained guessing of certificate numbers from
one client is throttled to the refill rate.

Each bucket is two numbers: remaining tokens and last refill time.
"""

from __future__ import annotations

import math
import time
from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass(frozen=True, slots=True)
class RateLimitResult:
    allowed: bool
    remaining: int
    limit: int
    retry_after: float  # seconds until the next token; 0 when allowed


@dataclass(frozen=True, slots=True)
class RateLimitConfig:
    capacity: int = 60
    refill_rate: float = 1.0  # tokens per second


@runtime_checkable
class RateLimiter(Protocol):
    async def check(self, key: str, config: RateLimitConfig) -> RateLimitResult: ...
    async def reset(self, key: str) -> None: ...


def _take(
    tokens: float, elapsed: float, config: RateLimitConfig
) -> tuple[float, RateLimitResult]:
    """Refill for `elapsed` seconds, then try to take one token."""
    tokens = min(config.capacity, tokens + elapsed * config.refill_rate)
    if tokens >= 1:
        tokens -= 1
        return tokens, RateLimitResult(True, int(tokens), config.capacity, 0)
    retry_after = (1 - tokens) / config.refill_rate
    return tokens, RateLimitResult(False, 0, config.capacity, retry_after)


class InMemoryRateLimiter:
    """Per-process buckets; each API replica limits independently."""

    def __init__(self) -> None:
        # key -> (tokens, last_refill_monotonic)
        self._buckets: dict[str, tuple[float, float]] = {}

    async def check(self, key: str, config: RateLimitConfig) -> RateLimitResult:
        now = time.monotonic()
        tokens, last = self._buckets.get(key, (float(config.capacity), now))
        tokens, result = _take(tokens, now - last, config)
        self._buckets[key] = (tokens, now)
        return result

    async def reset(self, key: str) -> None:
        self._buckets.pop(key, None)


class RedisRateLimiter:
    """Buckets shared by all replicas.

    The refill/take step runs as a Lua script so it is atomic in Redis;
    a client-side read-modify-write would let concurrent requests spend
    the same token.
    """

    # KEYS[1] bucket; ARGV capacity, refill_rate, now
    # returns {allowed, remaining, retry_after_ms}
    _LUA_SCRIPT = """
    local capacity = tonumber(ARGV[1])
    local rate = tonumber(ARGV[2])
    local now = tonumber(ARGV[3])
    local state = redis.call('HMGET', KEYS[1], 'tokens', 'ts')
    local tokens = tonumber(state[1]) or capacity
    local ts = tonumber(state[2]) or now

    tokens = math.min(capacity, tokens + (now - ts) * rate)
    local allowed = 0
    local retry_ms = 0
    if tokens >= 1 then
        tokens = tokens - 1
        allowed = 1
    else
        retry_ms = math.ceil((1 - tokens) / rate * 1000)
    end

    redis.call('HSET', KEYS[1], 'tokens', tokens, 'ts', now)
    redis.call('EXPIRE', KEYS[1], math.ceil(capacity / rate) + 60)
    return {allowed, math.floor(tokens), retry_ms}
    """

    _PREFIX = "ratelimit:"

    def __init__(self, redis_client) -> None:
        self._redis = redis_client
        self._script = redis_client.register_script(self._LUA_SCRIPT)

    async def check(self, key: str, config: RateLimitConfig) -> RateLimitResult:
        allowed, remaining, retry_ms = await self._script(
            keys=[f"{self._PREFIX}{key}"],
            args=[config.capacity, config.refill_rate, time.time()],
        )
        return RateLimitResult(
            allowed=bool(allowed),
            remaining=int(remaining),
            limit=config.capacity,
            retry_after=retry_ms / 1000,
        )

    async def reset(self, key: str) -> None:
        await self._redis.delete(f"{self._PREFIX}{key}")


def retry_after_header(result: RateLimitResult) -> str:
    return str(max(1, math.ceil(result.retry_after)))
