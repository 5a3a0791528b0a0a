"""Rate limiting dependency for FastAPI routes.

A dependency rather than middleware so only the routes that need it pay
for it; today that is the anonymous verification endpoint.

Keys: authenticated callers by user id (from the token's sub, read
without verification; a forged sub only buys the forger a separate
bucket), everyone else by client IP.
"""

from __future__ import annotations

import logging

import jwt as pyjwt
from fastapi import HTTPException, Request, status
from redis.exceptions import RedisError

from medcert.core.metrics import RATE_LIMIT_HITS
from medcert.db.redis import redis_pool
from medcert.services.rate_limiter import (
    InMemoryRateLimiter,
    RateLimitConfig,
    RateLimiter,
    RedisRateLimiter,
    retry_after_header,
)

logger = logging.getLogger(__name__)

if redis_pool is not None:
    _rate_limiter: RateLimiter = RedisRateLimiter(redis_pool)
else:
    _rate_limiter = InMemoryRateLimiter()

# Takes over while Redis is unreachable; limits become per-process.
_fallback_limiter = InMemoryRateLimiter()

_DEFAULT_CONFIG = RateLimitConfig()


def require_rate_limit(config: RateLimitConfig = _DEFAULT_CONFIG):
    """Dependency factory: enforce a token bucket on a route."""

    async def _check(request: Request) -> None:
        key = _build_key(request)
        try:
            result = await _rate_limiter.check(key, config)
        except RedisError as e:
            logger.warning("Rate limiter unavailable, using local buckets: %s", e)
            result = await _fallback_limiter.check(key, config)

        if not result.allowed:
            RATE_LIMIT_HITS.labels(
                key_type="user" if key.startswith("user:") else "ip"
            ).inc()
            logger.warning("Rate limit exceeded key=%s path=%s", key, request.url.path)
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail="Rate limit exceeded",
                headers={
                    "Retry-After": retry_after_header(result),
                    "X-RateLimit-Limit": str(result.limit),
                    "X-RateLimit-Remaining": "0",
                },
            )

    return _check


def _build_key(request: Request) -> str:
    auth_header = request.headers.get("authorization", "")
    if auth_header.startswith("Bearer "):
        try:
            claims = pyjwt.decode(auth_header[7:], options={"verify_signature": False})
        except pyjwt.InvalidTokenError:
            claims = {}
        sub = claims.get("sub")
        if sub:
            return f"user:{sub}"

    client_ip = request.client.host if request.client else "unknown"
    return f"ip:{client_ip}"
