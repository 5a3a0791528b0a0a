"""Redis connection management.

Mirrors engine.py: a pool when REDIS_URL is set, None otherwise.  Redis
only backs the verification rate limiter, so a missing or unreachable
Redis degrades to per-process limits rather than failing requests.
Certificate validity is never cached here.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import redis.asyncio as aioredis

from medcert.core.config import SETTINGS

logger = logging.getLogger(__name__)

if SETTINGS.redis_url:
    redis_pool: aioredis.Redis | None = aioredis.from_url(  # type: ignore[type-arg]
        SETTINGS.redis_url,
        decode_responses=True,
        max_connections=20,
    )
else:
    redis_pool = None


@asynccontextmanager
async def lifespan_redis():
    """Startup/shutdown hook for Redis; mirrors lifespan_db()."""
    if redis_pool is None:
        logger.info("No REDIS_URL configured; rate limiting is per-process")
        yield
        return

    try:
        await redis_pool.ping()  # type: ignore[misc]
        logger.info("Redis connected")
    except Exception:
        # Keep serving; rate limiter calls will surface the error per request.
        logger.exception("Redis connection failed on startup")

    yield

    await redis_pool.aclose()
    logger.info("Redis connection pool closed")
