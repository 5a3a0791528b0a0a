"""Liveness and readiness endpoints.

/health answers "is the process alive" and reports each backing service;
it returns 200 even when degraded so an orchestrator does not restart a
process for a dependency outage.

/ready answers "can this instance serve certificates right now".  The
database is critical when configured: without it nothing can be issued
or verified.  Redis is not; the rate limiter falls back to per-process
buckets.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Response, status

from medcert.db.engine import engine, ping_database
from medcert.db.redis import redis_pool

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


async def _check_database() -> str:
    if engine is None:
        return "not_configured"
    try:
        await ping_database()
    except Exception:
        logger.warning("Database health check failed", exc_info=True)
        return "degraded"
    return "ok"


async def _check_redis() -> str:
    if redis_pool is None:
        return "not_configured"
    try:
        await redis_pool.ping()  # type: ignore[misc]
    except Exception:
        logger.warning("Redis health check failed", exc_info=True)
        return "degraded"
    return "ok"


@router.get("/health")
async def health() -> dict:
    checks = {
        "database": await _check_database(),
        "redis": await _check_redis(),
    }
    overall = "degraded" if "degraded" in checks.values() else "ok"
    return {"status": overall, "checks": checks}


@router.get("/ready")
async def ready() -> Response:
    if await _check_database() == "degraded":
        return Response(status_code=status.HTTP_503_SERVICE_UNAVAILABLE)
    return Response(status_code=status.HTTP_200_OK)
