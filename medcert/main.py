from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from medcert.api.certificates import router as certificates_router
from medcert.api.health import router as health_router
from medcert.api.metrics_endpoint import router as metrics_router
from medcert.api.providers import seed_demo_data
from medcert.core.config import SETTINGS
from medcert.core.logging import setup_logging
from medcert.db.engine import engine, lifespan_db
from medcert.db.redis import lifespan_redis
from medcert.middleware.metrics import MetricsMiddleware
from medcert.middleware.request_context import RequestContextMiddleware

# Configure logging before anything else runs.
setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    # Nested so teardown runs in reverse order.
    async with lifespan_db():
        async with lifespan_redis():
            if SETTINGS.is_dev and engine is None:
                seed_demo_data()
            yield


app = FastAPI(
    title="medcert-service",
    lifespan=lifespan,
    docs_url="/docs" if SETTINGS.is_dev else None,
    redoc_url="/redoc" if SETTINGS.is_dev else None,
)

# The public verification page is served by the frontend.
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

# Last added runs first: RequestContext -> Metrics -> CORS -> route.
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestContextMiddleware)

app.include_router(metrics_router)
app.include_router(health_router)
app.include_router(certificates_router)

logger.info(
    "medcert-service started  env=%s log_level=%s port=%d prefix=%s docs=%s",
    SETTINGS.app_env,
    SETTINGS.log_level,
    SETTINGS.port,
    SETTINGS.certificate_prefix,
    "on" if SETTINGS.is_dev else "off",
)
