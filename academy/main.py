from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from academy.api.certificates import router as certificates_router
from academy.api.courses import router as courses_router
from academy.api.enrollments import router as enrollments_router
from academy.api.errors import register_error_handlers
from academy.api.health import router as health_router
from academy.api.hints import router as hints_router
from academy.api.learning import router as learning_router
from academy.api.metrics_endpoint import router as metrics_router
from academy.api.profile import router as profile_router
from academy.core.config import SETTINGS
from academy.core.logging import setup_logging
from academy.db.engine import lifespan_db
from academy.db.redis import lifespan_redis
from academy.middleware.metrics import MetricsMiddleware
from academy.middleware.request_context import RequestContextMiddleware
from academy.services.platform import build_platform

# Configure logging before anything else runs.
setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # Nested so teardown runs in reverse order even if one fails.
    async with lifespan_db():
        async with lifespan_redis():
            try:
                yield
            finally:
                await app.state.platform.aclose()


app = FastAPI(
    title="academy",
    lifespan=lifespan,
    docs_url="/docs" if SETTINGS.is_dev else None,
    redoc_url="/redoc" if SETTINGS.is_dev else None,
)

app.state.platform = build_platform(SETTINGS)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Last added runs first: RequestContext -> Metrics -> CORS -> route.
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestContextMiddleware)

register_error_handlers(app)

app.include_router(metrics_router)
app.include_router(health_router)
app.include_router(courses_router)
app.include_router(learning_router)
app.include_router(certificates_router)
app.include_router(enrollments_router)
app.include_router(profile_router)
app.include_router(hints_router)

logger.info(
    "academy started  env=%s log_level=%s port=%d docs=%s",
    SETTINGS.app_env,
    SETTINGS.log_level,
    SETTINGS.port,
    "on" if SETTINGS.is_dev else "off",
)
