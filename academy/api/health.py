"""Health and readiness endpoints.

/health (liveness) answers 200 as long as the process can respond; the
``status`` field says whether a dependency is impaired.  /ready answers
503 only when PostgreSQL is configured and unreachable: every other
backing service has an in-memory fallback, the learning store does not.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Response
from redis.exceptions import RedisError
from sqlalchemy.exc import SQLAlchemyError

from academy.api.dependencies import PlatformDep
from academy.db.engine import engine, ping_database
from academy.db.redis import redis_pool

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


async def _database_ok() -> bool:
    try:
        return await ping_database()
    except (SQLAlchemyError, OSError):
        logger.exception("Database ping failed")
        return False


@router.get("/health")
async def health(platform: PlatformDep) -> dict:
    checks: dict[str, str] = {}
    overall = "ok"

    if redis_pool is not None:
        try:
            await redis_pool.ping()  # type: ignore[misc]
            checks["redis"] = "ok"
        except (RedisError, OSError):
            logger.exception("Redis ping failed")
            checks["redis"] = "degraded"
            overall = "degraded"
    else:
        checks["redis"] = "not_configured"

    if engine is not None:
        if await _database_ok():
            checks["database"] = "ok"
        else:
            checks["database"] = "degraded"
            overall = "degraded"
    else:
        checks["database"] = "not_configured"

    checks["ledger"] = platform.ledger_mode
    checks["hints"] = platform.hint_mode

    return {"status": overall, "checks": checks}


@router.get("/ready")
async def ready() -> Response:
    if engine is not None and not await _database_ok():
        return Response(status_code=503)
    return Response(status_code=200)
