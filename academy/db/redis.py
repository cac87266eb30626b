"""Redis connection management.

Mirrors engine.py: with REDIS_URL set there is one shared connection
pool, otherwise ``redis_pool`` is None and every consumer falls back to
its in-memory implementation.

Redis holds the short-lived shared state that must be visible to every
API instance: the course cache, pending ledger receipts awaiting a
persistence retry, the latest quiz result per module, and the
submission guard that stops a double-clicked "enroll" from paying twice.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import redis.asyncio as aioredis

from academy.core.config import SETTINGS

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
    """Verify connectivity on startup and release the pool on shutdown."""
    if redis_pool is None:
        logger.info("No REDIS_URL configured, shared state uses in-memory fallbacks")
        yield
        return

    try:
        await redis_pool.ping()  # type: ignore[misc]
        logger.info("Redis connected: %s", SETTINGS.redis_url)
    except Exception:
        # Start anyway; /health reports redis as degraded.
        logger.exception("Redis connection failed on startup")
        yield
        return

    try:
        yield
    finally:
        await redis_pool.aclose()
        logger.info("Redis connection pool closed")
