"""Key/value cache plus the course catalog that reads through it.

Two kinds of data live behind ``CacheService``:

  1. Course snapshots (``course:{id}``) -- read-through with a short TTL.
     Courses are authored elsewhere, so the TTL is the only invalidation
     path besides ``CourseCatalog.invalidate``.

  2. Workflow side-state that must survive a retry from another API
     instance: pending ledger receipts and quiz results.  Those have
     their own modules (pending.py, quiz.py) and longer TTLs.

With REDIS_URL set every instance shares one Redis; otherwise the
in-memory implementation is per-process, which is fine for dev and tests.
"""

from __future__ import annotations

import json
import logging
from typing import Protocol, runtime_checkable

from academy.core.metrics import CACHE_OPERATIONS
from academy.models.course import (
    ContentValidationError,
    Course,
    course_from_dict,
    course_to_dict,
)
from academy.repos.store import LearningStore

logger = logging.getLogger(__name__)

COURSE_TTL_SECONDS = 300


@runtime_checkable
class CacheService(Protocol):
    async def get(self, key: str) -> str | None:
        """Fetch a cached value.  Returns None on cache miss."""
        ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None: ...

    async def delete(self, key: str) -> None: ...

    async def delete_pattern(self, pattern: str) -> None:
        """Delete all keys matching a glob pattern (e.g. 'course:*')."""
        ...


class InMemoryCacheService:
    """Per-process cache for dev and tests.  TTLs are accepted but not enforced."""

    def __init__(self) -> None:
        self._store: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        return self._store.get(key)

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._store[key] = value

    async def delete(self, key: str) -> None:
        self._store.pop(key, None)

    async def delete_pattern(self, pattern: str) -> None:
        prefix = pattern.rstrip("*")
        for k in [k for k in self._store if k.startswith(prefix)]:
            del self._store[k]


class RedisCacheService:
    """Redis-backed cache shared across API instances."""

    _PREFIX = "academy:"

    def __init__(self, redis_client) -> None:
        self._redis = redis_client

    async def get(self, key: str) -> str | None:
        return await self._redis.get(f"{self._PREFIX}{key}")

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        await self._redis.setex(f"{self._PREFIX}{key}", ttl_seconds, value)

    async def delete(self, key: str) -> None:
        await self._redis.delete(f"{self._PREFIX}{key}")

    async def delete_pattern(self, pattern: str) -> None:
        # SCAN, not KEYS: KEYS blocks the server for the whole keyspace walk.
        cursor = 0
        while True:
            cursor, keys = await self._redis.scan(
                cursor, match=f"{self._PREFIX}{pattern}", count=100
            )
            if keys:
                await self._redis.delete(*keys)
            if cursor == 0:
                break


def course_key(course_id: str) -> str:
    return f"course:{course_id}"


class CourseCatalog:
    """Read-through access to published courses."""

    def __init__(self, store: LearningStore, cache: CacheService) -> None:
        self._store = store
        self._cache = cache

    async def get(self, course_id: str) -> Course | None:
        key = course_key(course_id)
        cached = await self._cache.get(key)
        if cached is not None:
            try:
                course = course_from_dict(json.loads(cached))
            except (ValueError, KeyError, ContentValidationError):
                logger.warning("Dropping unreadable cache entry %s", key)
                await self._cache.delete(key)
            else:
                CACHE_OPERATIONS.labels(operation="hit").inc()
                return course

        CACHE_OPERATIONS.labels(operation="miss").inc()
        course = await self._store.get_course(course_id)
        if course is not None:
            await self._cache.set(
                key, json.dumps(course_to_dict(course)), COURSE_TTL_SECONDS
            )
        return course

    async def list(self) -> list[Course]:
        return await self._store.list_courses()

    async def invalidate(self, course_id: str | None = None) -> None:
        if course_id is None:
            await self._cache.delete_pattern("course:*")
        else:
            await self._cache.delete(course_key(course_id))
