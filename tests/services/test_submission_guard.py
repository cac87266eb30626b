from __future__ import annotations

import asyncio

import pytest

from academy.services.errors import ErrorKind, WorkflowError
from academy.services.submission_guard import (
    InMemorySubmissionGuard,
    RedisSubmissionGuard,
    claimed,
)


class FakeRedis:
    """Just enough of redis.asyncio.Redis for SET NX and the release script."""

    def __init__(self) -> None:
        self.data: dict[str, str] = {}

    async def set(self, key, value, nx=False, ex=None):
        if nx and key in self.data:
            return None
        self.data[key] = value
        return True

    async def eval(self, script, numkeys, key, token):
        if self.data.get(key) == token:
            del self.data[key]
            return 1
        return 0


def test_second_acquire_fails_while_held() -> None:
    guard = InMemorySubmissionGuard()

    async def scenario():
        return await guard.acquire("k", 60), await guard.acquire("k", 60)

    first, second = asyncio.run(scenario())
    assert first is not None
    assert second is None


def test_expired_claim_can_be_taken() -> None:
    guard = InMemorySubmissionGuard()

    async def scenario() -> str | None:
        await guard.acquire("k", 0)
        return await guard.acquire("k", 60)

    assert asyncio.run(scenario()) is not None


def test_stale_release_keeps_newer_claim() -> None:
    guard = InMemorySubmissionGuard()

    async def scenario() -> str | None:
        stale = await guard.acquire("k", 0)
        fresh = await guard.acquire("k", 60)
        assert stale is not None and fresh is not None and stale != fresh
        await guard.release("k", stale)
        return await guard.acquire("k", 60)

    assert asyncio.run(scenario()) is None


def test_claimed_releases_on_exit() -> None:
    guard = InMemorySubmissionGuard()

    async def scenario() -> str | None:
        async with claimed(guard, "k", 60):
            pass
        return await guard.acquire("k", 60)

    assert asyncio.run(scenario()) is not None


def test_claimed_releases_on_error() -> None:
    guard = InMemorySubmissionGuard()

    async def scenario() -> None:
        async with claimed(guard, "k", 60):
            raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        asyncio.run(scenario())
    assert "k" not in guard._held


def test_claimed_refuses_held_key() -> None:
    guard = InMemorySubmissionGuard()

    async def scenario() -> None:
        async with claimed(guard, "k", 60):
            async with claimed(guard, "k", 60):
                pass

    with pytest.raises(WorkflowError) as exc_info:
        asyncio.run(scenario())
    assert exc_info.value.kind is ErrorKind.OPERATION_IN_PROGRESS


def test_redis_guard_release_only_drops_own_claim() -> None:
    redis = FakeRedis()
    guard = RedisSubmissionGuard(redis)

    async def scenario() -> None:
        token = await guard.acquire("k", 60)
        assert token is not None
        assert await guard.acquire("k", 60) is None

        # Our claim expired and another request took the key.
        redis.data["academy:inflight:k"] = "someone-else"
        await guard.release("k", token)
        assert redis.data["academy:inflight:k"] == "someone-else"

        await guard.release("k", "someone-else")
        assert "academy:inflight:k" not in redis.data

    asyncio.run(scenario())
