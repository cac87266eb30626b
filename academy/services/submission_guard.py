"""Double-submit protection for ledger-touching operations.

A learner who double-clicks "Enroll" must not pay twice.  Before an
enrollment or mint starts, the caller claims ``{operation}:{learner}:{course}``;
a second claim while the first is still held fails and the request is
answered with OPERATION_IN_PROGRESS instead of reaching the ledger.

Claims carry a TTL slightly longer than the ledger timeout so a crashed
worker cannot wedge a learner forever.  Each claim gets its own token and
release only drops the claim holding that token: a request that outlived
its TTL must not free a key someone else has claimed since.
"""

from __future__ import annotations

import secrets
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Protocol, runtime_checkable

from academy.services.errors import ErrorKind, WorkflowError

# Delete the key only while it still holds the caller's token.
_RELEASE_SCRIPT = """
if redis.call('get', KEYS[1]) == ARGV[1] then
    return redis.call('del', KEYS[1])
end
return 0
"""


def _new_token() -> str:
    return secrets.token_hex(16)


@runtime_checkable
class SubmissionGuard(Protocol):
    async def acquire(self, key: str, ttl_seconds: int) -> str | None:
        """Claim ``key`` and return the claim token, or None when it is held."""
        ...

    async def release(self, key: str, token: str) -> None: ...


class InMemorySubmissionGuard:
    def __init__(self) -> None:
        # key -> (token, expiry timestamp in Unix seconds)
        self._held: dict[str, tuple[str, float]] = {}

    async def acquire(self, key: str, ttl_seconds: int) -> str | None:
        now = time.time()
        held = self._held.get(key)
        if held is not None and held[1] > now:
            return None
        token = _new_token()
        self._held[key] = (token, now + ttl_seconds)
        return token

    async def release(self, key: str, token: str) -> None:
        held = self._held.get(key)
        if held is not None and held[0] == token:
            del self._held[key]


class RedisSubmissionGuard:
    _PREFIX = "academy:inflight:"

    def __init__(self, redis_client) -> None:
        self._redis = redis_client

    async def acquire(self, key: str, ttl_seconds: int) -> str | None:
        token = _new_token()
        # SET NX EX claims and expires in one command.
        if await self._redis.set(f"{self._PREFIX}{key}", token, nx=True, ex=ttl_seconds):
            return token
        return None

    async def release(self, key: str, token: str) -> None:
        await self._redis.eval(_RELEASE_SCRIPT, 1, f"{self._PREFIX}{key}", token)


@asynccontextmanager
async def claimed(
    guard: SubmissionGuard, key: str, ttl_seconds: int
) -> AsyncIterator[None]:
    """Hold ``key`` for the duration of the block, or raise OPERATION_IN_PROGRESS."""
    token = await guard.acquire(key, ttl_seconds)
    if token is None:
        raise WorkflowError(
            ErrorKind.OPERATION_IN_PROGRESS,
            "another request for this course is still running",
        )
    try:
        yield
    finally:
        await guard.release(key, token)
