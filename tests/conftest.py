from __future__ import annotations

import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from academy.core.config import Settings
from academy.main import app
from academy.repos.store import InMemoryLearningStore, PersistenceError
from academy.services.cache import InMemoryCacheService
from academy.services.hints import HintService, OfflineHintService
from academy.services.ledger import InMemoryLedgerService
from academy.services.platform import Platform, build_platform, sample_courses
from academy.services.submission_guard import InMemorySubmissionGuard

# Ensure repo root is on sys.path so `import academy` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

LEARNER = "0x1234567890abcdef1234567890abcdef12345678"
OTHER_LEARNER = "0xfedcba0987654321fedcba0987654321fedcba09"
CREATOR = "0x8ba1f109551bd432803012645ac136ddd64dba72"

FREE_COURSE = "blockchain-fundamentals"  # 4 modules, quiz on bf-2
PAID_COURSE = "smart-contracts-kaia"  # 3 modules, price 10

NOW = 1_700_000_000


def fixed_clock() -> int:
    return NOW


def settings_for_tests(**overrides) -> Settings:
    values = dict(
        app_env="test",
        log_level="info",
        log_json=False,
        port=8000,
        database_url=None,
        redis_url=None,
        ledger_timeout_seconds=5.0,
    )
    values.update(overrides)
    return Settings(**values)  # type: ignore[arg-type]


class FlakyStore(InMemoryLearningStore):
    """In-memory store whose calls can be made to fail once, by method name."""

    def __init__(self, courses=()) -> None:
        super().__init__(courses)
        self._fail: set[str] = set()

    def fail_next(self, method: str) -> None:
        self._fail.add(method)

    def _maybe_fail(self, method: str) -> None:
        if method in self._fail:
            self._fail.discard(method)
            raise PersistenceError(f"{method}: connection reset")

    async def get_enrollment(self, learner, course_id):
        self._maybe_fail("get_enrollment")
        return await super().get_enrollment(learner, course_id)

    async def create_enrollment(self, *args, **kwargs):
        self._maybe_fail("create_enrollment")
        return await super().create_enrollment(*args, **kwargs)

    async def create_transaction(self, record):
        self._maybe_fail("create_transaction")
        return await super().create_transaction(record)

    async def update_enrollment_progress(self, *args, **kwargs):
        self._maybe_fail("update_enrollment_progress")
        return await super().update_enrollment_progress(*args, **kwargs)

    async def upsert_certificate_flag(self, *args, **kwargs):
        self._maybe_fail("upsert_certificate_flag")
        return await super().upsert_certificate_flag(*args, **kwargs)

    async def upsert_rating(self, rating):
        self._maybe_fail("upsert_rating")
        return await super().upsert_rating(rating)


class UnreachablePendingCache(InMemoryCacheService):
    """Cache that accepts course snapshots but refuses every pending-receipt write."""

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        if key.startswith("pending-"):
            raise ConnectionError(f"{key}: connection refused")
        await super().set(key, value, ttl_seconds)


def make_platform(
    *,
    settings: Settings | None = None,
    ledger: InMemoryLedgerService | None = None,
    store: InMemoryLearningStore | None = None,
    hint_service: HintService | None = None,
    cache: InMemoryCacheService | None = None,
) -> Platform:
    return build_platform(
        settings or settings_for_tests(),
        store=store if store is not None else FlakyStore(sample_courses()),
        cache=cache if cache is not None else InMemoryCacheService(),
        ledger=ledger if ledger is not None else InMemoryLedgerService(),
        hint_service=hint_service or OfflineHintService(),
        guard=InMemorySubmissionGuard(),
        clock=fixed_clock,
    )


@pytest.fixture
def platform() -> Platform:
    return make_platform()


@pytest.fixture
def ledger(platform: Platform) -> InMemoryLedgerService:
    assert isinstance(platform.ledger, InMemoryLedgerService)
    return platform.ledger


@pytest.fixture
def store(platform: Platform) -> FlakyStore:
    assert isinstance(platform.store, FlakyStore)
    return platform.store


@pytest.fixture(autouse=True)
def reset_app_platform(platform: Platform) -> None:
    """Every test gets a fresh object graph on the app."""
    app.state.platform = platform


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


def wallet(address: str = LEARNER) -> dict[str, str]:
    return {"X-Wallet-Address": address}
