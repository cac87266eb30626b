"""Object graph for one running service.

``build_platform`` picks each collaborator the same way the db and redis
modules do: configured means the real backend, unset means the
in-memory stand-in.  Keyword overrides let tests swap any single piece.

The result is stored on ``app.state.platform`` and handed to routes
through the ``get_platform`` dependency, so there is no ambient global
session: every workflow receives the SessionState instance it refreshes.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from academy.core.config import Settings
from academy.db.engine import async_session_factory
from academy.db.redis import redis_pool
from academy.models.course import course_from_dict
from academy.repos.pg_store import PgLearningStore
from academy.repos.store import InMemoryLearningStore, LearningStore
from academy.services.cache import (
    CacheService,
    CourseCatalog,
    InMemoryCacheService,
    RedisCacheService,
)
from academy.services.certificate_trigger import CertificateTrigger
from academy.services.enrollment_manager import EnrollmentManager
from academy.services.hints import (
    HintAssistant,
    HintService,
    OfflineHintService,
    OpenAIHintService,
)
from academy.services.ledger import HttpLedgerService, InMemoryLedgerService, LedgerService
from academy.services.pending import PendingReceipts
from academy.services.profiles import ProfileService
from academy.services.progress_tracker import ProgressTracker
from academy.services.quiz import QuizGate
from academy.services.session_state import SessionState
from academy.services.submission_guard import (
    InMemorySubmissionGuard,
    RedisSubmissionGuard,
    SubmissionGuard,
)

logger = logging.getLogger(__name__)


def _epoch() -> int:
    return int(time.time())


@dataclass
class Platform:
    settings: Settings
    store: LearningStore
    cache: CacheService
    catalog: CourseCatalog
    ledger: LedgerService
    hint_service: HintService
    hints: HintAssistant
    guard: SubmissionGuard
    pending: PendingReceipts
    session: SessionState
    enrollments: EnrollmentManager
    progress: ProgressTracker
    certificates: CertificateTrigger
    profiles: ProfileService

    @property
    def ledger_mode(self) -> str:
        return "gateway" if isinstance(self.ledger, HttpLedgerService) else "in-memory"

    @property
    def hint_mode(self) -> str:
        return "openai" if isinstance(self.hint_service, OpenAIHintService) else "offline"

    async def aclose(self) -> None:
        if isinstance(self.ledger, HttpLedgerService):
            await self.ledger.aclose()


def build_platform(
    settings: Settings,
    *,
    store: LearningStore | None = None,
    cache: CacheService | None = None,
    ledger: LedgerService | None = None,
    hint_service: HintService | None = None,
    guard: SubmissionGuard | None = None,
    clock: Callable[[], int] = _epoch,
) -> Platform:
    if store is None:
        if async_session_factory is not None:
            store = PgLearningStore(async_session_factory)
        else:
            seed = sample_courses() if settings.is_dev else []
            store = InMemoryLearningStore(seed)
    if cache is None:
        cache = RedisCacheService(redis_pool) if redis_pool is not None else InMemoryCacheService()
    if guard is None:
        guard = (
            RedisSubmissionGuard(redis_pool)
            if redis_pool is not None
            else InMemorySubmissionGuard()
        )
    if ledger is None:
        if settings.ledger_gateway_url:
            ledger = HttpLedgerService(
                settings.ledger_gateway_url,
                currency=settings.platform_currency,
                timeout_seconds=settings.ledger_timeout_seconds,
            )
        else:
            ledger = InMemoryLedgerService()
    if hint_service is None:
        if settings.openai_api_key:
            hint_service = OpenAIHintService(
                settings.openai_api_key, model=settings.hint_model
            )
        else:
            hint_service = OfflineHintService()

    catalog = CourseCatalog(store, cache)
    pending = PendingReceipts(cache)
    session = SessionState(store)
    platform = Platform(
        settings=settings,
        store=store,
        cache=cache,
        catalog=catalog,
        ledger=ledger,
        hint_service=hint_service,
        hints=HintAssistant(hint_service),
        guard=guard,
        pending=pending,
        session=session,
        enrollments=EnrollmentManager(
            store=store,
            catalog=catalog,
            ledger=ledger,
            pending=pending,
            guard=guard,
            session=session,
            currency=settings.platform_currency,
            ledger_timeout_seconds=settings.ledger_timeout_seconds,
            clock=clock,
        ),
        progress=ProgressTracker(
            store=store,
            catalog=catalog,
            quiz_gate=QuizGate(cache),
            session=session,
            clock=clock,
        ),
        certificates=CertificateTrigger(
            store=store,
            catalog=catalog,
            ledger=ledger,
            pending=pending,
            guard=guard,
            session=session,
            certificate_base_url=settings.certificate_base_url,
            ledger_timeout_seconds=settings.ledger_timeout_seconds,
            clock=clock,
        ),
        profiles=ProfileService(store, clock=clock),
    )
    logger.info(
        "Platform ready store=%s ledger=%s hints=%s",
        type(store).__name__,
        platform.ledger_mode,
        platform.hint_mode,
    )
    return platform


# ---------------------------------------------------------------------------
# Development catalog
# ---------------------------------------------------------------------------

_CREATOR = "0x8ba1f109551bd432803012645ac136ddd64dba72"


def sample_courses():
    """Two published courses for local development (in-memory store only)."""
    raw = [
        {
            "id": "blockchain-fundamentals",
            "title": "Blockchain Fundamentals",
            "ownerAddress": _CREATOR,
            "price": "0",
            "description": "Blocks, hashes and consensus from first principles.",
            "category": "Blockchain",
            "level": "Beginner",
            "duration": "1h 10m",
            "certificate": {
                "title": "Blockchain Fundamentals Certificate",
                "issuer": "Wiza Academy",
                "description": "Completed Blockchain Fundamentals.",
                "attributes": ["Blockchain", "Beginner"],
            },
            "modules": [
                {
                    "id": "bf-1",
                    "title": "What is a ledger?",
                    "type": "video",
                    "duration": "12 min",
                    "content": {"videoUrl": "https://videos.example/bf-1.mp4"},
                },
                {
                    "id": "bf-2",
                    "title": "Hashes and blocks",
                    "type": "text",
                    "duration": "15 min",
                    "content": {
                        "text": "A block commits to its parent by including the "
                        "parent's hash."
                    },
                    "quiz": {
                        "id": "bf-2-quiz",
                        "passingScore": 70,
                        "questions": [
                            {
                                "id": "q1",
                                "question": "What links a block to its parent?",
                                "options": ["A timestamp", "The parent's hash"],
                                "correctAnswer": 1,
                            }
                        ],
                    },
                },
                {
                    "id": "bf-3",
                    "title": "Consensus",
                    "type": "image",
                    "duration": "20 min",
                    "content": {"imageUrl": "https://images.example/bf-3.png"},
                },
                {
                    "id": "bf-4",
                    "title": "Wallets and keys",
                    "type": "text",
                    "duration": "23 min",
                    "content": {"text": "A wallet is a key pair, not a bag of coins."},
                },
            ],
        },
        {
            "id": "smart-contracts-kaia",
            "title": "Smart Contracts on Kaia",
            "ownerAddress": _CREATOR,
            "price": "10",
            "description": "Write, test and deploy your first contract.",
            "category": "Development",
            "level": "Intermediate",
            "duration": "2h",
            "certificate": {
                "title": "Kaia Smart Contract Developer",
                "issuer": "Wiza Academy",
                "description": "Completed Smart Contracts on Kaia.",
                "attributes": ["Solidity", "Kaia"],
            },
            "modules": [
                {
                    "id": "sc-1",
                    "title": "Solidity basics",
                    "type": "video",
                    "duration": "40 min",
                    "content": {"videoUrl": "https://videos.example/sc-1.mp4"},
                },
                {
                    "id": "sc-2",
                    "title": "Testing contracts",
                    "type": "text",
                    "duration": "40 min",
                    "content": {"text": "Every public function deserves a test."},
                },
                {
                    "id": "sc-3",
                    "title": "Deploying",
                    "type": "text",
                    "duration": "40 min",
                    "content": {"text": "Deploy to testnet before mainnet."},
                },
            ],
        },
    ]
    return [course_from_dict(c) for c in raw]
