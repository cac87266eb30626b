"""Completion-gated actions: certificate minting and course ratings.

Both unlock when progress reaches 100 and neither blocks the other.

Minting is not idempotent on chain.  The only protection here is local:
the submission guard against double clicks, and a parked receipt when
the mint succeeded but recording it did not, so the retry writes the
flag instead of minting again.  A mint whose outcome is unknown
(CONFIRMATION_TIMEOUT) is not parked; retrying it may mint twice.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime

from academy.core.metrics import CERTIFICATE_MINTS
from academy.models.course import Course
from academy.models.enrollment import Enrollment
from academy.models.ledger import MintReceipt
from academy.models.rating import Rating
from academy.models.user import normalize_address
from academy.repos.store import LearningStore, PersistenceError
from academy.services import transitions
from academy.services.cache import CourseCatalog
from academy.services.errors import ErrorKind, WorkflowError
from academy.services.ledger import (
    LedgerError,
    LedgerService,
    LedgerTimeoutError,
    confirmed,
    signature_payload,
)
from academy.services.pending import PendingReceiptError, PendingReceipts
from academy.services.session_state import SessionState
from academy.services.submission_guard import SubmissionGuard, claimed

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Eligibility:
    progress: int
    can_rate: bool
    can_mint: bool
    certificate_minted: bool
    token_id: str | None
    has_rated: bool


def _epoch() -> int:
    return int(time.time())


def certificate_metadata(
    course: Course,
    learner: str,
    completed_at: int,
    *,
    base_url: str,
    learner_name: str | None = None,
) -> str:
    """Token metadata as the JSON string handed to the mint call."""
    cert = course.certificate
    return json.dumps(
        {
            "name": cert.title,
            "description": cert.description,
            "image": cert.image_url,
            "attributes": list(cert.attributes),
            "issuer": cert.issuer,
            "external_url": f"{base_url}/app/courses/{course.id}",
            "recipient": {"address": learner, "name": learner_name or learner},
            "completion_date": datetime.fromtimestamp(completed_at, UTC)
            .date()
            .isoformat(),
        },
        separators=(",", ":"),
    )


class CertificateTrigger:
    def __init__(
        self,
        *,
        store: LearningStore,
        catalog: CourseCatalog,
        ledger: LedgerService,
        pending: PendingReceipts,
        guard: SubmissionGuard,
        session: SessionState,
        certificate_base_url: str,
        ledger_timeout_seconds: float,
        clock: Callable[[], int] = _epoch,
    ) -> None:
        self._store = store
        self._catalog = catalog
        self._ledger = ledger
        self._pending = pending
        self._guard = guard
        self._session = session
        self._base_url = certificate_base_url
        self._timeout = ledger_timeout_seconds
        self._clock = clock

    async def _load(self, learner: str, course_id: str) -> tuple[Course, Enrollment]:
        course = await self._catalog.get(course_id)
        if course is None:
            raise WorkflowError(ErrorKind.COURSE_NOT_FOUND, f"course {course_id!r} not found")
        enrollment = await self._store.get_enrollment(learner, course_id)
        if enrollment is None:
            raise WorkflowError(
                ErrorKind.NOT_ENROLLED, f"not enrolled in course {course_id!r}"
            )
        return course, enrollment

    async def eligibility(self, learner: str, course_id: str) -> Eligibility:
        learner = normalize_address(learner)
        _, enrollment = await self._load(learner, course_id)
        rating = await self._store.get_rating(learner, course_id)
        return Eligibility(
            progress=enrollment.progress,
            can_rate=transitions.can_rate(enrollment),
            can_mint=transitions.can_mint_certificate(enrollment),
            certificate_minted=enrollment.certificate_minted,
            token_id=enrollment.certificate_token_id,
            has_rated=rating is not None,
        )

    async def mint_certificate(self, learner: str, course_id: str) -> Enrollment:
        learner = normalize_address(learner)
        async with claimed(
            self._guard, f"mint:{learner}:{course_id}", int(self._timeout) + 30
        ):
            try:
                enrollment = await self._mint(learner, course_id)
            except WorkflowError as exc:
                CERTIFICATE_MINTS.labels(result=exc.kind.value).inc()
                raise
        CERTIFICATE_MINTS.labels(result="ok").inc()
        return enrollment

    async def _mint(self, learner: str, course_id: str) -> Enrollment:
        course, enrollment = await self._load(learner, course_id)
        if enrollment.certificate_minted:
            return enrollment
        if not transitions.can_mint_certificate(enrollment):
            raise WorkflowError(
                ErrorKind.NOT_ELIGIBLE,
                f"course is {enrollment.progress}% complete; certificate needs 100%",
            )

        receipt = await self._pending.get_mint(learner, course.id)
        if receipt is None:
            receipt = await self._mint_on_ledger(course, enrollment)
        else:
            logger.info(
                "Recording parked mint token_id=%s learner=%s course=%s",
                receipt.token_id,
                learner,
                course.id,
            )

        updated = transitions.apply(
            enrollment, transitions.MintCertificate(receipt.token_id)
        ).require_enrollment()
        try:
            await self._store.upsert_certificate_flag(learner, course.id, receipt.token_id)
        except PersistenceError as exc:
            logger.error(
                "Certificate flag write failed learner=%s course=%s token_id=%s: %s",
                learner,
                course.id,
                receipt.token_id,
                exc,
            )
            advice = "retry to record it"
            try:
                await self._pending.put_mint(learner, course.id, receipt)
            except PendingReceiptError:
                logger.exception(
                    "Could not park mint receipt learner=%s course=%s token_id=%s",
                    learner,
                    course.id,
                    receipt.token_id,
                )
                advice = "contact support with the token id"
            raise WorkflowError(
                ErrorKind.CERTIFICATE_WRITE_FAILED,
                f"certificate was minted but not recorded; {advice}",
                tx_hash=receipt.tx_hash,
                token_id=receipt.token_id,
            ) from exc

        try:
            await self._pending.clear_mint(learner, course.id)
        except PendingReceiptError:
            # The flag is stored; a stale receipt is never read again.
            logger.exception(
                "Could not clear parked mint learner=%s course=%s", learner, course.id
            )
        await self._session.refresh(learner)
        logger.info(
            "Certificate minted learner=%s course=%s token_id=%s",
            learner,
            course.id,
            receipt.token_id,
        )
        return updated

    async def _mint_on_ledger(self, course: Course, enrollment: Enrollment) -> MintReceipt:
        user = await self._store.get_user(enrollment.learner)
        metadata = certificate_metadata(
            course,
            enrollment.learner,
            enrollment.last_accessed_at,
            base_url=self._base_url,
            learner_name=user.name if user is not None else None,
        )
        try:
            return await confirmed(
                "mint",
                self._ledger.mint_certificate(enrollment.learner, metadata),
                self._timeout,
            )
        except LedgerTimeoutError as exc:
            logger.error(
                "Mint confirmation timed out learner=%s course=%s",
                enrollment.learner,
                course.id,
            )
            raise WorkflowError(ErrorKind.CONFIRMATION_TIMEOUT, str(exc)) from exc
        except LedgerError as exc:
            logger.warning(
                "Mint failed learner=%s course=%s: %s", enrollment.learner, course.id, exc
            )
            raise WorkflowError(ErrorKind.MINT_FAILED, str(exc)) from exc

    # --- ratings ---

    async def submit_rating(
        self, learner: str, course_id: str, stars: int, review: str | None = None
    ) -> Rating:
        """Sign, then upsert the learner's rating.  Needs a completed course."""
        learner = normalize_address(learner)
        if not 1 <= stars <= 5:
            raise WorkflowError(ErrorKind.INVALID_REQUEST, "rating must be 1-5 stars")
        course, enrollment = await self._load(learner, course_id)
        if not transitions.can_rate(enrollment):
            raise WorkflowError(
                ErrorKind.NOT_ELIGIBLE, "complete the course before rating it"
            )

        payload = signature_payload(course.title, timestamp_ms=self._clock() * 1000)
        try:
            await confirmed(
                "signature",
                self._ledger.request_signature(learner, payload),
                self._timeout,
            )
        except LedgerError as exc:
            raise WorkflowError(ErrorKind.SIGNATURE_REJECTED, str(exc)) from exc

        now = self._clock()
        rating = Rating(
            learner=learner,
            course_id=course.id,
            instructor=course.owner_address,
            stars=stars,
            review=(review or "").strip() or None,
            created_at=now,
            updated_at=now,
        )
        try:
            await self._store.upsert_rating(rating)
        except PersistenceError as exc:
            raise WorkflowError(
                ErrorKind.RATING_WRITE_FAILED, "rating was not saved; retry"
            ) from exc
        # The course snapshot carries the average rating.
        await self._catalog.invalidate(course.id)
        stored = await self._store.get_rating(learner, course.id)
        return stored or rating

    async def ratings(
        self, course_id: str, *, page: int = 1, limit: int = 10
    ) -> list[Rating]:
        if await self._catalog.get(course_id) is None:
            raise WorkflowError(ErrorKind.COURSE_NOT_FOUND, f"course {course_id!r} not found")
        return await self._store.list_ratings(course_id, page=page, limit=limit)
