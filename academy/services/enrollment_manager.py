"""Enrollment: payment, proof of wallet control, then one database write.

Sequence for ``enroll(learner, course_id)``:

  1. Existing enrollment?  -> return it, ALREADY_ENROLLED, nothing else runs
  2. Priced course          -> ledger transfer, learner -> owner
  3. Signature challenge    -> learner signs the course title
  4. Persist                -> user placeholder, enrollment, purchase record
  5. Refresh session state

Failures before step 2 completes leave nothing behind.  Once the
transfer is confirmed, its receipt is parked in PendingReceipts, and it
is marked signed after step 3.  A retry (``resume``, or ``enroll`` again)
picks up from the first step that did not finish and never charges again.
If the receipt cannot be parked, the enrollment still runs to the end;
should a later step fail, the learner is told PAID_BUT_NOT_ENROLLED with
the transfer hash, since no retry could find the payment.

A store outage while reading (step 1) is not a workflow outcome: the
PersistenceError propagates and the API answers 503.

Ledger confirmations are bounded by LEDGER_TIMEOUT_SECONDS.  A timeout is
reported as CONFIRMATION_TIMEOUT and is *not* retried or parked: the
transfer may still land, and only the ledger can say whether it did.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from academy.core.metrics import ENROLLMENT_OUTCOMES
from academy.models.course import Course
from academy.models.enrollment import Enrollment
from academy.models.ledger import TransactionRecord, TransferReceipt
from academy.models.user import User, normalize_address
from academy.repos.store import DuplicateEnrollmentError, LearningStore, PersistenceError
from academy.services.cache import CourseCatalog
from academy.services.errors import ErrorKind, WorkflowError
from academy.services.ledger import (
    LedgerError,
    LedgerService,
    LedgerTimeoutError,
    confirmed,
    signature_payload,
)
from academy.services.pending import PendingPayment, PendingReceiptError, PendingReceipts
from academy.services.session_state import SessionState
from academy.services.submission_guard import SubmissionGuard, claimed

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class EnrollOutcome:
    enrollment: Enrollment
    already_enrolled: bool = False
    tx_hash: str | None = None


def _epoch() -> int:
    return int(time.time())


class EnrollmentManager:
    def __init__(
        self,
        *,
        store: LearningStore,
        catalog: CourseCatalog,
        ledger: LedgerService,
        pending: PendingReceipts,
        guard: SubmissionGuard,
        session: SessionState,
        currency: str,
        ledger_timeout_seconds: float,
        clock: Callable[[], int] = _epoch,
    ) -> None:
        self._store = store
        self._catalog = catalog
        self._ledger = ledger
        self._pending = pending
        self._guard = guard
        self._session = session
        self._currency = currency
        self._timeout = ledger_timeout_seconds
        self._clock = clock

    async def enroll(self, learner: str, course_id: str) -> EnrollOutcome:
        learner = _require_learner(learner)
        course = await self._require_course(course_id)

        async with claimed(self._guard, f"enroll:{learner}:{course.id}", self._guard_ttl):
            try:
                outcome = await self._enroll(learner, course)
            except WorkflowError as exc:
                ENROLLMENT_OUTCOMES.labels(kind=exc.kind.value).inc()
                raise
        ENROLLMENT_OUTCOMES.labels(
            kind=ErrorKind.ALREADY_ENROLLED.value if outcome.already_enrolled else "ok"
        ).inc()
        return outcome

    async def resume(self, learner: str, course_id: str) -> EnrollOutcome:
        """Finish an enrollment whose payment already went through.

        Raises PAYMENT_FAILED if no settled payment is on record, since the
        only safe thing to do then is to start over with ``enroll``.
        """
        learner = _require_learner(learner)
        course = await self._require_course(course_id)

        async with claimed(self._guard, f"enroll:{learner}:{course.id}", self._guard_ttl):
            existing = await self._store.get_enrollment(learner, course.id)
            if existing is not None:
                return await self._already_enrolled(learner, course, existing)

            pending = await self._pending.get_payment(learner, course.id)
            if pending is None:
                raise WorkflowError(
                    ErrorKind.PAYMENT_FAILED,
                    "no settled payment to resume; enroll again",
                )
            logger.info(
                "Resuming enrollment learner=%s course=%s tx=%s",
                learner,
                course.id,
                pending.tx_hash or "-",
            )
            try:
                outcome = await self._after_payment(learner, course, pending)
            except WorkflowError as exc:
                ENROLLMENT_OUTCOMES.labels(kind=exc.kind.value).inc()
                raise
        ENROLLMENT_OUTCOMES.labels(kind="ok").inc()
        return outcome

    @property
    def _guard_ttl(self) -> int:
        # Outlives two ledger waits (transfer + signature) plus the write.
        return int(self._timeout * 2) + 30

    async def _require_course(self, course_id: str) -> Course:
        course = await self._catalog.get(course_id)
        if course is None:
            raise WorkflowError(ErrorKind.COURSE_NOT_FOUND, f"course {course_id!r} not found")
        if course.price < 0:
            raise WorkflowError(ErrorKind.INVALID_REQUEST, "course price is negative")
        return course

    async def _enroll(self, learner: str, course: Course) -> EnrollOutcome:
        existing = await self._store.get_enrollment(learner, course.id)
        if existing is not None:
            logger.info("Already enrolled learner=%s course=%s", learner, course.id)
            return await self._already_enrolled(learner, course, existing)

        pending = await self._pending.get_payment(learner, course.id)
        if pending is not None:
            logger.info(
                "Reusing settled payment learner=%s course=%s", learner, course.id
            )
            return await self._after_payment(learner, course, pending)

        pending = PendingPayment(await self._pay(learner, course))
        parked = await self._park(learner, course, pending.receipt)
        return await self._after_payment(learner, course, pending, parked=parked)

    async def _park(
        self,
        learner: str,
        course: Course,
        receipt: TransferReceipt | None,
        *,
        signed: bool = False,
    ) -> bool:
        """Park the receipt for a retry.  False when the cache refused it."""
        try:
            await self._pending.put_payment(learner, course.id, receipt, signed=signed)
        except PendingReceiptError:
            logger.exception(
                "Could not park payment learner=%s course=%s tx=%s",
                learner,
                course.id,
                receipt.tx_hash if receipt is not None else "-",
            )
            return False
        return True

    async def _unpark(self, learner: str, course: Course) -> None:
        # The enrollment is saved; a stale entry only costs an extra lookup.
        try:
            await self._pending.clear_payment(learner, course.id)
        except PendingReceiptError:
            logger.exception(
                "Could not clear parked payment learner=%s course=%s",
                learner,
                course.id,
            )

    async def _already_enrolled(
        self, learner: str, course: Course, existing: Enrollment
    ) -> EnrollOutcome:
        # A signed payment still parked means the purchase record did not land.
        pending = await self._pending.get_payment(learner, course.id)
        if pending is not None and pending.signed:
            await self._persist(learner, course, pending.receipt)
            await self._unpark(learner, course)
        await self._session.refresh(learner)
        return EnrollOutcome(
            existing,
            already_enrolled=True,
            tx_hash=pending.tx_hash if pending is not None else None,
        )

    async def _pay(self, learner: str, course: Course) -> TransferReceipt | None:
        if course.is_free:
            return None
        try:
            receipt = await confirmed(
                "transfer",
                self._ledger.transfer(learner, course.owner_address, course.price),
                self._timeout,
            )
        except LedgerTimeoutError as exc:
            logger.error(
                "Payment confirmation timed out learner=%s course=%s",
                learner,
                course.id,
            )
            raise WorkflowError(ErrorKind.CONFIRMATION_TIMEOUT, str(exc)) from exc
        except LedgerError as exc:
            logger.warning(
                "Payment failed learner=%s course=%s: %s", learner, course.id, exc
            )
            raise WorkflowError(ErrorKind.PAYMENT_FAILED, str(exc)) from exc

        logger.info(
            "Payment confirmed learner=%s course=%s amount=%s tx=%s",
            learner,
            course.id,
            course.price,
            receipt.tx_hash,
        )
        return receipt

    async def _after_payment(
        self,
        learner: str,
        course: Course,
        pending: PendingPayment,
        *,
        parked: bool = True,
    ) -> EnrollOutcome:
        if not pending.signed:
            await self._prove_wallet(learner, course, pending.tx_hash, parked=parked)
            if parked:
                # On failure the unsigned entry stays; a retry signs again.
                await self._park(learner, course, pending.receipt, signed=True)
        try:
            enrollment = await self._persist(learner, course, pending.receipt)
        except WorkflowError as exc:
            if parked or pending.tx_hash is None:
                raise
            raise WorkflowError(
                ErrorKind.PAID_BUT_NOT_ENROLLED,
                "payment went through but the enrollment was not saved; "
                "contact support with the transaction hash",
                tx_hash=pending.tx_hash,
            ) from exc
        await self._unpark(learner, course)
        await self._session.refresh(learner)
        logger.info("Enrolled learner=%s course=%s", learner, course.id)
        return EnrollOutcome(enrollment, tx_hash=pending.tx_hash)

    async def _prove_wallet(
        self, learner: str, course: Course, tx_hash: str | None, *, parked: bool = True
    ) -> None:
        payload = signature_payload(course.title, timestamp_ms=self._clock() * 1000)
        try:
            await confirmed(
                "signature",
                self._ledger.request_signature(learner, payload),
                self._timeout,
            )
        except LedgerError as exc:
            if tx_hash is not None:
                logger.error(
                    "Signature failed after payment learner=%s course=%s tx=%s",
                    learner,
                    course.id,
                    tx_hash,
                )
                advice = (
                    "resume the enrollment or contact support"
                    if parked
                    else "contact support with the transaction hash"
                )
                raise WorkflowError(
                    ErrorKind.PAID_BUT_NOT_ENROLLED,
                    f"payment went through but the signature was not given; {advice}",
                    tx_hash=tx_hash,
                ) from exc
            raise WorkflowError(ErrorKind.SIGNATURE_REJECTED, str(exc)) from exc

    async def _persist(
        self, learner: str, course: Course, receipt: TransferReceipt | None
    ) -> Enrollment:
        now = self._clock()
        tx_hash = receipt.tx_hash if receipt is not None else None
        try:
            if await self._store.get_user(learner) is None:
                await self._store.upsert_user(User.placeholder(learner, created_at=now))
            try:
                enrollment = await self._store.create_enrollment(
                    learner, course.id, course.owner_address, enrolled_at=now
                )
            except DuplicateEnrollmentError:
                # A concurrent request won; theirs is the enrollment.
                enrollment = await self._store.get_enrollment(learner, course.id)
                if enrollment is None:
                    raise
            if await self._store.find_purchase(learner, course.id) is None:
                await self._store.create_transaction(
                    TransactionRecord.purchase(
                        owner=course.owner_address,
                        learner=learner,
                        course_id=course.id,
                        course_title=course.title,
                        amount=course.price,
                        currency=self._currency,
                        tx_hash=tx_hash,
                        created_at=now,
                    )
                )
        except PersistenceError as exc:
            logger.error(
                "Enrollment write failed learner=%s course=%s tx=%s: %s",
                learner,
                course.id,
                tx_hash or "-",
                exc,
            )
            raise WorkflowError(
                ErrorKind.ENROLLMENT_WRITE_FAILED,
                "enrollment was not saved; retry without paying again",
                tx_hash=tx_hash,
            ) from exc
        return enrollment


def _require_learner(learner: str) -> str:
    learner = normalize_address(learner or "")
    if not learner:
        raise WorkflowError(ErrorKind.INVALID_REQUEST, "wallet address is required")
    return learner
