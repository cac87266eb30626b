"""Enrollment workflow: payment, signature, persistence, retry.

Each test drives the manager directly with asyncio.run against the
in-memory ledger and the flaky in-memory store from conftest.
"""

from __future__ import annotations

import asyncio
from decimal import Decimal

import pytest

from academy.repos.store import PersistenceError
from academy.services.errors import ErrorKind, WorkflowError
from academy.services.ledger import InMemoryLedgerService, LedgerRejectedError
from academy.services.platform import Platform, sample_courses
from tests.conftest import (
    CREATOR,
    FREE_COURSE,
    LEARNER,
    NOW,
    PAID_COURSE,
    FlakyStore,
    UnreachablePendingCache,
    make_platform,
    settings_for_tests,
)


def _enroll(platform: Platform, course_id: str, learner: str = LEARNER):
    return asyncio.run(platform.enrollments.enroll(learner, course_id))


def _resume(platform: Platform, course_id: str, learner: str = LEARNER):
    return asyncio.run(platform.enrollments.resume(learner, course_id))


def _stored(platform: Platform, course_id: str, learner: str = LEARNER):
    return asyncio.run(platform.store.get_enrollment(learner, course_id))


# ---- happy paths ----


def test_enroll_free_course_skips_payment(
    platform: Platform, ledger: InMemoryLedgerService
) -> None:
    outcome = _enroll(platform, FREE_COURSE)

    assert outcome.already_enrolled is False
    assert outcome.tx_hash is None
    assert outcome.enrollment.progress == 0
    assert outcome.enrollment.current_module_index == 0
    assert outcome.enrollment.enrolled_at == NOW
    assert ledger.transfers == []
    assert len(ledger.signatures) == 1


def test_enroll_paid_course_pays_owner_then_signs(
    platform: Platform, ledger: InMemoryLedgerService
) -> None:
    outcome = _enroll(platform, PAID_COURSE)

    assert len(ledger.transfers) == 1
    sender, recipient, amount, tx_hash = ledger.transfers[0]
    assert (sender, recipient, amount) == (LEARNER, CREATOR, Decimal("10"))
    assert outcome.tx_hash == tx_hash

    signer, payload = ledger.signatures[0]
    assert signer == LEARNER
    assert payload == f"{NOW * 1000}:0x{'Smart Contracts on Kaia'.encode().hex()}"


def test_enroll_records_purchase_and_placeholder_profile(platform: Platform) -> None:
    _enroll(platform, PAID_COURSE)

    purchase = asyncio.run(platform.store.find_purchase(LEARNER, PAID_COURSE))
    assert purchase is not None
    assert purchase.user_id == CREATOR
    assert purchase.from_user_id == LEARNER
    assert purchase.amount == Decimal("10")
    assert purchase.currency == "KAIA"
    assert purchase.type == "earning"
    assert purchase.status == "completed"

    user = asyncio.run(platform.store.get_user(LEARNER))
    assert user is not None
    assert user.name == "User 0x1234...5678"


def test_enroll_normalizes_wallet_address(platform: Platform) -> None:
    outcome = _enroll(platform, FREE_COURSE, learner=f"  {LEARNER.upper()}  ")
    assert outcome.enrollment.learner == LEARNER


def test_enroll_refreshes_session(platform: Platform) -> None:
    assert platform.session.get(LEARNER, FREE_COURSE) is None
    _enroll(platform, FREE_COURSE)
    assert platform.session.get(LEARNER, FREE_COURSE) is not None


def test_second_enroll_reports_already_enrolled_without_paying(
    platform: Platform, ledger: InMemoryLedgerService
) -> None:
    _enroll(platform, PAID_COURSE)
    again = _enroll(platform, PAID_COURSE)

    assert again.already_enrolled is True
    assert len(ledger.transfers) == 1
    assert len(ledger.signatures) == 1


# ---- request validation ----


def test_enroll_unknown_course(platform: Platform) -> None:
    with pytest.raises(WorkflowError) as exc_info:
        _enroll(platform, "no-such-course")
    assert exc_info.value.kind is ErrorKind.COURSE_NOT_FOUND


def test_enroll_requires_wallet(platform: Platform) -> None:
    with pytest.raises(WorkflowError) as exc_info:
        _enroll(platform, FREE_COURSE, learner="   ")
    assert exc_info.value.kind is ErrorKind.INVALID_REQUEST


# ---- ledger failures ----


def test_payment_rejection_leaves_nothing_behind(
    platform: Platform, ledger: InMemoryLedgerService
) -> None:
    ledger.fail_next("transfer", LedgerRejectedError("user rejected"))

    with pytest.raises(WorkflowError) as exc_info:
        _enroll(platform, PAID_COURSE)

    assert exc_info.value.kind is ErrorKind.PAYMENT_FAILED
    assert _stored(platform, PAID_COURSE) is None
    assert asyncio.run(platform.pending.get_payment(LEARNER, PAID_COURSE)) is None
    assert ledger.signatures == []


def test_signature_rejection_on_free_course(
    platform: Platform, ledger: InMemoryLedgerService
) -> None:
    ledger.fail_next("signature", LedgerRejectedError("user rejected"))

    with pytest.raises(WorkflowError) as exc_info:
        _enroll(platform, FREE_COURSE)

    assert exc_info.value.kind is ErrorKind.SIGNATURE_REJECTED
    assert exc_info.value.tx_hash is None
    assert _stored(platform, FREE_COURSE) is None


def test_signature_rejection_after_payment_is_paid_but_not_enrolled(
    platform: Platform, ledger: InMemoryLedgerService
) -> None:
    ledger.fail_next("signature", LedgerRejectedError("user rejected"))

    with pytest.raises(WorkflowError) as exc_info:
        _enroll(platform, PAID_COURSE)

    err = exc_info.value
    assert err.kind is ErrorKind.PAID_BUT_NOT_ENROLLED
    assert err.tx_hash == ledger.transfers[0][3]
    assert _stored(platform, PAID_COURSE) is None


def test_resume_after_rejected_signature_does_not_charge_again(
    platform: Platform, ledger: InMemoryLedgerService
) -> None:
    ledger.fail_next("signature", LedgerRejectedError("user rejected"))
    with pytest.raises(WorkflowError):
        _enroll(platform, PAID_COURSE)

    outcome = _resume(platform, PAID_COURSE)

    assert outcome.already_enrolled is False
    assert outcome.tx_hash == ledger.transfers[0][3]
    assert len(ledger.transfers) == 1
    assert _stored(platform, PAID_COURSE) is not None
    assert asyncio.run(platform.pending.get_payment(LEARNER, PAID_COURSE)) is None


def test_enroll_again_after_rejected_signature_reuses_payment(
    platform: Platform, ledger: InMemoryLedgerService
) -> None:
    ledger.fail_next("signature", LedgerRejectedError("user rejected"))
    with pytest.raises(WorkflowError):
        _enroll(platform, PAID_COURSE)

    _enroll(platform, PAID_COURSE)

    assert len(ledger.transfers) == 1


def test_resume_without_settled_payment(platform: Platform) -> None:
    with pytest.raises(WorkflowError) as exc_info:
        _resume(platform, PAID_COURSE)
    assert exc_info.value.kind is ErrorKind.PAYMENT_FAILED


def test_resume_when_already_enrolled(platform: Platform) -> None:
    _enroll(platform, FREE_COURSE)
    outcome = _resume(platform, FREE_COURSE)
    assert outcome.already_enrolled is True


def test_payment_confirmation_timeout() -> None:
    ledger = InMemoryLedgerService(delay_seconds=0.5)
    platform = make_platform(
        settings=settings_for_tests(ledger_timeout_seconds=0.05), ledger=ledger
    )

    with pytest.raises(WorkflowError) as exc_info:
        _enroll(platform, PAID_COURSE)

    assert exc_info.value.kind is ErrorKind.CONFIRMATION_TIMEOUT
    assert _stored(platform, PAID_COURSE) is None
    # Unknown outcome: nothing is parked for a silent retry.
    assert asyncio.run(platform.pending.get_payment(LEARNER, PAID_COURSE)) is None


# ---- persistence failures ----


def test_enrollment_write_failure_keeps_receipt_for_retry(
    platform: Platform, store: FlakyStore, ledger: InMemoryLedgerService
) -> None:
    store.fail_next("create_enrollment")

    with pytest.raises(WorkflowError) as exc_info:
        _enroll(platform, PAID_COURSE)

    err = exc_info.value
    assert err.kind is ErrorKind.ENROLLMENT_WRITE_FAILED
    assert err.tx_hash == ledger.transfers[0][3]

    pending = asyncio.run(platform.pending.get_payment(LEARNER, PAID_COURSE))
    assert pending is not None
    assert pending.signed is True

    outcome = _resume(platform, PAID_COURSE)
    assert outcome.enrollment.course_id == PAID_COURSE
    assert len(ledger.transfers) == 1
    assert len(ledger.signatures) == 1


def test_purchase_record_failure_does_not_duplicate_enrollment(
    platform: Platform, store: FlakyStore
) -> None:
    store.fail_next("create_transaction")
    with pytest.raises(WorkflowError) as exc_info:
        _enroll(platform, PAID_COURSE)
    assert exc_info.value.kind is ErrorKind.ENROLLMENT_WRITE_FAILED

    # The enrollment row landed; the retry only writes the purchase.
    outcome = _enroll(platform, PAID_COURSE)
    assert outcome.already_enrolled is True
    assert asyncio.run(platform.store.find_purchase(LEARNER, PAID_COURSE)) is not None
    assert asyncio.run(platform.pending.get_payment(LEARNER, PAID_COURSE)) is None


# ---- double submission ----


def test_concurrent_enroll_is_refused(platform: Platform) -> None:
    key = f"enroll:{LEARNER}:{PAID_COURSE}"
    assert asyncio.run(platform.guard.acquire(key, 60)) is not None

    with pytest.raises(WorkflowError) as exc_info:
        _enroll(platform, PAID_COURSE)

    assert exc_info.value.kind is ErrorKind.OPERATION_IN_PROGRESS


def test_guard_released_after_failure(
    platform: Platform, ledger: InMemoryLedgerService
) -> None:
    ledger.fail_next("transfer", LedgerRejectedError("user rejected"))
    with pytest.raises(WorkflowError):
        _enroll(platform, PAID_COURSE)

    outcome = _enroll(platform, PAID_COURSE)
    assert outcome.already_enrolled is False


# ---- confirmation timeouts after payment ----


class SlowSigningLedger(InMemoryLedgerService):
    """Transfers confirm at once; signatures wait ``signature_delay`` first."""

    signature_delay = 0.5

    async def request_signature(self, signer: str, payload: str) -> str:
        await asyncio.sleep(self.signature_delay)
        return await super().request_signature(signer, payload)


def test_signature_timeout_on_free_course_stores_nothing() -> None:
    platform = make_platform(
        settings=settings_for_tests(ledger_timeout_seconds=0.05),
        ledger=InMemoryLedgerService(delay_seconds=0.5),
    )

    with pytest.raises(WorkflowError) as exc_info:
        _enroll(platform, FREE_COURSE)

    assert exc_info.value.kind is ErrorKind.SIGNATURE_REJECTED
    assert exc_info.value.tx_hash is None
    assert _stored(platform, FREE_COURSE) is None


def test_signature_timeout_after_payment_can_be_resumed() -> None:
    ledger = SlowSigningLedger()
    platform = make_platform(
        settings=settings_for_tests(ledger_timeout_seconds=0.05), ledger=ledger
    )

    with pytest.raises(WorkflowError) as exc_info:
        _enroll(platform, PAID_COURSE)

    err = exc_info.value
    assert err.kind is ErrorKind.PAID_BUT_NOT_ENROLLED
    assert err.tx_hash == ledger.transfers[0][3]
    assert _stored(platform, PAID_COURSE) is None

    ledger.signature_delay = 0
    outcome = _resume(platform, PAID_COURSE)
    assert outcome.tx_hash == err.tx_hash
    assert len(ledger.transfers) == 1


# ---- store and receipt cache outages ----


def test_read_outage_propagates_before_any_payment(
    platform: Platform, store: FlakyStore, ledger: InMemoryLedgerService
) -> None:
    store.fail_next("get_enrollment")

    with pytest.raises(PersistenceError):
        _enroll(platform, PAID_COURSE)

    assert ledger.transfers == []
    assert ledger.signatures == []


def test_resume_read_outage_propagates(platform: Platform, store: FlakyStore) -> None:
    store.fail_next("get_enrollment")
    with pytest.raises(PersistenceError):
        _resume(platform, PAID_COURSE)


def test_enroll_completes_when_receipt_cannot_be_parked() -> None:
    ledger = InMemoryLedgerService()
    platform = make_platform(ledger=ledger, cache=UnreachablePendingCache())

    outcome = _enroll(platform, PAID_COURSE)

    assert outcome.already_enrolled is False
    assert outcome.tx_hash == ledger.transfers[0][3]
    assert len(ledger.transfers) == 1
    assert _stored(platform, PAID_COURSE) is not None
    assert asyncio.run(platform.store.find_purchase(LEARNER, PAID_COURSE)) is not None


def test_write_failure_without_parked_receipt_keeps_tx_hash() -> None:
    ledger = InMemoryLedgerService()
    store = FlakyStore(sample_courses())
    platform = make_platform(ledger=ledger, store=store, cache=UnreachablePendingCache())
    store.fail_next("create_enrollment")

    with pytest.raises(WorkflowError) as exc_info:
        _enroll(platform, PAID_COURSE)

    err = exc_info.value
    assert err.kind is ErrorKind.PAID_BUT_NOT_ENROLLED
    assert err.tx_hash == ledger.transfers[0][3]
    assert "contact support" in err.message
    assert _stored(platform, PAID_COURSE) is None


def test_signature_rejection_without_parked_receipt_keeps_tx_hash() -> None:
    ledger = InMemoryLedgerService()
    platform = make_platform(ledger=ledger, cache=UnreachablePendingCache())
    ledger.fail_next("signature", LedgerRejectedError("user rejected"))

    with pytest.raises(WorkflowError) as exc_info:
        _enroll(platform, PAID_COURSE)

    err = exc_info.value
    assert err.kind is ErrorKind.PAID_BUT_NOT_ENROLLED
    assert err.tx_hash == ledger.transfers[0][3]
    assert "contact support" in err.message
