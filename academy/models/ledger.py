from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID, uuid4


@dataclass(frozen=True, slots=True)
class TransferReceipt:
    tx_hash: str


@dataclass(frozen=True, slots=True)
class MintReceipt:
    token_id: str
    tx_hash: str


@dataclass(frozen=True, slots=True)
class TransactionRecord:
    """Off-chain bookkeeping row for a course purchase.

    Recorded against the course owner (``type="earning"``) with the
    learner as ``from_user``.  Free courses get a zero-amount row so every
    enrollment has exactly one matching record.
    """

    id: UUID
    user_id: str
    from_user_id: str | None
    type: str  # earning|withdrawal|deposit|fee
    amount: Decimal
    currency: str
    description: str
    status: str  # completed|pending|failed
    created_at: int
    tx_hash: str | None = None
    course_id: str | None = None

    @staticmethod
    def purchase(
        *,
        owner: str,
        learner: str,
        course_id: str,
        course_title: str,
        amount: Decimal,
        currency: str,
        tx_hash: str | None,
        created_at: int,
    ) -> TransactionRecord:
        return TransactionRecord(
            id=uuid4(),
            user_id=owner,
            from_user_id=learner,
            type="earning",
            amount=amount,
            currency=currency,
            description=f"Purchase: {course_title}",
            status="completed",
            created_at=created_at,
            tx_hash=tx_hash,
            course_id=course_id,
        )
