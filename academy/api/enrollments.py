"""The learner's dashboard: enrollment list and transaction history."""

from __future__ import annotations

from decimal import Decimal
from typing import Annotated

from fastapi import APIRouter, Query
from pydantic import BaseModel

from academy.api.dependencies import LearnerDep, PlatformDep
from academy.api.schemas import EnrollmentOut
from academy.models.ledger import TransactionRecord

router = APIRouter(prefix="/v1", tags=["enrollments"])


class TransactionOut(BaseModel):
    id: str
    type: str
    amount: Decimal
    currency: str
    description: str
    status: str
    created_at: int
    tx_hash: str | None
    course_id: str | None
    from_user_id: str | None

    @classmethod
    def from_domain(cls, t: TransactionRecord) -> TransactionOut:
        return cls(
            id=str(t.id),
            type=t.type,
            amount=t.amount,
            currency=t.currency,
            description=t.description,
            status=t.status,
            created_at=t.created_at,
            tx_hash=t.tx_hash,
            course_id=t.course_id,
            from_user_id=t.from_user_id,
        )


@router.get("/enrollments", response_model=list[EnrollmentOut])
async def list_enrollments(
    learner: LearnerDep,
    platform: PlatformDep,
    refresh: bool = False,
) -> list[EnrollmentOut]:
    """Served from session state; loaded on first use or when ``refresh`` is set."""
    enrollments = platform.session.enrollments(learner)
    if refresh or not enrollments:
        enrollments = await platform.session.refresh(learner)
    return [EnrollmentOut.from_domain(e) for e in enrollments]


@router.get("/transactions", response_model=list[TransactionOut])
async def list_transactions(
    learner: LearnerDep,
    platform: PlatformDep,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
) -> list[TransactionOut]:
    records = await platform.profiles.transactions(learner, page=page, limit=limit)
    return [TransactionOut.from_domain(t) for t in records]
