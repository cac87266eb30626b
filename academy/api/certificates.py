from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Query
from pydantic import BaseModel, Field

from academy.api.dependencies import LearnerDep, PlatformDep
from academy.api.schemas import EnrollmentOut
from academy.models.rating import Rating

router = APIRouter(prefix="/v1/courses", tags=["certificates"])


class EligibilityOut(BaseModel):
    progress: int
    can_rate: bool
    can_mint_certificate: bool
    certificate_minted: bool
    token_id: str | None
    has_rated: bool


class RatingIn(BaseModel):
    stars: int = Field(ge=1, le=5)
    review: str | None = Field(default=None, max_length=2000)


class RatingOut(BaseModel):
    learner: str
    course_id: str
    stars: int
    review: str | None
    created_at: int
    updated_at: int

    @classmethod
    def from_domain(cls, rating: Rating) -> RatingOut:
        return cls(
            learner=rating.learner,
            course_id=rating.course_id,
            stars=rating.stars,
            review=rating.review,
            created_at=rating.created_at,
            updated_at=rating.updated_at,
        )


@router.get("/{course_id}/certificate", response_model=EligibilityOut)
async def certificate_status(
    course_id: str, learner: LearnerDep, platform: PlatformDep
) -> EligibilityOut:
    e = await platform.certificates.eligibility(learner, course_id)
    return EligibilityOut(
        progress=e.progress,
        can_rate=e.can_rate,
        can_mint_certificate=e.can_mint,
        certificate_minted=e.certificate_minted,
        token_id=e.token_id,
        has_rated=e.has_rated,
    )


@router.post("/{course_id}/certificate/mint", response_model=EnrollmentOut)
async def mint_certificate(
    course_id: str, learner: LearnerDep, platform: PlatformDep
) -> EnrollmentOut:
    enrollment = await platform.certificates.mint_certificate(learner, course_id)
    return EnrollmentOut.from_domain(enrollment)


@router.put("/{course_id}/rating", response_model=RatingOut)
async def submit_rating(
    course_id: str, body: RatingIn, learner: LearnerDep, platform: PlatformDep
) -> RatingOut:
    rating = await platform.certificates.submit_rating(
        learner, course_id, body.stars, body.review
    )
    return RatingOut.from_domain(rating)


@router.get("/{course_id}/ratings", response_model=list[RatingOut])
async def list_ratings(
    course_id: str,
    platform: PlatformDep,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=50)] = 10,
) -> list[RatingOut]:
    ratings = await platform.certificates.ratings(course_id, page=page, limit=limit)
    return [RatingOut.from_domain(r) for r in ratings]
