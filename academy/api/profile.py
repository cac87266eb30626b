"""Profile endpoints for the connected wallet.

GET /v1/profile  -- own profile (404 until the first enrollment or update)
PUT /v1/profile  -- create or update, including creator onboarding
"""

from __future__ import annotations

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from academy.api.dependencies import LearnerDep, PlatformDep
from academy.models.user import User

router = APIRouter(prefix="/v1", tags=["profile"])


class ProfileOut(BaseModel):
    address: str
    name: str
    avatar_url: str | None
    is_creator: bool
    bio: str | None
    website: str | None
    twitter: str | None
    linkedin: str | None
    specialties: list[str]
    experience_years: int | None
    is_verified: bool
    created_at: int
    updated_at: int | None

    @classmethod
    def from_domain(cls, user: User) -> ProfileOut:
        return cls(
            address=user.address,
            name=user.name,
            avatar_url=user.avatar_url,
            is_creator=user.is_creator,
            bio=user.bio,
            website=user.website,
            twitter=user.twitter,
            linkedin=user.linkedin,
            specialties=list(user.specialties),
            experience_years=user.experience_years,
            is_verified=user.is_verified,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


class UpdateProfileIn(BaseModel):
    name: str = Field(max_length=255)
    bio: str | None = None
    website: str | None = None
    twitter: str | None = None
    linkedin: str | None = None
    specialties: list[str] = Field(default_factory=list)
    experience_years: int | None = None
    avatar_url: str | None = None
    is_creator: bool = False


@router.get("/profile", response_model=ProfileOut)
async def get_my_profile(learner: LearnerDep, platform: PlatformDep) -> ProfileOut:
    user = await platform.profiles.get_profile(learner)
    if user is None:
        raise HTTPException(status_code=404, detail="profile not found")
    return ProfileOut.from_domain(user)


@router.put("/profile", response_model=ProfileOut)
async def update_my_profile(
    body: UpdateProfileIn, learner: LearnerDep, platform: PlatformDep
) -> ProfileOut:
    user = await platform.profiles.update_profile(learner, **body.model_dump())
    return ProfileOut.from_domain(user)
