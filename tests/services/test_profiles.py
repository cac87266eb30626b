from __future__ import annotations

import asyncio

import pytest

from academy.services.platform import Platform
from academy.services.profiles import ProfileValidationError
from tests.conftest import LEARNER, NOW, PAID_COURSE


def _update(platform: Platform, **fields):
    fields.setdefault("name", "Ada")
    return asyncio.run(platform.profiles.update_profile(LEARNER, **fields))


def test_no_profile_until_created(platform: Platform) -> None:
    assert asyncio.run(platform.profiles.get_profile(LEARNER)) is None


def test_learner_profile_needs_only_a_name(platform: Platform) -> None:
    user = _update(platform, name="  Ada  ")
    assert user.name == "Ada"
    assert user.is_creator is False
    assert user.created_at == NOW
    assert user.updated_at == NOW


def test_blank_name_rejected(platform: Platform) -> None:
    with pytest.raises(ProfileValidationError, match="non-empty"):
        _update(platform, name="   ")


def test_creator_needs_bio_and_specialties(platform: Platform) -> None:
    with pytest.raises(ProfileValidationError, match="bio"):
        _update(platform, is_creator=True, specialties=["Solidity"])
    with pytest.raises(ProfileValidationError, match="specialty"):
        _update(platform, is_creator=True, bio="Teaches things")

    user = _update(
        platform,
        is_creator=True,
        bio="Teaches things",
        specialties=["Solidity", " Solidity ", "DeFi", ""],
    )
    assert user.is_creator is True
    assert user.specialties == ("Solidity", "DeFi")


def test_experience_years_range(platform: Platform) -> None:
    with pytest.raises(ProfileValidationError):
        _update(platform, experience_years=81)
    assert _update(platform, experience_years=5).experience_years == 5


def test_website_must_be_http(platform: Platform) -> None:
    with pytest.raises(ProfileValidationError, match="http"):
        _update(platform, website="ftp://example.com")
    assert _update(platform, website="https://ada.dev").website == "https://ada.dev"


def test_update_keeps_original_creation_time(platform: Platform) -> None:
    asyncio.run(platform.enrollments.enroll(LEARNER, PAID_COURSE))
    placeholder = asyncio.run(platform.profiles.get_profile(LEARNER))

    user = _update(platform, name="Ada")
    assert user.created_at == placeholder.created_at
    assert user.name == "Ada"


def test_transactions_for_owner(platform: Platform) -> None:
    asyncio.run(platform.enrollments.enroll(LEARNER, PAID_COURSE))
    mine = asyncio.run(platform.profiles.transactions(LEARNER))
    assert len(mine) == 1
    assert mine[0].from_user_id == LEARNER
