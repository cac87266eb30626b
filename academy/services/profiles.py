from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import replace

from academy.models.ledger import TransactionRecord
from academy.models.user import User, normalize_address
from academy.repos.store import LearningStore

logger = logging.getLogger(__name__)


class ProfileValidationError(ValueError):
    pass


def _epoch() -> int:
    return int(time.time())


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    return value.strip() or None


class ProfileService:
    """Creator onboarding and profile reads.

    Becoming a creator needs a name, a bio and at least one specialty;
    plain learner profiles only need a name.
    """

    def __init__(
        self, store: LearningStore, *, clock: Callable[[], int] = _epoch
    ) -> None:
        self._store = store
        self._clock = clock

    async def get_profile(self, address: str) -> User | None:
        return await self._store.get_user(normalize_address(address))

    async def update_profile(
        self,
        address: str,
        *,
        name: str,
        bio: str | None = None,
        website: str | None = None,
        twitter: str | None = None,
        linkedin: str | None = None,
        specialties: Sequence[str] = (),
        experience_years: int | None = None,
        avatar_url: str | None = None,
        is_creator: bool = False,
    ) -> User:
        address = normalize_address(address)
        if not address:
            raise ProfileValidationError("wallet address is required")
        name = name.strip()
        if not name:
            logger.warning("Rejected profile without name address=%s", address)
            raise ProfileValidationError("name must be non-empty")

        cleaned = tuple(dict.fromkeys(s.strip() for s in specialties if s.strip()))
        bio = _clean(bio)
        if is_creator and (bio is None or not cleaned):
            raise ProfileValidationError(
                "creators need a bio and at least one specialty"
            )
        if experience_years is not None and not 0 <= experience_years <= 80:
            raise ProfileValidationError("experience_years must be between 0 and 80")
        website = _clean(website)
        if website is not None and not website.startswith(("http://", "https://")):
            raise ProfileValidationError("website must be an http(s) URL")

        now = self._clock()
        existing = await self._store.get_user(address)
        base = existing or User.placeholder(address, created_at=now)
        user = replace(
            base,
            name=name,
            bio=bio,
            website=website,
            twitter=_clean(twitter),
            linkedin=_clean(linkedin),
            specialties=cleaned,
            experience_years=experience_years,
            avatar_url=_clean(avatar_url),
            is_creator=is_creator,
            updated_at=now,
        )
        stored = await self._store.upsert_user(user)
        logger.info("Profile updated address=%s creator=%s", address, is_creator)
        return stored

    async def transactions(
        self, address: str, *, page: int = 1, limit: int = 20
    ) -> list[TransactionRecord]:
        return await self._store.list_transactions(
            normalize_address(address), page=page, limit=limit
        )
