from __future__ import annotations

from dataclasses import dataclass


def normalize_address(address: str) -> str:
    """Wallet addresses compare case-insensitively; store them lower-cased."""
    return address.strip().lower()


def short_address(address: str) -> str:
    if len(address) <= 10:
        return address
    return f"{address[:6]}...{address[-4:]}"


@dataclass(frozen=True, slots=True)
class User:
    address: str
    name: str
    avatar_url: str | None = None
    is_creator: bool = False
    bio: str | None = None
    website: str | None = None
    twitter: str | None = None
    linkedin: str | None = None
    specialties: tuple[str, ...] = ()
    experience_years: int | None = None
    is_verified: bool = False
    created_at: int = 0
    updated_at: int | None = None

    @staticmethod
    def placeholder(address: str, *, created_at: int) -> User:
        """Profile created lazily the first time an address enrolls."""
        address = normalize_address(address)
        return User(
            address=address,
            name=f"User {short_address(address)}",
            created_at=created_at,
        )
