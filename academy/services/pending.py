"""Ledger receipts whose follow-up persistence write has not landed yet.

When the payment (or mint) is final on the ledger but the database write
after it fails, the receipt is parked here.  A retry picks it up and
performs only the persistence step, so the learner is never charged or
minted twice.  Entries live for a week; support tooling is expected to
reconcile anything older from the ledger itself.

Cache failures surface as PendingReceiptError, a PersistenceError, so an
unhandled one is answered like any other storage outage.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass

from redis.exceptions import RedisError

from academy.models.ledger import MintReceipt, TransferReceipt
from academy.repos.store import PersistenceError
from academy.services.cache import CacheService

logger = logging.getLogger(__name__)

PENDING_TTL_SECONDS = 7 * 24 * 3600


class PendingReceiptError(PersistenceError):
    """The receipt cache could not be read or written."""


def _enrollment_key(learner: str, course_id: str) -> str:
    return f"pending-enrollment:{learner}:{course_id}"


def _mint_key(learner: str, course_id: str) -> str:
    return f"pending-mint:{learner}:{course_id}"


@dataclass(frozen=True, slots=True)
class PendingPayment:
    receipt: TransferReceipt | None  # None for a free course
    signed: bool = False

    @property
    def tx_hash(self) -> str | None:
        return self.receipt.tx_hash if self.receipt is not None else None


class PendingReceipts:
    def __init__(self, cache: CacheService) -> None:
        self._cache = cache

    async def _set(self, key: str, payload: dict) -> None:
        try:
            await self._cache.set(key, json.dumps(payload), PENDING_TTL_SECONDS)
        except (RedisError, OSError) as exc:
            raise PendingReceiptError(f"{key}: {exc}") from exc

    async def _get(self, key: str) -> dict | None:
        try:
            raw = await self._cache.get(key)
        except (RedisError, OSError) as exc:
            raise PendingReceiptError(f"{key}: {exc}") from exc
        return json.loads(raw) if raw is not None else None

    async def _delete(self, key: str) -> None:
        try:
            await self._cache.delete(key)
        except (RedisError, OSError) as exc:
            raise PendingReceiptError(f"{key}: {exc}") from exc

    # --- enrollment payments ---

    async def put_payment(
        self,
        learner: str,
        course_id: str,
        receipt: TransferReceipt | None,
        *,
        signed: bool = False,
    ) -> None:
        """Record that payment is settled.  ``None`` means a free course."""
        payload = {
            "tx_hash": receipt.tx_hash if receipt is not None else None,
            "signed": signed,
        }
        await self._set(_enrollment_key(learner, course_id), payload)

    async def get_payment(self, learner: str, course_id: str) -> PendingPayment | None:
        data = await self._get(_enrollment_key(learner, course_id))
        if data is None:
            return None
        tx_hash = data.get("tx_hash")
        return PendingPayment(
            receipt=TransferReceipt(tx_hash) if tx_hash else None,
            signed=bool(data.get("signed")),
        )

    async def clear_payment(self, learner: str, course_id: str) -> None:
        await self._delete(_enrollment_key(learner, course_id))

    # --- certificate mints ---

    async def put_mint(self, learner: str, course_id: str, receipt: MintReceipt) -> None:
        payload = {"token_id": receipt.token_id, "tx_hash": receipt.tx_hash}
        await self._set(_mint_key(learner, course_id), payload)
        logger.warning(
            "Parked mint receipt token_id=%s for learner=%s course=%s",
            receipt.token_id,
            learner,
            course_id,
        )

    async def get_mint(self, learner: str, course_id: str) -> MintReceipt | None:
        data = await self._get(_mint_key(learner, course_id))
        if data is None:
            return None
        return MintReceipt(token_id=data["token_id"], tx_hash=data["tx_hash"])

    async def clear_mint(self, learner: str, course_id: str) -> None:
        await self._delete(_mint_key(learner, course_id))
