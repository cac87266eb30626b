"""Ledger service: payments, signature challenges and certificate mints.

The blockchain side is reached through a wallet gateway over HTTP.  Every
call may suspend until the transaction is confirmed, and every failure is
classified so the workflows can tell "the learner said no" apart from
"the network lost it" apart from "we gave up waiting":

  LedgerRejectedError   the signer declined; nothing happened on chain
  LedgerNetworkError    gateway or RPC failure; nothing confirmed
  LedgerTimeoutError    no confirmation in time; the call may still land

Two implementations satisfy the Protocol:

  - InMemoryLedgerService: deterministic fake for dev and tests, with
    failure injection per operation.
  - HttpLedgerService: httpx client for the wallet gateway configured by
    LEDGER_GATEWAY_URL.
"""

from __future__ import annotations

import asyncio
import hashlib
import itertools
import logging
import time
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Literal, Protocol, runtime_checkable

import httpx

from academy.core.metrics import LEDGER_CALL_DURATION
from academy.models.ledger import MintReceipt, TransferReceipt

logger = logging.getLogger(__name__)

Operation = Literal["transfer", "signature", "mint"]


class LedgerError(Exception):
    """Base class for ledger failures."""


class LedgerRejectedError(LedgerError):
    """The wallet owner declined the request."""


class LedgerNetworkError(LedgerError):
    """Gateway, RPC or confirmation error."""


class LedgerTimeoutError(LedgerError):
    """Confirmation did not arrive in time; outcome unknown."""


@runtime_checkable
class LedgerService(Protocol):
    async def transfer(
        self, sender: str, recipient: str, amount: Decimal
    ) -> TransferReceipt:
        """Move ``amount`` native units and wait for confirmation."""
        ...

    async def request_signature(self, signer: str, payload: str) -> str: ...

    async def mint_certificate(self, owner: str, metadata_uri: str) -> MintReceipt: ...


def signature_payload(message: str, *, timestamp_ms: int) -> str:
    """Canonical text the learner signs: ``{ms}:0x{hex(message)}``."""
    return f"{timestamp_ms}:0x{message.encode('utf-8').hex()}"


# ---------------------------------------------------------------------------
# In-memory fake
# ---------------------------------------------------------------------------


@dataclass
class InMemoryLedgerService:
    """Records every call; ``fail_next`` queues an exception per operation.

    ``delay_seconds`` makes every call sleep first, which lets tests drive
    the workflows' confirmation timeout.
    """

    delay_seconds: float = 0.0
    transfers: list[tuple[str, str, Decimal, str]] = field(default_factory=list)
    signatures: list[tuple[str, str]] = field(default_factory=list)
    mints: list[tuple[str, str, MintReceipt]] = field(default_factory=list)
    _failures: dict[str, list[LedgerError]] = field(default_factory=dict)
    _counter: itertools.count = field(default_factory=lambda: itertools.count(1))

    def fail_next(self, operation: Operation, error: LedgerError) -> None:
        self._failures.setdefault(operation, []).append(error)

    async def _enter(self, operation: Operation) -> None:
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)
        queued = self._failures.get(operation)
        if queued:
            raise queued.pop(0)

    def _hash(self, *parts: object) -> str:
        seq = next(self._counter)
        digest = hashlib.sha256("|".join(map(str, (seq, *parts))).encode()).hexdigest()
        return f"0x{digest}"

    async def transfer(
        self, sender: str, recipient: str, amount: Decimal
    ) -> TransferReceipt:
        await self._enter("transfer")
        tx_hash = self._hash("transfer", sender, recipient, amount)
        self.transfers.append((sender, recipient, amount, tx_hash))
        return TransferReceipt(tx_hash)

    async def request_signature(self, signer: str, payload: str) -> str:
        await self._enter("signature")
        self.signatures.append((signer, payload))
        return self._hash("sig", signer, payload)

    async def mint_certificate(self, owner: str, metadata_uri: str) -> MintReceipt:
        await self._enter("mint")
        receipt = MintReceipt(
            token_id=str(len(self.mints) + 1),
            tx_hash=self._hash("mint", owner),
        )
        self.mints.append((owner, metadata_uri, receipt))
        return receipt


# ---------------------------------------------------------------------------
# Wallet gateway client
# ---------------------------------------------------------------------------


class HttpLedgerService:
    """Client for the wallet gateway.

    The gateway holds the signing session for a connected wallet and
    answers once the transaction is confirmed.  A 409 with
    ``{"code": "user_rejected"}`` means the learner declined in the wallet.
    """

    def __init__(
        self,
        base_url: str,
        *,
        currency: str,
        timeout_seconds: float,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._currency = currency
        self._client = client or httpx.AsyncClient(
            base_url=base_url, timeout=httpx.Timeout(timeout_seconds, connect=10.0)
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _post(self, path: str, body: dict) -> dict:
        try:
            response = await self._client.post(path, json=body)
        except httpx.TimeoutException as exc:
            raise LedgerTimeoutError(f"{path}: no confirmation ({exc})") from exc
        except httpx.HTTPError as exc:
            raise LedgerNetworkError(f"{path}: {exc}") from exc

        if response.status_code >= 400:
            try:
                payload = response.json()
            except ValueError:
                payload = {}
            code = payload.get("code", "")
            message = payload.get("detail") or response.text
            logger.warning(
                "Ledger gateway %s returned %d code=%s", path, response.status_code, code
            )
            if code == "user_rejected":
                raise LedgerRejectedError(message)
            raise LedgerNetworkError(f"{path}: HTTP {response.status_code} {message}")
        return response.json()

    async def transfer(
        self, sender: str, recipient: str, amount: Decimal
    ) -> TransferReceipt:
        data = await self._post(
            "/transfers",
            {
                "from": sender,
                "to": recipient,
                "amount": str(amount),
                "currency": self._currency,
            },
        )
        return TransferReceipt(data["txHash"])

    async def request_signature(self, signer: str, payload: str) -> str:
        data = await self._post("/signatures", {"signer": signer, "message": payload})
        return data["signature"]

    async def mint_certificate(self, owner: str, metadata_uri: str) -> MintReceipt:
        data = await self._post(
            "/certificates", {"owner": owner, "metadataUri": metadata_uri}
        )
        return MintReceipt(token_id=str(data["tokenId"]), tx_hash=data["txHash"])


async def confirmed(operation: Operation, call, timeout_seconds: float):
    """Await a ledger call, bounded by ``timeout_seconds``.

    Expiry raises LedgerTimeoutError and never retries: a payment that
    timed out may still be confirmed later.
    """
    started = time.perf_counter()
    try:
        return await asyncio.wait_for(call, timeout=timeout_seconds)
    except asyncio.TimeoutError:
        raise LedgerTimeoutError(
            f"{operation}: no confirmation after {timeout_seconds:g}s"
        ) from None
    finally:
        LEDGER_CALL_DURATION.labels(operation=operation).observe(
            time.perf_counter() - started
        )
