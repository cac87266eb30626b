from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    # informational
    ALREADY_ENROLLED = "ALREADY_ENROLLED"

    # enrollment
    PAYMENT_FAILED = "PAYMENT_FAILED"
    SIGNATURE_REJECTED = "SIGNATURE_REJECTED"
    PAID_BUT_NOT_ENROLLED = "PAID_BUT_NOT_ENROLLED"
    ENROLLMENT_WRITE_FAILED = "ENROLLMENT_WRITE_FAILED"
    CONFIRMATION_TIMEOUT = "CONFIRMATION_TIMEOUT"

    # progress
    PROGRESS_WRITE_FAILED = "PROGRESS_WRITE_FAILED"
    MODULE_LOCKED = "MODULE_LOCKED"
    QUIZ_NOT_PASSED = "QUIZ_NOT_PASSED"

    # certificate
    MINT_FAILED = "MINT_FAILED"
    CERTIFICATE_WRITE_FAILED = "CERTIFICATE_WRITE_FAILED"
    NOT_ELIGIBLE = "NOT_ELIGIBLE"
    RATING_WRITE_FAILED = "RATING_WRITE_FAILED"

    # lookups / request shape
    NOT_ENROLLED = "NOT_ENROLLED"
    COURSE_NOT_FOUND = "COURSE_NOT_FOUND"
    MODULE_NOT_FOUND = "MODULE_NOT_FOUND"
    OPERATION_IN_PROGRESS = "OPERATION_IN_PROGRESS"
    INVALID_REQUEST = "INVALID_REQUEST"


class WorkflowError(Exception):
    """A workflow step failed; ``kind`` tells the caller what is safe to retry.

    ``tx_hash`` is set when a ledger payment already landed, ``token_id``
    when a certificate was minted but not recorded.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str = "",
        *,
        tx_hash: str | None = None,
        token_id: str | None = None,
    ) -> None:
        super().__init__(message or kind.value)
        self.kind = kind
        self.message = message or kind.value
        self.tx_hash = tx_hash
        self.token_id = token_id

    def __repr__(self) -> str:
        return f"WorkflowError({self.kind.value}, {self.message!r})"
