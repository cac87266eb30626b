"""Translate workflow failures into HTTP responses.

Every ``WorkflowError`` becomes ``{"detail", "kind"}`` plus the ledger
evidence it carries (``tx_hash``, ``token_id``), so a client that was
charged but not enrolled has the hash to quote to support.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from academy.repos.store import PersistenceError
from academy.services.errors import ErrorKind, WorkflowError
from academy.services.profiles import ProfileValidationError

logger = logging.getLogger(__name__)

STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.COURSE_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.MODULE_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.NOT_ENROLLED: status.HTTP_404_NOT_FOUND,
    ErrorKind.ALREADY_ENROLLED: status.HTTP_409_CONFLICT,
    ErrorKind.MODULE_LOCKED: status.HTTP_409_CONFLICT,
    ErrorKind.QUIZ_NOT_PASSED: status.HTTP_409_CONFLICT,
    ErrorKind.NOT_ELIGIBLE: status.HTTP_409_CONFLICT,
    ErrorKind.OPERATION_IN_PROGRESS: status.HTTP_409_CONFLICT,
    ErrorKind.PAYMENT_FAILED: status.HTTP_402_PAYMENT_REQUIRED,
    ErrorKind.SIGNATURE_REJECTED: status.HTTP_403_FORBIDDEN,
    ErrorKind.INVALID_REQUEST: status.HTTP_400_BAD_REQUEST,
    ErrorKind.PAID_BUT_NOT_ENROLLED: status.HTTP_502_BAD_GATEWAY,
    ErrorKind.MINT_FAILED: status.HTTP_502_BAD_GATEWAY,
    ErrorKind.ENROLLMENT_WRITE_FAILED: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorKind.PROGRESS_WRITE_FAILED: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorKind.CERTIFICATE_WRITE_FAILED: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorKind.RATING_WRITE_FAILED: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorKind.CONFIRMATION_TIMEOUT: status.HTTP_504_GATEWAY_TIMEOUT,
}


def error_body(exc: WorkflowError) -> dict[str, str]:
    body = {"detail": exc.message, "kind": exc.kind.value}
    if exc.tx_hash is not None:
        body["tx_hash"] = exc.tx_hash
    if exc.token_id is not None:
        body["token_id"] = exc.token_id
    return body


async def _workflow_error(_request: Request, exc: WorkflowError) -> JSONResponse:
    code = STATUS_BY_KIND.get(exc.kind, status.HTTP_500_INTERNAL_SERVER_ERROR)
    log = logger.error if code >= 500 else logger.warning
    log("Workflow error %s: %s", exc.kind.value, exc.message, extra={"kind": exc.kind.value})
    return JSONResponse(status_code=code, content=error_body(exc))


async def _validation_error(_request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={"detail": str(exc), "kind": ErrorKind.INVALID_REQUEST.value},
    )


async def _persistence_error(_request: Request, exc: Exception) -> JSONResponse:
    logger.error("Persistence failure: %s", exc)
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "storage unavailable, retry later"},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(WorkflowError, _workflow_error)
    app.add_exception_handler(ProfileValidationError, _validation_error)
    app.add_exception_handler(PersistenceError, _persistence_error)
