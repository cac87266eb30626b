"""Request context: a request id and the calling wallet for every log line.

Both values live in context variables so concurrent requests on the same
event loop never see each other's values.  A logging filter on the root
handler copies them onto every record; the JSON formatter promotes them to
top-level keys.
"""

from __future__ import annotations

import logging
import time
import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from academy.models.user import normalize_address

logger = logging.getLogger(__name__)

WALLET_HEADER = "x-wallet-address"

request_id_var: ContextVar[str] = ContextVar("request_id", default="-")
learner_var: ContextVar[str] = ContextVar("learner", default="-")


class RequestContextFilter(logging.Filter):
    """Stamps request_id and learner on records that do not already carry them.

    Installed on the root handler by setup_logging: filters on the root
    *logger* never see records propagated from child loggers.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = request_id_var.get("-")  # type: ignore[attr-defined]
        if not hasattr(record, "learner"):
            record.learner = learner_var.get("-")  # type: ignore[attr-defined]
        return True


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Assign a request id, remember the learner, time and log the request."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        req_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        learner = normalize_address(request.headers.get(WALLET_HEADER, "")) or "-"
        request_id_var.set(req_id)
        learner_var.set(learner)

        start = time.monotonic()
        response = await call_next(request)
        duration_ms = round((time.monotonic() - start) * 1000, 1)

        logger.info(
            "%s %s -> %d (%.1fms)",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
            extra={
                "request_id": req_id,
                "learner": learner,
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
            },
        )

        response.headers["X-Request-ID"] = req_id
        return response
