from __future__ import annotations

import json
import logging

from academy.core.logging import _ContainerFormatter, _JsonFormatter, setup_logging
from academy.middleware.request_context import (
    RequestContextFilter,
    learner_var,
    request_id_var,
)


def _record(level: int = logging.INFO, msg: str = "hello", lineno: int = 1):
    return logging.LogRecord(
        name="academy.test",
        level=level,
        pathname="svc.py",
        lineno=lineno,
        msg=msg,
        args=(),
        exc_info=None,
    )


# ---- setup ----


def test_setup_logging_sets_root_level() -> None:
    setup_logging("debug")
    assert logging.getLogger().level == logging.DEBUG

    setup_logging("warning")
    assert logging.getLogger().level == logging.WARNING


def test_setup_logging_defaults_to_info_for_unknown_level() -> None:
    setup_logging("nonexistent")
    assert logging.getLogger().level == logging.INFO


def test_setup_logging_quiets_http_clients_at_debug() -> None:
    setup_logging("debug")
    assert logging.getLogger("uvicorn").level == logging.WARNING
    assert logging.getLogger("httpx").level == logging.WARNING
    assert logging.getLogger("openai").level == logging.WARNING


def test_setup_logging_installs_context_filter_on_handler() -> None:
    setup_logging("info", json_format=True)
    [handler] = logging.getLogger().handlers
    assert isinstance(handler.formatter, _JsonFormatter)
    assert any(isinstance(f, RequestContextFilter) for f in handler.filters)


# ---- text formatter ----


def test_formatter_excludes_location_for_info() -> None:
    output = _ContainerFormatter().format(_record())
    assert "hello" in output
    assert "[svc.py:" not in output


def test_formatter_includes_location_for_warning() -> None:
    output = _ContainerFormatter().format(_record(logging.WARNING, "bad thing", 42))
    assert "bad thing" in output
    assert "[svc.py:42]" in output


# ---- JSON formatter ----


def test_json_formatter_produces_valid_json() -> None:
    parsed = json.loads(_JsonFormatter().format(_record(msg="Hello world")))
    assert parsed["level"] == "INFO"
    assert parsed["logger"] == "academy.test"
    assert parsed["message"] == "Hello world"
    assert "timestamp" in parsed


def test_json_formatter_promotes_workflow_context() -> None:
    record = _record()
    record.request_id = "abc-123"  # type: ignore[attr-defined]
    record.learner = "0xabc"  # type: ignore[attr-defined]
    record.kind = "PAID_BUT_NOT_ENROLLED"  # type: ignore[attr-defined]

    parsed = json.loads(_JsonFormatter().format(record))
    assert parsed["request_id"] == "abc-123"
    assert parsed["learner"] == "0xabc"
    assert parsed["kind"] == "PAID_BUT_NOT_ENROLLED"


def test_json_formatter_omits_placeholder_context() -> None:
    record = _record()
    record.request_id = "-"  # type: ignore[attr-defined]
    parsed = json.loads(_JsonFormatter().format(record))
    assert "request_id" not in parsed


# ---- context filter ----


def test_context_filter_stamps_current_request() -> None:
    rid_token = request_id_var.set("req-1")
    learner_token = learner_var.set("0xabc")
    try:
        record = _record()
        assert RequestContextFilter().filter(record) is True
    finally:
        request_id_var.reset(rid_token)
        learner_var.reset(learner_token)

    assert record.request_id == "req-1"  # type: ignore[attr-defined]
    assert record.learner == "0xabc"  # type: ignore[attr-defined]


def test_context_filter_keeps_explicit_extra() -> None:
    record = _record()
    record.learner = "0xexplicit"  # type: ignore[attr-defined]
    RequestContextFilter().filter(record)
    assert record.learner == "0xexplicit"  # type: ignore[attr-defined]
