"""Structured Logging — tests for JSONFormatter and EventLogger.

Tests cover:
    - JSONFormatter emits base fields plus known extras, skips None extras
    - EventLogger levels: stage failures INFO, unsafe input WARNING, 5xx ERROR with traceback
    - request context never carries request bodies
    - setup_logging is idempotent
"""

import json
import logging

from medgate.core.domain_types import ErrorKind, PipelineStage, Principal, Role
from medgate.core.errors import ErrorRecord
from medgate.core.pipeline import RequestState
from medgate.infrastructure.observability import (
    HANDLER_MARKER,
    EventLogger,
    JSONFormatter,
    request_context,
    setup_logging,
)

LOGGER = "medgate.events"


def _state():
    return RequestState(
        method="POST",
        path="/api/v1/auth/signup",
        client_key="10.0.0.1",
        body={"password": "Secret123"},
        principal=Principal("u7", Role.NURSE),
    )


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord("medgate.test", logging.INFO, __file__, 1, "hello", (), None)
    record.__dict__.update(extra)
    return record


# ─── JSONFormatter ───────────────────────────────────────────────

def test_json_formatter_base_fields():
    payload = json.loads(JSONFormatter().format(_record()))
    assert payload["level"] == "INFO"
    assert payload["logger"] == "medgate.test"
    assert payload["message"] == "hello"
    assert "timestamp" in payload


def test_json_formatter_includes_known_extras_only():
    payload = json.loads(JSONFormatter().format(
        _record(path="/x", status_code=429, stage=None, secret="nope"),
    ))
    assert payload["path"] == "/x"
    assert payload["status_code"] == 429
    assert "stage" not in payload
    assert "secret" not in payload


# ─── setup_logging ───────────────────────────────────────────────

def test_setup_logging_replaces_its_own_handler():
    root = logging.getLogger()
    level = root.level
    try:
        first = setup_logging("DEBUG", "json")
        second = setup_logging("WARNING", "text")
        ours = [h for h in root.handlers if getattr(h, HANDLER_MARKER, False)]
        assert ours == [second]
        assert first not in root.handlers
        assert isinstance(second.formatter, logging.Formatter)
        assert not isinstance(second.formatter, JSONFormatter)
        assert root.level == logging.WARNING
    finally:
        root.removeHandler(second)
        root.setLevel(level)


# ─── request context ─────────────────────────────────────────────

def test_request_context_describes_caller_not_payload():
    context = request_context(_state())
    assert context == {
        "method": "POST",
        "path": "/api/v1/auth/signup",
        "client_key": "10.0.0.1",
        "principal_id": "u7",
        "role": "nurse",
    }


# ─── EventLogger ─────────────────────────────────────────────────

def test_stage_failed_logged_at_info(caplog):
    record = ErrorRecord.of(ErrorKind.VALIDATION, "Validation failed: email: x", field="email")
    with caplog.at_level(logging.INFO, logger=LOGGER):
        EventLogger().stage_failed(PipelineStage.VALIDATE, _state(), record)
    [entry] = caplog.records
    assert entry.levelno == logging.INFO
    assert entry.stage == "validate"
    assert entry.error_kind == "Validation"
    assert entry.field == "email"


def test_unsafe_input_logged_at_warning(caplog):
    with caplog.at_level(logging.WARNING, logger=LOGGER):
        EventLogger().unsafe_input(_state())
    assert caplog.records[0].levelno == logging.WARNING


def test_internal_error_logged_with_traceback(caplog):
    try:
        raise RuntimeError("db down")
    except RuntimeError as exc:
        error = exc
    record = ErrorRecord.of(
        ErrorKind.INTERNAL, "An unexpected error occurred",
        internal_detail="RuntimeError: db down",
    )
    with caplog.at_level(logging.INFO, logger=LOGGER):
        EventLogger().error(record, {"path": "/x"}, error)
    [entry] = caplog.records
    assert entry.levelno == logging.ERROR
    assert "RuntimeError: db down" in entry.getMessage()
    assert entry.exc_info[1] is error


def test_client_error_logged_at_warning_without_traceback(caplog):
    record = ErrorRecord.of(ErrorKind.NOT_FOUND, "User '3' not found")
    with caplog.at_level(logging.INFO, logger=LOGGER):
        EventLogger().error(record, {"path": "/x"})
    [entry] = caplog.records
    assert entry.levelno == logging.WARNING
    assert not entry.exc_info


def test_request_completed_rounds_duration(caplog):
    with caplog.at_level(logging.INFO, logger=LOGGER):
        EventLogger().request_completed({"method": "GET", "path": "/h"}, 200, 12.3456)
    [entry] = caplog.records
    assert entry.getMessage() == "GET /h 200"
    assert entry.duration_ms == 12.35
