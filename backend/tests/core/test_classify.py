"""Error Classifier — tests for total, first-match-wins classification.

Tests cover:
    - records and typed errors pass through with their status codes
    - typed ConstraintViolation maps by kind
    - duplicate-key / foreign-key message signatures map to Conflict / Invalid Reference
    - unknown errors become Internal, message exposed only when allowed
"""

import pytest

from medgate.core.classify import GENERIC_INTERNAL_MESSAGE, classify
from medgate.core.domain_types import ConstraintKind, ErrorKind
from medgate.core.errors import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    ConstraintViolation,
    ErrorRecord,
    NotFoundError,
    RateLimitedError,
    RequestRejected,
    ValidationError,
)


# ─── passthrough ─────────────────────────────────────────────────

@pytest.mark.parametrize("error, kind, status", [
    (ValidationError("bad"), ErrorKind.VALIDATION, 400),
    (AuthenticationError(), ErrorKind.AUTHENTICATION, 401),
    (AuthorizationError(), ErrorKind.AUTHORIZATION, 403),
    (NotFoundError("User", "7"), ErrorKind.NOT_FOUND, 404),
    (ConflictError(), ErrorKind.CONFLICT, 409),
    (RateLimitedError(30), ErrorKind.RATE_LIMITED, 429),
])
def test_typed_errors_pass_through(error, kind, status):
    record = classify(error)
    assert record.kind is kind
    assert record.status_code == status


def test_record_passes_through_unchanged():
    record = ErrorRecord.of(ErrorKind.NOT_FOUND, "gone")
    assert classify(record) is record


def test_request_rejected_returns_carried_record():
    record = ErrorRecord.of(ErrorKind.AUTHORIZATION, "nope")
    assert classify(RequestRejected(record)) is record


def test_rate_limited_keeps_retry_after():
    assert classify(RateLimitedError(12)).retry_after_seconds == 12


def test_not_found_message_names_resource():
    assert classify(NotFoundError("User", "7")).message == "User '7' not found"


# ─── constraints ─────────────────────────────────────────────────

def test_duplicate_key_message_is_conflict():
    error = Exception('duplicate key value violates unique constraint "users_email_key"')
    record = classify(error)
    assert record.kind is ErrorKind.CONFLICT
    assert record.status_code == 409
    assert record.to_response() == {
        "error": "Conflict", "message": "Resource already exists",
    }


def test_foreign_key_message_is_invalid_reference():
    error = RuntimeError('insert violates foreign key constraint "appointments_doctor_id_fkey"')
    record = classify(error)
    assert record.kind is ErrorKind.VALIDATION
    assert record.status_code == 400
    assert record.message == "Invalid Reference"


def test_typed_violation_wins_over_message():
    violation = ConstraintViolation(kind=ConstraintKind.FOREIGN_KEY, message="duplicate key value")
    assert classify(violation).message == "Invalid Reference"


def test_not_null_violation_is_validation():
    record = classify(ConstraintViolation(kind=ConstraintKind.NOT_NULL))
    assert record.kind is ErrorKind.VALIDATION


def test_constraint_record_keeps_internal_detail_for_logs():
    record = classify(Exception("duplicate key value (email)=(a@b.co)"))
    assert "a@b.co" in record.internal_detail
    assert "a@b.co" not in str(record.to_response())


# ─── internal ────────────────────────────────────────────────────

def test_unknown_error_hidden_by_default():
    record = classify(KeyError("secret_column"))
    assert record.kind is ErrorKind.INTERNAL
    assert record.status_code == 500
    assert record.message == GENERIC_INTERNAL_MESSAGE
    assert "secret_column" in record.internal_detail


def test_unknown_error_exposed_outside_production():
    record = classify(ValueError("boom"), expose_internal=True)
    assert record.message == "boom"


def test_empty_message_exposes_type_name():
    assert classify(RuntimeError(), expose_internal=True).message == "RuntimeError"
