"""Error Taxonomy — tests for ErrorRecord and typed exceptions.

Tests cover:
    - response body shape, details only when present, internal detail never exposed
    - status codes default from the kind
    - typed exceptions produce their own records
"""

from medgate.core.domain_types import ConstraintKind, ErrorKind
from medgate.core.errors import (
    AuthorizationError,
    ConstraintViolation,
    ErrorRecord,
    FieldIssue,
    NotFoundError,
    RateLimitedError,
    RequestRejected,
    ValidationError,
)


# ─── ErrorRecord ─────────────────────────────────────────────────

def test_record_status_defaults_from_kind():
    assert ErrorRecord.of(ErrorKind.CONFLICT, "dup").status_code == 409


def test_record_status_can_be_overridden():
    record = ErrorRecord.of(ErrorKind.VALIDATION, "too big", status_code=413)
    assert record.status_code == 413


def test_response_omits_empty_details():
    record = ErrorRecord.of(ErrorKind.NOT_FOUND, "User '3' not found")
    assert record.to_response() == {"error": "NotFound", "message": "User '3' not found"}


def test_response_never_contains_internal_detail():
    record = ErrorRecord.of(
        ErrorKind.INTERNAL, "An unexpected error occurred",
        internal_detail="OperationalError: password authentication failed",
    )
    assert "password" not in str(record.to_response())


def test_response_lists_field_issues():
    record = ErrorRecord.of(
        ErrorKind.VALIDATION, "Validation failed: email: Invalid email format",
        details=(FieldIssue("email", "Invalid email format"),),
    )
    assert record.to_response()["details"] == [
        {"field": "email", "message": "Invalid email format"},
    ]


# ─── typed exceptions ────────────────────────────────────────────

def test_default_messages():
    assert AuthorizationError().message == "Insufficient permissions"
    assert NotFoundError().message == "Resource not found"


def test_validation_error_carries_details():
    issues = (FieldIssue("phone", "Invalid phone number"),)
    record = ValidationError("bad phone", field="phone", details=issues).to_record()
    assert record.field == "phone"
    assert record.details == issues


def test_rate_limited_error_status():
    error = RateLimitedError(9)
    assert error.status_code == 429
    assert error.to_record().retry_after_seconds == 9


def test_request_rejected_adopts_record_kind():
    record = ErrorRecord.of(ErrorKind.AUTHENTICATION, "Authentication required")
    error = RequestRejected(record)
    assert error.kind is ErrorKind.AUTHENTICATION
    assert error.status_code == 401
    assert str(error) == "Authentication required"


def test_constraint_violation_is_an_exception():
    violation = ConstraintViolation(ConstraintKind.UNIQUE, "duplicate email")
    assert isinstance(violation, Exception)
    assert str(violation) == "duplicate email"
