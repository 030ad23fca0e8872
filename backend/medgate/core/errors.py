"""Error Taxonomy — ErrorRecord plus the typed exceptions handlers may raise.

Invariants:
    - Every failure ends as exactly one ErrorRecord (kind, message, status_code)
    - ErrorRecord.to_response() is the ONLY response body shape for failures:
      {"error": <kind>, "message": str, "details"?: [{"field", "message"}]}
    - internal_detail is never part of to_response() — it exists for logs only
    - 4xx kinds are caller-recoverable; Internal is not

Design Decisions:
    - ErrorRecord as frozen dataclass: stages RETURN it, nothing mutates it afterwards
    - Exceptions kept for business handlers (idiomatic raise inside route code);
      each one knows its own record via to_record()
    - ConstraintViolation lives here (not in infrastructure) so the classifier
      can match on a typed constraint kind without importing the data layer
"""

from dataclasses import dataclass, field

from medgate.core.domain_types import ConstraintKind, DEFAULT_STATUS, ErrorKind


@dataclass(frozen=True)
class FieldIssue:
    """One field-scoped validation problem."""
    field: str
    message: str

    def to_response(self) -> dict:
        return {"field": self.field, "message": self.message}


@dataclass(frozen=True)
class ErrorRecord:
    """Terminal outcome of a failed request."""
    kind: ErrorKind
    message: str
    status_code: int
    field: str | None = None
    retry_after_seconds: int | None = None
    details: tuple[FieldIssue, ...] = ()
    internal_detail: str | None = None

    @classmethod
    def of(
        cls,
        kind: ErrorKind,
        message: str,
        *,
        status_code: int | None = None,
        field: str | None = None,
        retry_after_seconds: int | None = None,
        details: tuple[FieldIssue, ...] = (),
        internal_detail: str | None = None,
    ) -> "ErrorRecord":
        """Build a record, defaulting the status code from the kind."""
        return cls(
            kind=kind,
            message=message,
            status_code=status_code or DEFAULT_STATUS[kind],
            field=field,
            retry_after_seconds=retry_after_seconds,
            details=details,
            internal_detail=internal_detail,
        )

    def to_response(self) -> dict:
        """Convert to the public response body."""
        body: dict = {"error": self.kind.value, "message": self.message}
        if self.details:
            body["details"] = [issue.to_response() for issue in self.details]
        return body


# ─── Typed Pipeline Errors ──────────────────────────────────────

class GatekeeperError(Exception):
    """Base exception for errors that already know their taxonomy slot."""

    kind: ErrorKind = ErrorKind.INTERNAL
    default_message = "An unexpected error occurred"

    def __init__(self, message: str | None = None, *, field: str | None = None):
        self.message = message or self.default_message
        self.field = field
        super().__init__(self.message)

    @property
    def status_code(self) -> int:
        return DEFAULT_STATUS[self.kind]

    def to_record(self) -> ErrorRecord:
        return ErrorRecord.of(self.kind, self.message, field=self.field)


class ValidationError(GatekeeperError):
    """Malformed or missing input — caller can fix and retry."""
    kind = ErrorKind.VALIDATION
    default_message = "Invalid input data"

    def __init__(
        self,
        message: str | None = None,
        *,
        field: str | None = None,
        details: tuple[FieldIssue, ...] = (),
    ):
        super().__init__(message, field=field)
        self.details = details

    def to_record(self) -> ErrorRecord:
        return ErrorRecord.of(
            self.kind, self.message, field=self.field, details=self.details,
        )


class AuthenticationError(GatekeeperError):
    """Missing or invalid identity."""
    kind = ErrorKind.AUTHENTICATION
    default_message = "Authentication required"


class AuthorizationError(GatekeeperError):
    """Valid identity, insufficient role."""
    kind = ErrorKind.AUTHORIZATION
    default_message = "Insufficient permissions"


class NotFoundError(GatekeeperError):
    """Requested resource does not exist."""
    kind = ErrorKind.NOT_FOUND
    default_message = "Resource not found"

    def __init__(self, resource_type: str | None = None, resource_id: str | None = None):
        message = None
        if resource_type and resource_id:
            message = f"{resource_type} '{resource_id}' not found"
        super().__init__(message)


class ConflictError(GatekeeperError):
    """State collision, e.g. a duplicate unique value."""
    kind = ErrorKind.CONFLICT
    default_message = "Resource already exists"


class RateLimitedError(GatekeeperError):
    """Too many requests in the current window."""
    kind = ErrorKind.RATE_LIMITED
    default_message = "Rate limit exceeded"

    def __init__(self, retry_after_seconds: int, message: str | None = None):
        super().__init__(message)
        self.retry_after_seconds = retry_after_seconds

    def to_record(self) -> ErrorRecord:
        return ErrorRecord.of(
            self.kind, self.message, retry_after_seconds=self.retry_after_seconds,
        )


class RequestRejected(GatekeeperError):
    """Carries a record produced by a pipeline stage across the framework seam."""

    def __init__(self, record: ErrorRecord):
        self.record = record
        self.kind = record.kind
        super().__init__(record.message, field=record.field)

    def to_record(self) -> ErrorRecord:
        return self.record


# ─── Persistence Collaborator Errors ────────────────────────────

@dataclass(eq=False)
class ConstraintViolation(Exception):
    """Typed constraint failure reported by a persistence collaborator."""
    kind: ConstraintKind
    message: str = "Constraint violated"
    constraint: str | None = None
    extra: dict = field(default_factory=dict)

    def __post_init__(self):
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message
