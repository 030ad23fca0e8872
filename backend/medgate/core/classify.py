"""Error Classifier — folds ANY failure into exactly one ErrorRecord.

Invariants:
    - classify() is TOTAL: every input maps to one record, it never raises
    - First match wins: record → typed error → typed constraint → message signature → Internal
    - Internal records never carry the underlying message unless expose_internal is set;
      internal_detail always does (for logs)

Design Decisions:
    - Typed ConstraintViolation is checked before message signatures: persistence
      collaborators that report a ConstraintKind never depend on message wording
    - Substring signatures kept as a fallback for collaborators that only raise text
      (known debt: couples us to the database driver's message format)
"""

from medgate.core.domain_types import ConstraintKind, ErrorKind
from medgate.core.errors import ConstraintViolation, ErrorRecord, GatekeeperError

GENERIC_INTERNAL_MESSAGE = "An unexpected error occurred"

DUPLICATE_SIGNATURES = (
    "duplicate key value",
    "unique constraint",
    "violates unique",
)
FOREIGN_KEY_SIGNATURES = (
    "foreign key constraint",
    "violates foreign key",
)

_CONSTRAINT_RECORDS: dict[ConstraintKind, tuple[ErrorKind, str]] = {
    ConstraintKind.UNIQUE: (ErrorKind.CONFLICT, "Resource already exists"),
    ConstraintKind.FOREIGN_KEY: (ErrorKind.VALIDATION, "Invalid Reference"),
    ConstraintKind.NOT_NULL: (ErrorKind.VALIDATION, "Missing required value"),
    ConstraintKind.CHECK: (ErrorKind.VALIDATION, "Value violates a constraint"),
}


def classify(error: BaseException | ErrorRecord, expose_internal: bool = False) -> ErrorRecord:
    """Map error onto the taxonomy."""
    if isinstance(error, ErrorRecord):
        return error
    if isinstance(error, GatekeeperError):
        return error.to_record()
    if isinstance(error, ConstraintViolation):
        return constraint_record(error.kind, detail=_describe(error))

    kind = constraint_kind_from_message(str(error))
    if kind is not None:
        return constraint_record(kind, detail=_describe(error))

    return internal_record(error, expose_internal)


def constraint_kind_from_message(message: str) -> ConstraintKind | None:
    """Best-effort constraint kind from free-text driver messages."""
    lowered = message.lower()
    if any(sig in lowered for sig in DUPLICATE_SIGNATURES):
        return ConstraintKind.UNIQUE
    if any(sig in lowered for sig in FOREIGN_KEY_SIGNATURES):
        return ConstraintKind.FOREIGN_KEY
    return None


def constraint_record(kind: ConstraintKind, detail: str | None = None) -> ErrorRecord:
    error_kind, message = _CONSTRAINT_RECORDS[kind]
    return ErrorRecord.of(error_kind, message, internal_detail=detail)


def internal_record(error: BaseException, expose_internal: bool) -> ErrorRecord:
    detail = _describe(error)
    message = (str(error) or type(error).__name__) if expose_internal else GENERIC_INTERNAL_MESSAGE
    return ErrorRecord.of(ErrorKind.INTERNAL, message, internal_detail=detail)


def _describe(error: BaseException) -> str:
    return f"{type(error).__name__}: {error}"
