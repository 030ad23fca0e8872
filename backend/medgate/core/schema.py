"""Schema Validation — declarative input shapes and a collect-all validator.

Invariants:
    - A SchemaDescriptor is a frozen Pydantic model class: immutable once defined
    - OpenSchema passes unknown fields through; ClosedSchema rejects them
    - validate() never raises for bad input: every issue becomes one FieldIssue,
      all issues of one pass are returned together
    - Transforms (int coercion, upper-casing, defaults) run only AFTER the base
      constraint passes (AfterValidator ordering)
    - On success, ValidationOutcome.value is the coerced JSON-shaped mapping that
      replaces the raw surface downstream

Design Decisions:
    - Pydantic over a hand-written walker: lax mode already coerces query strings,
      and error locations map directly onto field paths
    - PydanticCustomError for constraint failures: message text is exact
      ("Invalid email format"), no "Value error, " prefix
"""

import re
import uuid
from dataclasses import dataclass
from typing import Annotated, Literal

from pydantic import (
    AfterValidator,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    StringConstraints,
    ValidationError as PydanticValidationError,
)
from pydantic_core import PydanticCustomError

from medgate.core.domain_types import ErrorKind, InputSurface, StructuredValue
from medgate.core.errors import ErrorRecord, FieldIssue


# ─── Descriptors ─────────────────────────────────────────────────

class OpenSchema(BaseModel):
    """Base for schemas that let unknown fields through."""
    model_config = ConfigDict(frozen=True, extra="allow")


class ClosedSchema(BaseModel):
    """Base for schemas that reject unknown fields."""
    model_config = ConfigDict(frozen=True, extra="forbid")


SchemaDescriptor = type[BaseModel]


# ─── Field Types ─────────────────────────────────────────────────

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
PHONE_PATTERN = re.compile(r"^\+?[1-9]\d{0,15}$")
PASSWORD_PATTERN = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)")
DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def _matching(pattern: re.Pattern, error_type: str, message: str):
    def check(value: str) -> str:
        if not pattern.match(value):
            raise PydanticCustomError(error_type, message)
        return value
    return check


def _check_uuid(value: str) -> str:
    try:
        uuid.UUID(value)
    except ValueError:
        raise PydanticCustomError("invalid_uuid", "Invalid UUID format") from None
    return value


def _require_digits(value):
    """Numeric id path segment: digits only and at least 1, converted to int afterwards."""
    if isinstance(value, str) and value.isascii() and value.isdigit():
        value = int(value)
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise PydanticCustomError("invalid_id", "Id must be a positive integer")
    return value


Email = Annotated[
    str, AfterValidator(_matching(EMAIL_PATTERN, "invalid_email", "Invalid email format")),
]
PhoneNumber = Annotated[
    str, AfterValidator(_matching(PHONE_PATTERN, "invalid_phone", "Invalid phone number")),
]
Password = Annotated[
    str,
    Field(min_length=8),
    AfterValidator(_matching(
        PASSWORD_PATTERN, "weak_password",
        "Password must contain at least one uppercase letter, "
        "one lowercase letter, and one number",
    )),
]
IsoDate = Annotated[
    str, AfterValidator(_matching(DATE_PATTERN, "invalid_date", "Date must be in YYYY-MM-DD format")),
]
UuidString = Annotated[str, AfterValidator(_check_uuid)]
DepartmentCode = Annotated[
    str, StringConstraints(min_length=2, max_length=10), AfterValidator(str.upper),
]
NumericId = Annotated[int, BeforeValidator(_require_digits)]


# ─── Shared Schemas ──────────────────────────────────────────────

class IdParams(ClosedSchema):
    """Path parameters for /<resource>/{id} routes."""
    id: NumericId


class PaginationQuery(OpenSchema):
    """Pagination query string; numeric strings coerced, defaults filled."""
    page: int = Field(1, ge=1)
    limit: int = Field(10, ge=1, le=100)
    search: str | None = None
    sort_by: str | None = None
    sort_order: Literal["asc", "desc"] = "desc"


# ─── Validation ──────────────────────────────────────────────────

@dataclass(frozen=True)
class ValidationOutcome:
    """Result of validating one surface: a value OR issues, never both."""
    value: StructuredValue = None
    issues: tuple[FieldIssue, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.issues

    def to_record(self) -> ErrorRecord:
        return validation_record(self.issues)


def validate(
    data: StructuredValue,
    schema: SchemaDescriptor,
    surface: InputSurface = InputSurface.BODY,
) -> ValidationOutcome:
    """Validate data against schema, collecting every field issue."""
    try:
        model = schema.model_validate(data)
    except PydanticValidationError as exc:
        return ValidationOutcome(issues=tuple(
            FieldIssue(field=_field_path(err["loc"], surface), message=err["msg"])
            for err in exc.errors()
        ))
    return ValidationOutcome(value=model.model_dump(mode="json"))


def validation_record(issues: tuple[FieldIssue, ...]) -> ErrorRecord:
    """Fold issues into one Validation record with a joined message."""
    summary = ", ".join(f"{i.field}: {i.message}" for i in issues)
    return ErrorRecord.of(
        ErrorKind.VALIDATION,
        f"Validation failed: {summary}",
        field=issues[0].field if issues else None,
        details=issues,
    )


def _field_path(loc: tuple, surface: InputSurface) -> str:
    """Dotted field path; whole-surface errors are attributed to the surface."""
    if not loc:
        return surface.value
    return ".".join(str(part) for part in loc)
