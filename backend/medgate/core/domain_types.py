"""Domain Types — closed enumerations and value shapes shared by every pipeline stage.

Invariants:
    - Role is the ONLY role vocabulary: RoleGate, schemas and storage all use it
    - StructuredValue is the full value space of request data (JSON-shaped, no bytes, no objects)
    - Principal.role is either a Role member or None — unknown strings never survive parse_role

Design Decisions:
    - str Enums: serialize to JSON without custom encoders, compare equal to their wire value
    - Principal as frozen dataclass: supplied by the auth collaborator, read-only to the pipeline
"""

from dataclasses import dataclass
from enum import Enum
from typing import TypeAlias


# ─── Value Types ─────────────────────────────────────────────────

StructuredScalar: TypeAlias = str | int | float | bool | None
StructuredValue: TypeAlias = (
    StructuredScalar | list["StructuredValue"] | dict[str, "StructuredValue"]
)
StructuredMapping: TypeAlias = dict[str, StructuredValue]


# ─── Enums ───────────────────────────────────────────────────────

class Role(str, Enum):
    """Closed set of caller roles — maps to the stored `role` column."""
    PATIENT = "patient"
    DOCTOR = "doctor"
    NURSE = "nurse"
    FRONT_DESK = "front-desk"
    ADMIN = "admin"
    SUPER_ADMIN = "super-admin"
    INSURANCE = "insurance"
    PHARMACY = "pharmacy"
    DEPARTMENT_HEAD = "department-head"
    SSD = "ssd"


ADMIN_ROLES = frozenset({Role.ADMIN, Role.SUPER_ADMIN})
CLINICAL_ROLES = frozenset({Role.DOCTOR, Role.NURSE, Role.DEPARTMENT_HEAD})


class ErrorKind(str, Enum):
    """Error taxonomy. Value is the `error` field of the response body."""
    VALIDATION = "Validation"
    AUTHENTICATION = "Authentication"
    AUTHORIZATION = "Authorization"
    NOT_FOUND = "NotFound"
    CONFLICT = "Conflict"
    RATE_LIMITED = "RateLimited"
    INTERNAL = "Internal"


DEFAULT_STATUS: dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.AUTHENTICATION: 401,
    ErrorKind.AUTHORIZATION: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.RATE_LIMITED: 429,
    ErrorKind.INTERNAL: 500,
}


class InputSurface(str, Enum):
    """The three request surfaces a schema can describe."""
    BODY = "body"
    QUERY = "query"
    PARAMS = "params"


class ConstraintKind(str, Enum):
    """Constraint categories a persistence collaborator can report."""
    UNIQUE = "unique"
    FOREIGN_KEY = "foreign_key"
    NOT_NULL = "not_null"
    CHECK = "check"


class PipelineStage(str, Enum):
    """Stage names, in their fixed execution order."""
    SANITIZE = "sanitize"
    VALIDATE = "validate"
    RATE_LIMIT = "rate_limit"
    AUTHORIZE = "authorize"


# ─── Identity ────────────────────────────────────────────────────

@dataclass(frozen=True)
class Principal:
    """Authenticated caller. Role is None when absent or unrecognised."""
    id: str
    role: Role | None = None


def parse_role(value: str | None) -> Role | None:
    """Map a raw role string onto Role; anything outside the set becomes None."""
    if value is None:
        return None
    try:
        return Role(value.strip().lower())
    except ValueError:
        return None
