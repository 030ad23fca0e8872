"""Persistence Error Translation — SQLAlchemy failures → typed ConstraintViolation.

Invariants:
    - IntegrityError with a known SQLSTATE maps by code, never by message
    - Unknown codes fall back to driver-message signatures (PostgreSQL and SQLite wording)
    - Non-integrity SQLAlchemy errors are NOT translated — they classify as Internal

Design Decisions:
    - Translation lives at the data-layer edge so core/classify.py never imports SQLAlchemy
    - SQLSTATE read from psycopg (`pgcode`) or asyncpg (`sqlstate`) driver exceptions
"""

import logging

from sqlalchemy.exc import IntegrityError

from medgate.core.classify import constraint_kind_from_message
from medgate.core.domain_types import ConstraintKind
from medgate.core.errors import ConstraintViolation

logger = logging.getLogger(__name__)

SQLSTATE_CONSTRAINTS: dict[str, ConstraintKind] = {
    "23505": ConstraintKind.UNIQUE,
    "23503": ConstraintKind.FOREIGN_KEY,
    "23502": ConstraintKind.NOT_NULL,
    "23514": ConstraintKind.CHECK,
}

_SQLITE_SIGNATURES: dict[str, ConstraintKind] = {
    "not null constraint failed": ConstraintKind.NOT_NULL,
    "check constraint failed": ConstraintKind.CHECK,
}


def translate_integrity_error(exc: IntegrityError) -> ConstraintViolation | None:
    """Typed violation for exc, or None when the kind cannot be determined."""
    orig = exc.orig
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    kind = SQLSTATE_CONSTRAINTS.get(code) if code else None
    message = str(orig) if orig is not None else str(exc)
    if kind is None:
        kind = constraint_kind_from_message(message) or _sqlite_kind(message)
    if kind is None:
        logger.debug(f"Untranslatable integrity error: {message}")
        return None
    diag = getattr(orig, "diag", None)
    return ConstraintViolation(
        kind=kind,
        message=message,
        constraint=getattr(diag, "constraint_name", None),
    )


def _sqlite_kind(message: str) -> ConstraintKind | None:
    lowered = message.lower()
    for signature, kind in _SQLITE_SIGNATURES.items():
        if signature in lowered:
            return kind
    return None
