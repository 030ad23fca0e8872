"""Error Handlers — every failure path ends in classify() + respond().

Invariants:
    - One response shape for all failures: ErrorRecord.to_response()
    - Every classified error is logged with method, path, caller and client key
    - Rate-limit headers recorded by the gate are copied onto error responses
    - Internal errors never leak their message in production (classify decides)

Design Decisions:
    - Handlers registered per exception family, most specific first; the
      catch-all Exception handler is the last resort
    - SQLAlchemy IntegrityError translated to ConstraintViolation at this edge
      so the classifier sees a typed constraint kind
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from medgate.api.gatekeeping import client_key, resolve_principal
from medgate.core.classify import classify
from medgate.core.domain_types import DEFAULT_STATUS, ErrorKind
from medgate.core.errors import (
    ConstraintViolation,
    ErrorRecord,
    FieldIssue,
    GatekeeperError,
)
from medgate.core.schema import validation_record
from medgate.infrastructure.persistence_errors import translate_integrity_error

logger = logging.getLogger(__name__)

_REQUEST_SURFACES = {"body", "query", "path", "header", "cookie"}

_HTTP_STATUS_KINDS: dict[int, ErrorKind] = {
    status: kind for kind, status in DEFAULT_STATUS.items()
}


def register_error_handlers(app: FastAPI) -> None:
    """Register all global error handlers on the FastAPI app."""
    app.add_exception_handler(GatekeeperError, classified_error_handler)
    app.add_exception_handler(ConstraintViolation, classified_error_handler)
    app.add_exception_handler(IntegrityError, _integrity_error_handler)
    app.add_exception_handler(SQLAlchemyError, classified_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.add_exception_handler(Exception, classified_error_handler)


def respond(request: Request, record: ErrorRecord, exc: BaseException | None = None) -> JSONResponse:
    """Log the record with request context and render it."""
    request.app.state.events.error(record, error_context(request), exc)
    headers = {}
    decision = getattr(request.state, "rate_limit", None)
    if decision is not None:
        headers.update(decision.headers())
    if record.retry_after_seconds is not None:
        headers["Retry-After"] = str(record.retry_after_seconds)
    return JSONResponse(
        status_code=record.status_code, content=record.to_response(), headers=headers,
    )


def error_context(request: Request) -> dict:
    gated = getattr(request.state, "gated", None)
    principal = gated.principal if gated is not None else resolve_principal(request)
    return {
        "method": request.method,
        "path": request.url.path,
        "client_key": client_key(request),
        "principal_id": principal.id if principal else None,
        "role": principal.role.value if principal and principal.role else None,
    }


async def classified_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Typed errors pass through; foreign errors are folded by classify()."""
    expose = request.app.state.settings.expose_internal_errors
    return respond(request, classify(exc, expose_internal=expose), exc)


async def _integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    expose = request.app.state.settings.expose_internal_errors
    violation = translate_integrity_error(exc)
    return respond(request, classify(violation or exc, expose_internal=expose), exc)


async def _request_validation_handler(
    request: Request, exc: RequestValidationError,
) -> JSONResponse:
    """FastAPI's own parameter validation, folded into the same record shape."""
    issues = tuple(
        FieldIssue(field=_field_from_loc(err["loc"]), message=err["msg"])
        for err in exc.errors()
    )
    return respond(request, validation_record(issues), exc)


async def _http_exception_handler(
    request: Request, exc: StarletteHTTPException,
) -> JSONResponse:
    kind = _HTTP_STATUS_KINDS.get(exc.status_code)
    if kind is None:
        kind = ErrorKind.INTERNAL if exc.status_code >= 500 else ErrorKind.VALIDATION
    record = ErrorRecord.of(kind, str(exc.detail), status_code=exc.status_code)
    response = respond(request, record, exc)
    if exc.headers:
        response.headers.update(exc.headers)
    return response


def _field_from_loc(loc: tuple) -> str:
    parts = list(loc)
    if len(parts) > 1 and parts[0] in _REQUEST_SURFACES:
        parts = parts[1:]
    return ".".join(str(part) for part in parts)
