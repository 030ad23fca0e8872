"""Structured Logging — JSON formatter, setup, and the pipeline's EventLogger.

Invariants:
    - All logs include timestamp, level, logger name, and message
    - Extra fields (method, path, client_key, error_kind, ...) surfaced when present
    - JSON format in production, human-readable in development
    - EventLogger never raises into the request path: logging is fire-and-forget

Design Decisions:
    - JSONFormatter over third-party libs: stdlib logging already gives us handlers,
      levels and process-wide registration
    - setup_logging called once on startup via lifespan
    - EventLogger wraps a named logger instead of formatting its own strings:
      sinks stay swappable through standard logging configuration
"""

import json
import logging
from datetime import datetime, timezone

from medgate.core.domain_types import PipelineStage
from medgate.core.errors import ErrorRecord
from medgate.core.pipeline import RequestState

EXTRA_FIELDS = (
    "method", "path", "status_code", "duration_ms", "client_key",
    "principal_id", "role", "error_kind", "stage", "field",
    "retry_after_seconds", "remaining", "user_agent",
)
HANDLER_MARKER = "_medgate_handler"


class JSONFormatter(logging.Formatter):
    """Format logs as JSON for structured logging in production."""

    def format(self, record: logging.LogRecord) -> str:
        log = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in EXTRA_FIELDS:
            val = record.__dict__.get(key)
            if val is not None:
                log[key] = val
        if record.exc_info:
            log["exception"] = self.formatException(record.exc_info)
        return json.dumps(log, ensure_ascii=False, default=str)


def setup_logging(level: str = "INFO", fmt: str = "json") -> logging.Handler:
    """Install the medgate stream handler on the root logger (idempotent)."""
    root = logging.getLogger()
    for existing in list(root.handlers):
        if getattr(existing, HANDLER_MARKER, False):
            root.removeHandler(existing)

    handler = logging.StreamHandler()
    setattr(handler, HANDLER_MARKER, True)
    handler.setFormatter(
        JSONFormatter() if fmt == "json"
        else logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
    )
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    return handler


def request_context(state: RequestState) -> dict:
    """Log extras describing who sent what."""
    principal = state.principal
    return {
        "method": state.method,
        "path": state.path,
        "client_key": state.client_key,
        "principal_id": principal.id if principal else None,
        "role": principal.role.value if principal and principal.role else None,
    }


class EventLogger:
    """Structured events for pipeline stages, classified errors and requests."""

    def __init__(self, name: str = "medgate.events"):
        self._logger = logging.getLogger(name)

    def stage_passed(self, stage: PipelineStage, state: RequestState) -> None:
        self._logger.debug(
            f"Stage {stage.value} passed",
            extra={**request_context(state), "stage": stage.value},
        )

    def stage_failed(
        self, stage: PipelineStage, state: RequestState, record: ErrorRecord,
    ) -> None:
        self._logger.info(
            f"Stage {stage.value} rejected request: {record.message}",
            extra={
                **request_context(state),
                "stage": stage.value,
                "error_kind": record.kind.value,
                "status_code": record.status_code,
                "field": record.field,
                "retry_after_seconds": record.retry_after_seconds,
            },
        )

    def unsafe_input(self, state: RequestState) -> None:
        self._logger.warning(
            "Unsafe markup stripped from request input",
            extra={**request_context(state), "stage": PipelineStage.SANITIZE.value},
        )

    def error(
        self,
        record: ErrorRecord,
        context: dict,
        exc: BaseException | None = None,
    ) -> None:
        """Log a classified error with full detail; 5xx include the traceback."""
        extra = {
            **context,
            "error_kind": record.kind.value,
            "status_code": record.status_code,
            "field": record.field,
        }
        message = f"{record.kind.value}: {record.internal_detail or record.message}"
        if record.status_code >= 500:
            self._logger.error(
                message, extra=extra,
                exc_info=(type(exc), exc, exc.__traceback__) if exc else None,
            )
        else:
            self._logger.warning(message, extra=extra)

    def request_completed(
        self, context: dict, status_code: int, duration_ms: float,
    ) -> None:
        self._logger.info(
            f"{context.get('method')} {context.get('path')} {status_code}",
            extra={**context, "status_code": status_code, "duration_ms": round(duration_ms, 2)},
        )
