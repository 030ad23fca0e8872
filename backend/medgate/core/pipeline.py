"""Pipeline Stages — request state and the pure stages that transform it.

Invariants:
    - Every stage takes a RequestState and returns a NEW RequestState or an ErrorRecord
    - Stages never raise for bad input and never mutate the state they receive
    - validate_state replaces each declared surface with its coerced value
    - authorize_state requires a principal whenever the guard names roles or authenticated=True

Design Decisions:
    - RequestState frozen + dataclasses.replace: each stage's output is a distinct value,
      so a later stage can never observe a half-updated request
    - Issues from body, query and params are collected into ONE record per validation pass
    - Rate limiting is not here: it touches shared state and lives in the service layer
"""

from dataclasses import dataclass, field, replace

from medgate.core.domain_types import (
    ErrorKind,
    InputSurface,
    Principal,
    Role,
    StructuredMapping,
    StructuredValue,
)
from medgate.core.enforce_role import authorize
from medgate.core.errors import ErrorRecord, FieldIssue
from medgate.core.rate_limit import RateLimitDecision, RateLimitPolicy
from medgate.core.sanitize import DEFAULT_MAX_DEPTH, sanitize
from medgate.core.schema import SchemaDescriptor, validate, validation_record


@dataclass(frozen=True)
class RequestState:
    """Everything the pipeline knows about one inbound request."""
    method: str
    path: str
    client_key: str
    body: StructuredValue = None
    query: StructuredMapping = field(default_factory=dict)
    params: StructuredMapping = field(default_factory=dict)
    principal: Principal | None = None

    def surface(self, which: InputSurface) -> StructuredValue:
        return getattr(self, which.value)


@dataclass(frozen=True)
class RouteGuard:
    """Per-route gate configuration. Owned by the route definition."""
    body: SchemaDescriptor | None = None
    query: SchemaDescriptor | None = None
    params: SchemaDescriptor | None = None
    roles: frozenset[Role] | None = None
    authenticated: bool = False
    rate_limit: RateLimitPolicy | None = None
    bucket: str = "api"

    def schemas(self) -> list[tuple[InputSurface, SchemaDescriptor]]:
        declared = (
            (InputSurface.BODY, self.body),
            (InputSurface.QUERY, self.query),
            (InputSurface.PARAMS, self.params),
        )
        return [(surface, schema) for surface, schema in declared if schema is not None]

    @property
    def requires_identity(self) -> bool:
        return self.authenticated or self.roles is not None


@dataclass(frozen=True)
class PipelineResult:
    """Final state of a gated request: validated state, or the one error record."""
    state: RequestState
    error: ErrorRecord | None = None
    decision: RateLimitDecision | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


# ─── Stages ──────────────────────────────────────────────────────

def sanitize_state(state: RequestState, max_depth: int = DEFAULT_MAX_DEPTH) -> RequestState:
    """Sanitize body, query and params. Total."""
    return replace(
        state,
        body=sanitize(state.body, max_depth),
        query=sanitize(state.query, max_depth),
        params=sanitize(state.params, max_depth),
    )


def validate_state(state: RequestState, guard: RouteGuard) -> RequestState | ErrorRecord:
    """Validate every declared surface; one record collects all issues."""
    issues: list[FieldIssue] = []
    validated: dict[str, StructuredValue] = {}
    for surface, schema in guard.schemas():
        raw = state.surface(surface)
        if raw is None and surface is InputSurface.BODY:
            raw = {}
        outcome = validate(raw, schema, surface)
        if outcome.ok:
            validated[surface.value] = outcome.value
        else:
            issues.extend(outcome.issues)
    if issues:
        return validation_record(tuple(issues))
    return replace(state, **validated)


def authorize_state(state: RequestState, guard: RouteGuard) -> RequestState | ErrorRecord:
    """Require identity where the guard asks for it, then check roles."""
    if not guard.requires_identity:
        return state
    if state.principal is None:
        return ErrorRecord.of(ErrorKind.AUTHENTICATION, "Authentication required")
    if guard.roles is not None:
        error = authorize(state.principal, guard.roles)
        if error is not None:
            return error
    return state
