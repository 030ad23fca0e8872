"""Gatekeeping Dependency — turns a FastAPI request into a gated RequestState.

Invariants:
    - guard(...) is the ONLY way routes receive request data: handlers read the
      validated state, never the raw request body/query/params
    - Rate-limit headers are attached to the response whenever the limiter ran,
      and recorded on request.state so error responses carry them too
    - A failed pipeline run surfaces as RequestRejected carrying its single record
    - Bodies too deep for the JSON parser are rejected as Validation, never Internal

Design Decisions:
    - Dependency factory over middleware: schemas and roles are per-route, and
      FastAPI dependencies are where per-route configuration lives
    - Identity comes from request.state.principal (set by an upstream auth layer)
      or, when trusted, the demo X-User-Id / X-User-Role headers
"""

import json

from fastapi import Request, Response

from medgate.core.domain_types import ErrorKind, Principal, Role, parse_role
from medgate.core.errors import ErrorRecord, RequestRejected
from medgate.core.pipeline import RequestState, RouteGuard
from medgate.core.rate_limit import RateLimitPolicy
from medgate.core.schema import SchemaDescriptor

USER_ID_HEADER = "x-user-id"
USER_ROLE_HEADER = "x-user-role"


def client_key(request: Request) -> str:
    """Rate-limit bucket key for the caller (network address)."""
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def resolve_principal(request: Request) -> Principal | None:
    """Caller identity from the auth collaborator, or demo headers when trusted."""
    principal = getattr(request.state, "principal", None)
    if principal is not None:
        return principal
    settings = request.app.state.settings
    if not settings.trust_identity_headers:
        return None
    user_id = request.headers.get(USER_ID_HEADER)
    if not user_id:
        return None
    return Principal(id=user_id, role=parse_role(request.headers.get(USER_ROLE_HEADER)))


async def read_request_state(request: Request) -> RequestState:
    """Snapshot the raw request into a RequestState."""
    body = None
    raw = await request.body()
    if raw.strip():
        try:
            body = json.loads(raw)
        except RecursionError:
            raise RequestRejected(ErrorRecord.of(
                ErrorKind.VALIDATION, "Payload nested too deeply", field="body",
            )) from None
        except ValueError:
            raise RequestRejected(ErrorRecord.of(
                ErrorKind.VALIDATION, "Malformed JSON body", field="body",
            )) from None

    query: dict = {}
    for key, value in request.query_params.multi_items():
        if key in query:
            existing = query[key]
            query[key] = (existing if isinstance(existing, list) else [existing]) + [value]
        else:
            query[key] = value

    return RequestState(
        method=request.method,
        path=request.url.path,
        client_key=client_key(request),
        body=body,
        query=query,
        params=dict(request.path_params),
        principal=resolve_principal(request),
    )


def guard(
    *,
    body: SchemaDescriptor | None = None,
    query: SchemaDescriptor | None = None,
    params: SchemaDescriptor | None = None,
    roles: frozenset[Role] | set[Role] | None = None,
    authenticated: bool = False,
    rate_limit: RateLimitPolicy | None = None,
    bucket: str = "api",
):
    """Build a FastAPI dependency that gates a route."""
    route_guard = RouteGuard(
        body=body,
        query=query,
        params=params,
        roles=frozenset(roles) if roles is not None else None,
        authenticated=authenticated,
        rate_limit=rate_limit,
        bucket=bucket,
    )

    async def gate(request: Request, response: Response) -> RequestState:
        state = await read_request_state(request)
        result = request.app.state.gatekeeper.run(state, route_guard)
        if result.decision is not None:
            request.state.rate_limit = result.decision
            response.headers.update(result.decision.headers())
        request.state.gated = result.state
        if not result.ok:
            raise RequestRejected(result.error)
        return result.state

    return gate
