"""User Routes — signup and admin user management, all behind guard().

Invariants:
    - Handlers read gated.body / gated.query / gated.params (validated), never raw input
    - Admin routes require ADMIN_ROLES; super-admin rules enforced by check_role_assignment
    - Signup cannot self-assign an admin role

Design Decisions:
    - Thin routes: validation, limits and roles are declared in the guard, storage in
      UserDirectory; the handler only sequences calls
"""

import logging

from fastapi import APIRouter, Depends, Request, status
from pydantic import Field

from medgate.api.gatekeeping import guard
from medgate.core.domain_types import ADMIN_ROLES, ErrorKind, Role
from medgate.core.enforce_role import check_role_assignment
from medgate.core.errors import ErrorRecord, RequestRejected
from medgate.core.pipeline import RequestState
from medgate.core.schema import (
    ClosedSchema,
    DepartmentCode,
    Email,
    IdParams,
    PaginationQuery,
    PhoneNumber,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1", tags=["users"])


class SignupBody(ClosedSchema):
    email: Email
    role: Role = Role.PATIENT
    first_name: str | None = Field(None, max_length=100)
    last_name: str | None = Field(None, max_length=100)
    phone: PhoneNumber | None = None


class RoleUpdateBody(ClosedSchema):
    role: Role
    department: DepartmentCode | None = None


class UserListQuery(PaginationQuery):
    role: Role | None = None


@router.post("/auth/signup", status_code=status.HTTP_201_CREATED)
async def signup(
    request: Request,
    gated: RequestState = Depends(guard(body=SignupBody, bucket="auth")),
):
    """Create an account with a non-administrative role."""
    role = Role(gated.body["role"])
    if role in ADMIN_ROLES:
        raise RequestRejected(ErrorRecord.of(
            ErrorKind.AUTHORIZATION, "Administrative roles cannot be self-assigned",
        ))
    user = request.app.state.users.create(
        email=gated.body["email"],
        role=role,
        first_name=gated.body.get("first_name"),
        last_name=gated.body.get("last_name"),
    )
    logger.info(f"User {user.id} signed up as {role.value}")
    return {"user": user.to_dict()}


@router.get("/admin/users")
async def list_users(
    request: Request,
    gated: RequestState = Depends(guard(query=UserListQuery, roles=ADMIN_ROLES)),
):
    """List users with pagination, search and role filter."""
    q = gated.query
    users, total = request.app.state.users.search(
        search=q.get("search"),
        role=Role(q["role"]) if q.get("role") else None,
        page=q["page"],
        limit=q["limit"],
        descending=q["sort_order"] == "desc",
    )
    return {
        "users": [u.to_dict() for u in users],
        "total": total,
        "page": q["page"],
        "limit": q["limit"],
    }


@router.get("/admin/users/{id}")
async def get_user(
    request: Request,
    gated: RequestState = Depends(guard(params=IdParams, roles=ADMIN_ROLES)),
):
    user = request.app.state.users.get(gated.params["id"])
    return {"user": user.to_dict()}


@router.put("/admin/users/{id}/role")
async def update_user_role(
    request: Request,
    gated: RequestState = Depends(
        guard(params=IdParams, body=RoleUpdateBody, roles=ADMIN_ROLES),
    ),
):
    """Change a user's role. Only super-admin may touch super-admin."""
    users = request.app.state.users
    target = users.get(gated.params["id"])
    requested = Role(gated.body["role"])

    error = check_role_assignment(gated.principal, target.role, requested)
    if error is not None:
        raise RequestRejected(error)

    updated = users.update_role(target.id, requested, gated.body.get("department"))
    logger.info(
        f"Role of user {target.id} changed {target.role.value} -> {requested.value}",
        extra={"principal_id": gated.principal.id},
    )
    return {"user": updated.to_dict(), "previous_role": target.role.value}
