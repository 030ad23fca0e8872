"""Role Gate — pure role checks against an allowed set.

Invariants:
    - All functions are PURE: no IO, no side effects
    - Return an ErrorRecord on violation, None on success
    - Only principal.role is inspected; nothing else about the request matters here

Design Decisions:
    - Return records (not exceptions): the pipeline composes stages by early return
    - Role assignment rules live here too — they are role checks, not persistence rules
"""

from collections.abc import Iterable

from medgate.core.domain_types import ErrorKind, Principal, Role
from medgate.core.errors import ErrorRecord


def authorize(principal: Principal, allowed: Iterable[Role]) -> ErrorRecord | None:
    """Fail with Authorization when the role is absent or not allowed."""
    allowed = frozenset(allowed)
    if principal.role is None or principal.role not in allowed:
        required = ", ".join(sorted(role.value for role in allowed))
        return ErrorRecord.of(
            ErrorKind.AUTHORIZATION,
            f"Access denied. Required roles: {required}",
        )
    return None


def check_role_assignment(
    actor: Principal, target_current: Role | None, requested: Role,
) -> ErrorRecord | None:
    """Only super-admin may modify a super-admin or grant super-admin."""
    if actor.role is Role.SUPER_ADMIN:
        return None
    if target_current is Role.SUPER_ADMIN:
        return ErrorRecord.of(
            ErrorKind.AUTHORIZATION, "Only super-admin can modify super-admin roles",
        )
    if requested is Role.SUPER_ADMIN:
        return ErrorRecord.of(
            ErrorKind.AUTHORIZATION, "Only super-admin can assign super-admin role",
        )
    return None
