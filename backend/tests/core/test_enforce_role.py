"""Role Gate — tests for pure role checks.

Tests cover:
    - authorize allows members of the allowed set, rejects others and absent roles
    - check_role_assignment protects super-admin
"""

from medgate.core.domain_types import ADMIN_ROLES, ErrorKind, Principal, Role
from medgate.core.enforce_role import authorize, check_role_assignment


# ─── authorize ───────────────────────────────────────────────────

def test_nurse_denied_admin_route():
    error = authorize(Principal("u1", Role.NURSE), {Role.ADMIN, Role.SUPER_ADMIN})
    assert error is not None
    assert error.kind is ErrorKind.AUTHORIZATION
    assert error.status_code == 403
    assert error.message == "Access denied. Required roles: admin, super-admin"


def test_admin_allowed_admin_route():
    assert authorize(Principal("u2", Role.ADMIN), {Role.ADMIN, Role.SUPER_ADMIN}) is None


def test_absent_role_denied():
    error = authorize(Principal("u3", None), ADMIN_ROLES)
    assert error is not None
    assert error.kind is ErrorKind.AUTHORIZATION


def test_empty_allowed_set_denies_everyone():
    assert authorize(Principal("u4", Role.SUPER_ADMIN), set()) is not None


# ─── check_role_assignment ───────────────────────────────────────

def test_admin_cannot_grant_super_admin():
    error = check_role_assignment(Principal("a", Role.ADMIN), Role.NURSE, Role.SUPER_ADMIN)
    assert error.message == "Only super-admin can assign super-admin role"


def test_admin_cannot_modify_super_admin():
    error = check_role_assignment(Principal("a", Role.ADMIN), Role.SUPER_ADMIN, Role.DOCTOR)
    assert error.message == "Only super-admin can modify super-admin roles"


def test_admin_can_reassign_regular_roles():
    assert check_role_assignment(Principal("a", Role.ADMIN), Role.NURSE, Role.DOCTOR) is None


def test_super_admin_can_do_anything():
    actor = Principal("s", Role.SUPER_ADMIN)
    assert check_role_assignment(actor, Role.SUPER_ADMIN, Role.PATIENT) is None
    assert check_role_assignment(actor, Role.NURSE, Role.SUPER_ADMIN) is None
