"""Domain Types — verifies closed vocabularies and identity parsing.

Tests:
    - Role has exactly the ten known members and compares equal to its wire value
    - ErrorKind maps onto the expected default status codes
    - parse_role never lets an unknown string through
"""

import pytest

from medgate.core.domain_types import (
    ADMIN_ROLES,
    DEFAULT_STATUS,
    ErrorKind,
    PipelineStage,
    Principal,
    Role,
    parse_role,
)


def test_role_has_ten_members():
    assert len(Role) == 10
    assert {role.value for role in Role} == {
        "patient", "doctor", "nurse", "front-desk", "admin",
        "super-admin", "insurance", "pharmacy", "department-head", "ssd",
    }


def test_role_compares_equal_to_wire_value():
    assert Role.SUPER_ADMIN == "super-admin"


def test_admin_roles():
    assert ADMIN_ROLES == {Role.ADMIN, Role.SUPER_ADMIN}


def test_every_error_kind_has_default_status():
    assert set(DEFAULT_STATUS) == set(ErrorKind)
    assert [DEFAULT_STATUS[kind] for kind in ErrorKind] == [400, 401, 403, 404, 409, 429, 500]


def test_pipeline_stage_order():
    assert [stage.value for stage in PipelineStage] == [
        "sanitize", "validate", "rate_limit", "authorize",
    ]


@pytest.mark.parametrize("raw, expected", [
    ("admin", Role.ADMIN),
    (" Nurse ", Role.NURSE),
    ("front-desk", Role.FRONT_DESK),
    ("wizard", None),
    ("", None),
    (None, None),
])
def test_parse_role(raw, expected):
    assert parse_role(raw) is expected


def test_principal_is_frozen():
    principal = Principal("u1", Role.DOCTOR)
    with pytest.raises(AttributeError):
        principal.role = Role.ADMIN
