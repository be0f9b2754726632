from __future__ import annotations

from uuid import uuid4

import pytest

from app.models.principal import Principal
from app.services.capabilities import CAPABILITIES, Denied, Ok, check_capability


def _p(role: str) -> Principal:
    return Principal(user_id=str(uuid4()), role=role)  # type: ignore[arg-type]


@pytest.mark.parametrize(
    "role,capability,allowed",
    [
        ("user", "learn", True),
        ("user", "course:manage", False),
        ("user", "user:manage", False),
        ("mentor", "quiz:manage", True),
        ("mentor", "live:host", True),
        ("mentor", "user:manage", False),
        ("mentor", "enrollment:manage", False),
        ("admin", "user:manage", True),
        ("admin", "enrollment:manage", True),
    ],
)
def test_role_table(role: str, capability: str, allowed: bool) -> None:
    result = check_capability(_p(role), capability)
    assert isinstance(result, Ok) is allowed


def test_ok_carries_the_principal() -> None:
    principal = _p("mentor")
    result = check_capability(principal, "course:manage")
    assert isinstance(result, Ok)
    assert result.principal is principal


def test_denied_names_role_and_capability() -> None:
    result = check_capability(_p("user"), "quiz:manage")
    assert isinstance(result, Denied)
    assert result.reason == "role 'user' lacks capability 'quiz:manage'"


def test_unknown_role_has_no_capabilities() -> None:
    assert isinstance(check_capability(_p("superuser"), "learn"), Denied)


def test_admin_is_a_superset_of_mentor() -> None:
    assert CAPABILITIES["mentor"] < CAPABILITIES["admin"]
