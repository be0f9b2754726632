from __future__ import annotations

from datetime import timedelta
from uuid import uuid4

import jwt
import pytest

from app.services import token_service


def _claims(**overrides) -> dict:
    claims = {"sub": str(uuid4()), "role": "mentor", "email": "m@example.com", "name": "M"}
    claims.update(overrides)
    return claims


def test_round_trip_reads_identity_claims() -> None:
    sub = str(uuid4())
    token = token_service.create_access_token(
        sub=sub, role="admin", email="a@example.com", name="Ada"
    )
    principal = token_service.principal_from_claims(
        token_service.decode_access_token(token)
    )
    assert principal.user_id == sub
    assert principal.role == "admin"
    assert (principal.email, principal.name) == ("a@example.com", "Ada")


@pytest.mark.parametrize("role", [None, "", "superuser", "ADMIN", ["admin"]])
def test_missing_or_unknown_role_falls_back_to_user(role) -> None:
    claims = _claims(role=role)
    assert token_service.principal_from_claims(claims).role == "user"


def test_missing_identity_claims_become_empty_strings() -> None:
    principal = token_service.principal_from_claims({"sub": str(uuid4())})
    assert (principal.role, principal.email, principal.name) == ("user", "", "")


def test_non_uuid_subject_is_rejected() -> None:
    with pytest.raises(jwt.InvalidTokenError, match="UUID"):
        token_service.principal_from_claims(_claims(sub="auth0|12345"))


def test_expired_token_is_rejected() -> None:
    token = token_service.create_access_token(sub=str(uuid4()), ttl=timedelta(seconds=-1))
    with pytest.raises(jwt.ExpiredSignatureError):
        token_service.decode_access_token(token)


def test_token_signed_with_another_key_is_rejected() -> None:
    from cryptography.hazmat.primitives.asymmetric import ec

    foreign = jwt.encode(
        {"sub": str(uuid4()), "exp": 9_999_999_999, "iat": 0},
        ec.generate_private_key(ec.SECP256R1()),
        algorithm="ES256",
    )
    with pytest.raises(jwt.InvalidTokenError):
        token_service.decode_access_token(foreign)
