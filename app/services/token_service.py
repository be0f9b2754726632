"""Bearer token verification (ES256).

Tokens are issued by the external auth provider; this service only
verifies them.  With AUTH_JWT_PUBLIC_KEY set (PEM) that key is the only
one accepted.  Without it an ephemeral key pair is generated on import so
dev and test can mint their own tokens through ``create_access_token``.

Claims we read:
  sub    provider user id (UUID string), required
  role   the single canonical role claim: user | mentor | admin
  email, name   identity fields mirrored into our User record
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta

import jwt
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.serialization import load_pem_public_key

from app.core.config import SETTINGS
from app.models.principal import ROLES, Principal

ALGORITHM = "ES256"
ACCESS_TOKEN_TTL_MIN = 15

if SETTINGS.auth_jwt_public_key:
    _private_key = None
    _public_key = load_pem_public_key(SETTINGS.auth_jwt_public_key.encode())
else:
    _private_key = ec.generate_private_key(ec.SECP256R1())
    _public_key = _private_key.public_key()


def create_access_token(
    *,
    sub: str,
    role: str = "user",
    email: str = "",
    name: str = "",
    ttl: timedelta = timedelta(minutes=ACCESS_TOKEN_TTL_MIN),
) -> str:
    """Sign a token with the ephemeral dev key (dev/test only)."""
    if _private_key is None:
        raise RuntimeError("token minting is disabled when AUTH_JWT_PUBLIC_KEY is set")
    now = datetime.now(UTC)
    payload = {
        "sub": sub,
        "iss": SETTINGS.auth_issuer,
        "aud": SETTINGS.auth_audience,
        "exp": now + ttl,
        "iat": now,
        "jti": str(uuid.uuid4()),
        "role": role,
        "email": email,
        "name": name,
    }
    return jwt.encode(payload, _private_key, algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict:
    """Verify signature, exp, iss and aud; return the claims.

    Raises jwt.ExpiredSignatureError / jwt.InvalidTokenError on failure.
    """
    return jwt.decode(
        token,
        _public_key,
        algorithms=[ALGORITHM],
        issuer=SETTINGS.auth_issuer,
        audience=SETTINGS.auth_audience,
        options={"require": ["sub", "exp", "iat"]},
    )


def principal_from_claims(claims: dict) -> Principal:
    """Build the request Principal.

    Raises jwt.InvalidTokenError when ``sub`` is not a UUID, since every
    row we own is keyed by it.
    """
    sub = str(claims["sub"])
    try:
        uuid.UUID(sub)
    except ValueError:
        raise jwt.InvalidTokenError("sub is not a UUID") from None

    role = claims.get("role")
    return Principal(
        user_id=sub,
        role=role if role in ROLES else "user",
        email=str(claims.get("email") or ""),
        name=str(claims.get("name") or ""),
    )
