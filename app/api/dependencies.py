from __future__ import annotations

import logging
from dataclasses import replace
from typing import Annotated

import jwt
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.core.errors import Forbidden, Unauthorized
from app.core.logging import user_id_var
from app.models.principal import ROLES, Principal
from app.repos.store import Store, get_store
from app.services import token_service
from app.services.capabilities import Denied, check_capability

logger = logging.getLogger(__name__)

# auto_error=False so a missing header goes through our 401 body, not FastAPI's
bearer_scheme = HTTPBearer(auto_error=False)

StoreDep = Annotated[Store, Depends(get_store)]


async def require_user(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
    store: StoreDep,
) -> Principal:
    """Verify the bearer token and return the caller as a Principal.

    The role comes from the token's ``role`` claim until the user has a
    mirrored record; after that the record's role (which admins change
    here) is authoritative.  Banned users are refused on every route.
    """
    if credentials is None:
        raise Unauthorized()

    try:
        claims = token_service.decode_access_token(credentials.credentials)
        principal = token_service.principal_from_claims(claims)
    except jwt.ExpiredSignatureError:
        logger.warning("Expired token rejected")
        raise Unauthorized("Token expired") from None
    except jwt.InvalidTokenError as e:
        logger.warning("Invalid token rejected: %s", e)
        raise Unauthorized("Invalid token") from None

    user_id_var.set(principal.user_id)
    request.state.user_id = principal.user_id

    user = await store.users.get(principal.uid)
    if user is not None:
        if user.banned:
            logger.warning("Banned user rejected user=%s", principal.user_id)
            raise Forbidden("Your account has been suspended")
        if user.role in ROLES and user.role != principal.role:
            principal = replace(principal, role=user.role)

    logger.debug(
        "Token validated for user=%s role=%s", principal.user_id, principal.role
    )
    return principal


CurrentUser = Annotated[Principal, Depends(require_user)]


def require_capability(capability: str):
    """Dependency factory: demand a capability from the role table.

    Usage: Depends(require_capability("quiz:manage"))
    """

    async def _guard(principal: CurrentUser) -> Principal:
        result = check_capability(principal, capability)
        if isinstance(result, Denied):
            logger.warning(
                "Access denied: user=%s %s", principal.user_id, result.reason
            )
            raise Forbidden()
        return result.principal

    return _guard
