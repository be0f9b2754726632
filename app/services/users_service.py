from __future__ import annotations

import logging
from uuid import UUID

from app.core import clock
from app.core.errors import Forbidden, NotFound, ValidationError
from app.models.principal import ROLES, Principal
from app.models.user import User
from app.repos.store import Store

logger = logging.getLogger(__name__)


async def sync_current_user(store: Store, principal: Principal) -> User:
    """Mirror the token's identity claims into our User record."""
    email = principal.email.strip().lower()
    if not email:
        logger.warning("Rejected sync without email claim user=%s", principal.user_id)
        raise ValidationError("token carries no email claim")

    user = await store.users.upsert_identity(
        principal.uid, email, principal.name.strip(), principal.role, clock.now()
    )
    logger.info("User synced user=%s email=%s", user.id, user.email)
    return user


async def ensure_user(store: Store, principal: Principal) -> User:
    """Return the mirrored user, creating it from the token on first sight."""
    user = await store.users.get(principal.uid)
    if user is not None:
        return user
    return await store.users.upsert_identity(
        principal.uid,
        principal.email.strip().lower(),
        principal.name.strip(),
        principal.role,
        clock.now(),
    )


async def list_users(store: Store) -> list[User]:
    return await store.users.list_all()


async def set_role(
    store: Store, principal: Principal, user_id: UUID, role: str
) -> User:
    if role not in ROLES:
        raise ValidationError(f"role must be one of {', '.join(ROLES)}")
    if user_id == principal.uid and role != "admin":
        logger.warning("Admin self-demotion blocked user=%s", principal.user_id)
        raise Forbidden("You cannot change your own admin role")

    user = await store.users.set_role(user_id, role)
    if user is None:
        raise NotFound("User not found")
    logger.info(
        "Role set user=%s role=%s by admin=%s", user_id, role, principal.user_id
    )
    return user


async def set_banned(
    store: Store, principal: Principal, user_id: UUID, banned: bool
) -> User:
    if user_id == principal.uid and banned:
        logger.warning("Admin self-ban blocked user=%s", principal.user_id)
        raise Forbidden("You cannot ban yourself")

    user = await store.users.set_banned(user_id, banned)
    if user is None:
        raise NotFound("User not found")
    logger.info(
        "User %s user=%s by admin=%s",
        "banned" if banned else "unbanned",
        user_id,
        principal.user_id,
    )
    return user
