"""Live class sessions.

Only the local status is tracked here; the conferencing room itself lives
with the video provider.  ``end_session`` is safe to call repeatedly: a
session that is already ended or cancelled is returned unchanged.
"""

from __future__ import annotations

import logging
from uuid import UUID

from app.core import clock
from app.core.errors import Forbidden, InvalidState, NotFound, ValidationError
from app.models.live_session import LiveSession
from app.models.principal import Principal
from app.repos.store import Store
from app.services import course_service, users_service

logger = logging.getLogger(__name__)


async def create_session(
    store: Store,
    principal: Principal,
    *,
    course_id: UUID,
    title: str,
    starts_at: int,
) -> LiveSession:
    if not title.strip():
        raise ValidationError("title must be non-empty")
    course = await course_service.resolve_course(store, course_id)
    await users_service.ensure_user(store, principal)

    session = LiveSession.new(
        course_id=course.id,
        host_user_id=principal.uid,
        title=title.strip(),
        starts_at=starts_at,
    )
    await store.live_sessions.add(session)
    logger.info(
        "Live session %s scheduled by host=%s",
        session.id,
        principal.user_id,
        extra={"course_id": str(course.id)},
    )
    return session


async def list_course_sessions(store: Store, course_id: UUID) -> list[LiveSession]:
    course = await course_service.resolve_course(store, course_id)
    return await store.live_sessions.list_for_course(course.id)


async def _get_hosted(
    store: Store, principal: Principal, session_id: UUID
) -> LiveSession:
    session = await store.live_sessions.get(session_id)
    if session is None:
        raise NotFound("Live session not found")
    if session.host_user_id != principal.uid and not principal.is_admin():
        logger.warning(
            "Access denied: user=%s is not host of live session %s",
            principal.user_id,
            session_id,
        )
        raise Forbidden("Only the host can manage this session")
    return session


async def start_session(
    store: Store, principal: Principal, session_id: UUID
) -> LiveSession:
    session = await _get_hosted(store, principal, session_id)
    if session.status == "live":
        return session

    started = await store.live_sessions.transition(
        session_id, from_status="scheduled", to_status="live", now=clock.now()
    )
    if started is None:
        raise InvalidState(f"Cannot start a session that is {session.status}")
    logger.info("Live session %s started by user=%s", session_id, principal.user_id)
    return started


async def end_session(
    store: Store, principal: Principal, session_id: UUID
) -> LiveSession:
    session = await _get_hosted(store, principal, session_id)
    if session.is_closed:
        return session

    for from_status in ("live", "scheduled"):
        ended = await store.live_sessions.transition(
            session_id, from_status=from_status, to_status="ended", now=clock.now()
        )
        if ended is not None:
            logger.info(
                "Live session %s ended by user=%s", session_id, principal.user_id
            )
            return ended

    # closed concurrently
    current = await store.live_sessions.get(session_id)
    if current is None:
        raise NotFound("Live session not found")
    return current
