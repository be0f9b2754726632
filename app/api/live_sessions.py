from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from app.api.dependencies import CurrentUser, StoreDep, require_capability
from app.models.live_session import LiveSession
from app.models.principal import Principal
from app.services import live_session_service

router = APIRouter(tags=["live-sessions"])

Host = Annotated[Principal, Depends(require_capability("live:host"))]


class LiveSessionIn(BaseModel):
    course_id: UUID
    title: str
    starts_at: int


class LiveSessionOut(BaseModel):
    id: UUID
    course_id: UUID
    host_user_id: UUID
    title: str
    starts_at: int
    status: str
    started_at: int | None
    ended_at: int | None


def session_out(s: LiveSession) -> LiveSessionOut:
    return LiveSessionOut(
        id=s.id,
        course_id=s.course_id,
        host_user_id=s.host_user_id,
        title=s.title,
        starts_at=s.starts_at,
        status=s.status,
        started_at=s.started_at,
        ended_at=s.ended_at,
    )


@router.post(
    "/v1/live-sessions",
    response_model=LiveSessionOut,
    status_code=status.HTTP_201_CREATED,
)
async def create_session(
    body: LiveSessionIn,
    principal: Host,
    store: StoreDep,
) -> LiveSessionOut:
    session = await live_session_service.create_session(
        store,
        principal,
        course_id=body.course_id,
        title=body.title,
        starts_at=body.starts_at,
    )
    return session_out(session)


@router.get(
    "/v1/courses/{course_id}/live-sessions", response_model=list[LiveSessionOut]
)
async def list_sessions(
    course_id: UUID,
    _principal: CurrentUser,
    store: StoreDep,
) -> list[LiveSessionOut]:
    return [
        session_out(s)
        for s in await live_session_service.list_course_sessions(store, course_id)
    ]


@router.post("/v1/live-sessions/{session_id}/start", response_model=LiveSessionOut)
async def start_session(
    session_id: UUID,
    principal: Host,
    store: StoreDep,
) -> LiveSessionOut:
    return session_out(
        await live_session_service.start_session(store, principal, session_id)
    )


@router.post("/v1/live-sessions/{session_id}/end", response_model=LiveSessionOut)
async def end_session(
    session_id: UUID,
    principal: Host,
    store: StoreDep,
) -> LiveSessionOut:
    return session_out(
        await live_session_service.end_session(store, principal, session_id)
    )
