from __future__ import annotations

from dataclasses import replace
from typing import Protocol
from uuid import UUID

from app.models.live_session import LiveSession


class LiveSessionRepo(Protocol):
    async def get(self, session_id: UUID) -> LiveSession | None: ...
    async def add(self, session: LiveSession) -> None: ...
    async def list_for_course(self, course_id: UUID) -> list[LiveSession]: ...
    async def transition(
        self,
        session_id: UUID,
        *,
        from_status: str,
        to_status: str,
        now: int,
    ) -> LiveSession | None: ...


class InMemoryLiveSessionRepo:
    def __init__(self) -> None:
        self._by_id: dict[UUID, LiveSession] = {}

    async def get(self, session_id: UUID) -> LiveSession | None:
        return self._by_id.get(session_id)

    async def add(self, session: LiveSession) -> None:
        self._by_id[session.id] = session

    async def list_for_course(self, course_id: UUID) -> list[LiveSession]:
        return sorted(
            (s for s in self._by_id.values() if s.course_id == course_id),
            key=lambda s: s.starts_at,
        )

    async def transition(
        self,
        session_id: UUID,
        *,
        from_status: str,
        to_status: str,
        now: int,
    ) -> LiveSession | None:
        s = self._by_id.get(session_id)
        if s is None or s.status != from_status:
            return None
        updated = replace(s, status=to_status, **_stamp(to_status, now))
        self._by_id[session_id] = updated
        return updated


def _stamp(to_status: str, now: int) -> dict[str, int]:
    if to_status == "live":
        return {"started_at": now}
    if to_status == "ended":
        return {"ended_at": now}
    return {}
