"""PostgreSQL implementation of LiveSessionRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.tables import LiveSessionRow
from app.models.live_session import LiveSession
from app.repos.live_session_repo import _stamp


class PgLiveSessionRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, session_id: UUID) -> LiveSession | None:
        stmt = select(LiveSessionRow).where(LiveSessionRow.id == session_id)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_live_session(row) if row is not None else None

    async def add(self, session: LiveSession) -> None:
        self._session.add(
            LiveSessionRow(
                id=session.id,
                course_id=session.course_id,
                host_user_id=session.host_user_id,
                title=session.title,
                starts_at=session.starts_at,
                status=session.status,
            )
        )
        await self._session.flush()

    async def list_for_course(self, course_id: UUID) -> list[LiveSession]:
        stmt = (
            select(LiveSessionRow)
            .where(LiveSessionRow.course_id == course_id)
            .order_by(LiveSessionRow.starts_at)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_live_session(r) for r in rows]

    async def transition(
        self,
        session_id: UUID,
        *,
        from_status: str,
        to_status: str,
        now: int,
    ) -> LiveSession | None:
        stmt = (
            update(LiveSessionRow)
            .where(
                LiveSessionRow.id == session_id,
                LiveSessionRow.status == from_status,
            )
            .values(status=to_status, **_stamp(to_status, now))
            .returning(LiveSessionRow)
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_live_session(row) if row is not None else None


def _row_to_live_session(row: LiveSessionRow) -> LiveSession:
    return LiveSession(
        id=row.id,
        course_id=row.course_id,
        host_user_id=row.host_user_id,
        title=row.title,
        starts_at=row.starts_at,
        status=row.status,
        started_at=row.started_at,
        ended_at=row.ended_at,
    )
