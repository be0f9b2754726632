"""PostgreSQL implementation of ProgressRepo."""

from __future__ import annotations

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.tables import LessonProgressRow
from app.models.progress import LessonProgress


class PgProgressRepo:
    """Satisfies the ProgressRepo Protocol; (user_id, lesson_id) is the key."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def upsert(self, record: LessonProgress) -> LessonProgress:
        stmt = upsert_statement(record)
        await self._session.execute(stmt)
        return record

    async def list_for_lessons(
        self, user_id: UUID, lesson_ids: Iterable[UUID]
    ) -> list[LessonProgress]:
        ids = list(lesson_ids)
        if not ids:
            return []
        stmt = select(LessonProgressRow).where(
            LessonProgressRow.user_id == user_id,
            LessonProgressRow.lesson_id.in_(ids),
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [
            LessonProgress(
                user_id=r.user_id,
                lesson_id=r.lesson_id,
                completed=r.completed,
                updated_at=r.updated_at,
            )
            for r in rows
        ]

    async def delete_for_lessons(
        self, user_id: UUID, lesson_ids: Iterable[UUID]
    ) -> int:
        ids = list(lesson_ids)
        if not ids:
            return 0
        stmt = delete(LessonProgressRow).where(
            LessonProgressRow.user_id == user_id,
            LessonProgressRow.lesson_id.in_(ids),
        )
        result = await self._session.execute(stmt)
        return result.rowcount


def upsert_statement(record: LessonProgress):
    """INSERT ... ON CONFLICT (user_id, lesson_id) DO UPDATE."""
    return (
        pg_insert(LessonProgressRow)
        .values(
            user_id=record.user_id,
            lesson_id=record.lesson_id,
            completed=record.completed,
            updated_at=record.updated_at,
        )
        .on_conflict_do_update(
            index_elements=[LessonProgressRow.user_id, LessonProgressRow.lesson_id],
            set_={"completed": record.completed, "updated_at": record.updated_at},
        )
    )
