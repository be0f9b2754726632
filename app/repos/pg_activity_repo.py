"""PostgreSQL implementation of ActivityRepo."""

from __future__ import annotations

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.tables import ActivityCompletionRow, ActivityRow
from app.models.activity import Activity, ActivityCompletion


class PgActivityRepo:
    """Satisfies the ActivityRepo Protocol.

    Completions cascade with their activity through the foreign key.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, activity_id: UUID) -> Activity | None:
        stmt = select(ActivityRow).where(ActivityRow.id == activity_id)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_activity(row) if row is not None else None

    async def add(self, activity: Activity) -> None:
        self._session.add(
            ActivityRow(
                id=activity.id,
                course_id=activity.course_id,
                title=activity.title,
                type=activity.type,
                description=activity.description,
                start_date=activity.start_date,
                due_date=activity.due_date,
                created_at=activity.created_at,
            )
        )
        await self._session.flush()

    async def delete(self, activity_id: UUID) -> bool:
        result = await self._session.execute(
            delete(ActivityRow).where(ActivityRow.id == activity_id)
        )
        return result.rowcount > 0

    async def list_for_courses(self, course_ids: Iterable[UUID]) -> list[Activity]:
        ids = list(course_ids)
        if not ids:
            return []
        stmt = select(ActivityRow).where(ActivityRow.course_id.in_(ids))
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_activity(r) for r in rows]

    async def add_completion_if_absent(self, completion: ActivityCompletion) -> bool:
        stmt = (
            pg_insert(ActivityCompletionRow)
            .values(
                user_id=completion.user_id,
                activity_id=completion.activity_id,
                completed_at=completion.completed_at,
            )
            .on_conflict_do_nothing(
                index_elements=[
                    ActivityCompletionRow.user_id,
                    ActivityCompletionRow.activity_id,
                ]
            )
        )
        result = await self._session.execute(stmt)
        return result.rowcount == 1

    async def get_completion(
        self, user_id: UUID, activity_id: UUID
    ) -> ActivityCompletion | None:
        stmt = select(ActivityCompletionRow).where(
            ActivityCompletionRow.user_id == user_id,
            ActivityCompletionRow.activity_id == activity_id,
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_completion(row) if row is not None else None

    async def remove_completion(self, user_id: UUID, activity_id: UUID) -> bool:
        stmt = delete(ActivityCompletionRow).where(
            ActivityCompletionRow.user_id == user_id,
            ActivityCompletionRow.activity_id == activity_id,
        )
        result = await self._session.execute(stmt)
        return result.rowcount > 0

    async def list_completions(
        self, user_id: UUID, activity_ids: Iterable[UUID]
    ) -> list[ActivityCompletion]:
        ids = list(activity_ids)
        if not ids:
            return []
        stmt = select(ActivityCompletionRow).where(
            ActivityCompletionRow.user_id == user_id,
            ActivityCompletionRow.activity_id.in_(ids),
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_completion(r) for r in rows]


def _row_to_activity(row: ActivityRow) -> Activity:
    return Activity(
        id=row.id,
        course_id=row.course_id,
        title=row.title,
        type=row.type,
        description=row.description or "",
        start_date=row.start_date,
        due_date=row.due_date,
        created_at=row.created_at,
    )


def _row_to_completion(row: ActivityCompletionRow) -> ActivityCompletion:
    return ActivityCompletion(
        user_id=row.user_id,
        activity_id=row.activity_id,
        completed_at=row.completed_at,
    )
