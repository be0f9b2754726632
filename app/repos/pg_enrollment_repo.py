"""PostgreSQL implementation of EnrollmentRepo."""

from __future__ import annotations

from collections.abc import Iterable

from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.tables import EnrollmentRow
from app.models.enrollment import ACTIVE, CANCELLED, PENDING, Enrollment


class PgEnrollmentRepo:
    """Satisfies the EnrollmentRepo Protocol.

    The (user_id, course_id) unique constraint is the arbiter for every
    insert; status moves are UPDATE ... WHERE status = <expected>.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, user_id: UUID, course_id: UUID) -> Enrollment | None:
        stmt = select(EnrollmentRow).where(
            EnrollmentRow.user_id == user_id,
            EnrollmentRow.course_id == course_id,
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_enrollment(row) if row is not None else None

    async def get_by_id(self, enrollment_id: UUID) -> Enrollment | None:
        stmt = select(EnrollmentRow).where(EnrollmentRow.id == enrollment_id)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_enrollment(row) if row is not None else None

    async def upsert_pending(self, enrollment: Enrollment) -> Enrollment:
        stmt = (
            pg_insert(EnrollmentRow)
            .values(**_values(enrollment))
            .on_conflict_do_update(
                index_elements=[EnrollmentRow.user_id, EnrollmentRow.course_id],
                set_={
                    "status": PENDING,
                    "amount": enrollment.amount,
                    "payment_reference": None,
                    "updated_at": enrollment.updated_at,
                },
                where=EnrollmentRow.status != ACTIVE,
            )
            .returning(EnrollmentRow)
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is not None:
            return _row_to_enrollment(row)
        # conflict with an active row: the WHERE suppressed the update
        existing = await self.get(enrollment.user_id, enrollment.course_id)
        if existing is None:
            raise KeyError("enrollment not found")
        return existing

    async def insert_if_absent(self, enrollment: Enrollment) -> bool:
        stmt = (
            pg_insert(EnrollmentRow)
            .values(**_values(enrollment))
            .on_conflict_do_nothing(
                index_elements=[EnrollmentRow.user_id, EnrollmentRow.course_id]
            )
        )
        result = await self._session.execute(stmt)
        return result.rowcount == 1

    async def activate(
        self,
        user_id: UUID,
        course_id: UUID,
        *,
        amount: int,
        payment_reference: str | None,
        now: int,
    ) -> Enrollment | None:
        stmt = (
            update(EnrollmentRow)
            .where(
                EnrollmentRow.user_id == user_id,
                EnrollmentRow.course_id == course_id,
                EnrollmentRow.status == PENDING,
            )
            .values(
                status=ACTIVE,
                amount=amount,
                payment_reference=payment_reference,
                updated_at=now,
            )
            .returning(EnrollmentRow)
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_enrollment(row) if row is not None else None

    async def delete_pending(self, user_id: UUID, course_id: UUID) -> bool:
        stmt = delete(EnrollmentRow).where(
            EnrollmentRow.user_id == user_id,
            EnrollmentRow.course_id == course_id,
            EnrollmentRow.status == PENDING,
        )
        result = await self._session.execute(stmt)
        return result.rowcount > 0

    async def cancel(self, enrollment_id: UUID, now: int) -> Enrollment | None:
        stmt = (
            update(EnrollmentRow)
            .where(EnrollmentRow.id == enrollment_id)
            .values(status=CANCELLED, updated_at=now)
            .returning(EnrollmentRow)
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_enrollment(row) if row is not None else None

    async def list_active_for_user(self, user_id: UUID) -> list[Enrollment]:
        stmt = (
            select(EnrollmentRow)
            .where(EnrollmentRow.user_id == user_id, EnrollmentRow.status == ACTIVE)
            .order_by(EnrollmentRow.created_at.desc())
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_enrollment(r) for r in rows]

    async def list_active_for_courses(
        self, course_ids: Iterable[UUID]
    ) -> list[Enrollment]:
        ids = list(course_ids)
        if not ids:
            return []
        stmt = (
            select(EnrollmentRow)
            .where(EnrollmentRow.course_id.in_(ids), EnrollmentRow.status == ACTIVE)
            .order_by(EnrollmentRow.created_at.desc())
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_enrollment(r) for r in rows]

    async def list_all(self) -> list[Enrollment]:
        stmt = select(EnrollmentRow).order_by(EnrollmentRow.created_at)
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_enrollment(r) for r in rows]

    async def count_by_status(self) -> dict[str, int]:
        stmt = select(EnrollmentRow.status, func.count()).group_by(
            EnrollmentRow.status
        )
        return {status: count for status, count in await self._session.execute(stmt)}


def _values(e: Enrollment) -> dict:
    return {
        "id": e.id,
        "user_id": e.user_id,
        "course_id": e.course_id,
        "status": e.status,
        "amount": e.amount,
        "payment_reference": e.payment_reference,
        "created_at": e.created_at,
        "updated_at": e.updated_at,
    }


def _row_to_enrollment(row: EnrollmentRow) -> Enrollment:
    return Enrollment(
        id=row.id,
        user_id=row.user_id,
        course_id=row.course_id,
        status=row.status,
        amount=row.amount,
        payment_reference=row.payment_reference,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
