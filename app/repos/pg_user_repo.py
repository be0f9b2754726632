"""PostgreSQL implementation of UserRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.tables import UserRow
from app.models.user import User


class PgUserRepo:
    """Satisfies the UserRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, user_id: UUID) -> User | None:
        stmt = select(UserRow).where(UserRow.id == user_id)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_user(row)

    async def list_all(self) -> list[User]:
        stmt = select(UserRow).order_by(UserRow.email)
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_user(r) for r in rows]

    async def upsert_identity(
        self, user_id: UUID, email: str, name: str, role: str = "user", now: int = 0
    ) -> User:
        # role only seeds a new row; an existing row keeps its admin-set role
        stmt = (
            pg_insert(UserRow)
            .values(
                id=user_id,
                email=email,
                name=name,
                role=role,
                banned=False,
                created_at=now,
            )
            .on_conflict_do_update(
                index_elements=[UserRow.id],
                set_={"email": email, "name": name},
            )
            .returning(UserRow)
        )
        row = (await self._session.execute(stmt)).scalar_one()
        return _row_to_user(row)

    async def set_role(self, user_id: UUID, role: str) -> User | None:
        return await self._update(user_id, role=role)

    async def set_banned(self, user_id: UUID, banned: bool) -> User | None:
        return await self._update(user_id, banned=banned)

    async def set_payment_customer(self, user_id: UUID, customer_id: str) -> None:
        await self._update(user_id, payment_customer_id=customer_id)

    async def _update(self, user_id: UUID, **values) -> User | None:
        stmt = (
            update(UserRow)
            .where(UserRow.id == user_id)
            .values(**values)
            .returning(UserRow)
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_user(row)


def _row_to_user(row: UserRow) -> User:
    return User(
        id=row.id,
        email=row.email,
        name=row.name or "",
        role=row.role,  # type: ignore[arg-type]
        banned=row.banned,
        payment_customer_id=row.payment_customer_id,
        created_at=row.created_at,
    )
