from __future__ import annotations

from dataclasses import replace
from typing import Protocol
from uuid import UUID

from app.models.user import User


class UserRepo(Protocol):
    async def get(self, user_id: UUID) -> User | None: ...
    async def list_all(self) -> list[User]: ...
    async def upsert_identity(
        self, user_id: UUID, email: str, name: str, role: str = "user", now: int = 0
    ) -> User: ...
    async def set_role(self, user_id: UUID, role: str) -> User | None: ...
    async def set_banned(self, user_id: UUID, banned: bool) -> User | None: ...
    async def set_payment_customer(self, user_id: UUID, customer_id: str) -> None: ...


class InMemoryUserRepo:
    def __init__(self) -> None:
        self._by_id: dict[UUID, User] = {}

    async def get(self, user_id: UUID) -> User | None:
        return self._by_id.get(user_id)

    async def list_all(self) -> list[User]:
        return sorted(self._by_id.values(), key=lambda u: u.email)

    async def upsert_identity(
        self, user_id: UUID, email: str, name: str, role: str = "user", now: int = 0
    ) -> User:
        existing = self._by_id.get(user_id)
        if existing is None:
            user = User(
                id=user_id,
                email=email,
                name=name,
                role=role,  # type: ignore[arg-type]
                created_at=now,
            )
        else:
            # role / banned are owned here, only identity fields are refreshed
            user = replace(existing, email=email, name=name)
        self._by_id[user_id] = user
        return user

    async def set_role(self, user_id: UUID, role: str) -> User | None:
        return self._update(user_id, role=role)

    async def set_banned(self, user_id: UUID, banned: bool) -> User | None:
        return self._update(user_id, banned=banned)

    async def set_payment_customer(self, user_id: UUID, customer_id: str) -> None:
        self._update(user_id, payment_customer_id=customer_id)

    def _update(self, user_id: UUID, **changes) -> User | None:
        u = self._by_id.get(user_id)
        if u is None:
            return None
        updated = replace(u, **changes)
        self._by_id[user_id] = updated
        return updated
