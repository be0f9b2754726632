from __future__ import annotations

from collections import Counter
from collections.abc import Iterable
from dataclasses import replace
from typing import Protocol
from uuid import UUID

from app.models.enrollment import ACTIVE, CANCELLED, PENDING, Enrollment


class EnrollmentRepo(Protocol):
    """One row per (user, course).

    Every status change is a conditional write on the current status so two
    concurrent verifications cannot both activate.
    """

    async def get(self, user_id: UUID, course_id: UUID) -> Enrollment | None: ...
    async def get_by_id(self, enrollment_id: UUID) -> Enrollment | None: ...
    async def upsert_pending(self, enrollment: Enrollment) -> Enrollment: ...
    async def insert_if_absent(self, enrollment: Enrollment) -> bool: ...
    async def activate(
        self,
        user_id: UUID,
        course_id: UUID,
        *,
        amount: int,
        payment_reference: str | None,
        now: int,
    ) -> Enrollment | None: ...
    async def delete_pending(self, user_id: UUID, course_id: UUID) -> bool: ...
    async def cancel(self, enrollment_id: UUID, now: int) -> Enrollment | None: ...
    async def list_active_for_user(self, user_id: UUID) -> list[Enrollment]: ...
    async def list_active_for_courses(
        self, course_ids: Iterable[UUID]
    ) -> list[Enrollment]: ...
    async def list_all(self) -> list[Enrollment]: ...
    async def count_by_status(self) -> dict[str, int]: ...


class InMemoryEnrollmentRepo:
    def __init__(self) -> None:
        self._store: dict[tuple[UUID, UUID], Enrollment] = {}

    async def get(self, user_id: UUID, course_id: UUID) -> Enrollment | None:
        return self._store.get((user_id, course_id))

    async def get_by_id(self, enrollment_id: UUID) -> Enrollment | None:
        return next((e for e in self._store.values() if e.id == enrollment_id), None)

    async def upsert_pending(self, enrollment: Enrollment) -> Enrollment:
        key = (enrollment.user_id, enrollment.course_id)
        existing = self._store.get(key)
        if existing is None:
            self._store[key] = enrollment
            return enrollment
        if existing.status == ACTIVE:
            return existing
        reset = replace(
            existing,
            status=PENDING,
            amount=enrollment.amount,
            payment_reference=None,
            updated_at=enrollment.updated_at,
        )
        self._store[key] = reset
        return reset

    async def insert_if_absent(self, enrollment: Enrollment) -> bool:
        key = (enrollment.user_id, enrollment.course_id)
        if key in self._store:
            return False
        self._store[key] = enrollment
        return True

    async def activate(
        self,
        user_id: UUID,
        course_id: UUID,
        *,
        amount: int,
        payment_reference: str | None,
        now: int,
    ) -> Enrollment | None:
        key = (user_id, course_id)
        existing = self._store.get(key)
        if existing is None or existing.status != PENDING:
            return None
        updated = replace(
            existing,
            status=ACTIVE,
            amount=amount,
            payment_reference=payment_reference,
            updated_at=now,
        )
        self._store[key] = updated
        return updated

    async def delete_pending(self, user_id: UUID, course_id: UUID) -> bool:
        key = (user_id, course_id)
        existing = self._store.get(key)
        if existing is None or existing.status != PENDING:
            return False
        del self._store[key]
        return True

    async def cancel(self, enrollment_id: UUID, now: int) -> Enrollment | None:
        for key, e in self._store.items():
            if e.id == enrollment_id:
                updated = replace(e, status=CANCELLED, updated_at=now)
                self._store[key] = updated
                return updated
        return None

    async def list_active_for_user(self, user_id: UUID) -> list[Enrollment]:
        return sorted(
            (e for e in self._store.values() if e.user_id == user_id and e.is_active),
            key=lambda e: e.created_at,
            reverse=True,
        )

    async def list_active_for_courses(
        self, course_ids: Iterable[UUID]
    ) -> list[Enrollment]:
        wanted = set(course_ids)
        return sorted(
            (e for e in self._store.values() if e.course_id in wanted and e.is_active),
            key=lambda e: e.created_at,
            reverse=True,
        )

    async def list_all(self) -> list[Enrollment]:
        return sorted(self._store.values(), key=lambda e: e.created_at)

    async def count_by_status(self) -> dict[str, int]:
        return dict(Counter(e.status for e in self._store.values()))
