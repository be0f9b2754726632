from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol
from uuid import UUID

from app.models.progress import LessonProgress


class ProgressRepo(Protocol):
    async def upsert(self, record: LessonProgress) -> LessonProgress: ...
    async def list_for_lessons(
        self, user_id: UUID, lesson_ids: Iterable[UUID]
    ) -> list[LessonProgress]: ...
    async def delete_for_lessons(
        self, user_id: UUID, lesson_ids: Iterable[UUID]
    ) -> int: ...


class InMemoryProgressRepo:
    def __init__(self) -> None:
        self._store: dict[tuple[UUID, UUID], LessonProgress] = {}

    async def upsert(self, record: LessonProgress) -> LessonProgress:
        self._store[(record.user_id, record.lesson_id)] = record
        return record

    async def list_for_lessons(
        self, user_id: UUID, lesson_ids: Iterable[UUID]
    ) -> list[LessonProgress]:
        return [
            self._store[(user_id, lid)]
            for lid in set(lesson_ids)
            if (user_id, lid) in self._store
        ]

    async def delete_for_lessons(
        self, user_id: UUID, lesson_ids: Iterable[UUID]
    ) -> int:
        deleted = 0
        for lid in set(lesson_ids):
            if self._store.pop((user_id, lid), None) is not None:
                deleted += 1
        return deleted
