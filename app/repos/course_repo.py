from __future__ import annotations

from collections.abc import Iterable
from dataclasses import replace
from typing import Protocol
from uuid import UUID

from app.models.course import Course


class CourseRepo(Protocol):
    async def get(self, course_id: UUID) -> Course | None: ...
    async def get_by_slug(self, slug: str) -> Course | None: ...
    async def list_published(self) -> list[Course]: ...
    async def list_by_creator(self, user_id: UUID) -> list[Course]: ...
    async def list_recent(self, limit: int) -> list[Course]: ...
    async def search_published(
        self, query: str, category: str | None = None
    ) -> list[Course]: ...
    async def count_lessons(self) -> int: ...
    async def add(self, course: Course) -> None: ...
    async def set_status(self, course_id: UUID, status: str) -> Course | None: ...
    async def course_id_for_lesson(self, lesson_id: UUID) -> UUID | None: ...


class InMemoryCourseRepo:
    """Courses are stored with their full chapter/lesson tree attached."""

    def __init__(self) -> None:
        self._by_id: dict[UUID, Course] = {}
        self._lesson_course: dict[UUID, UUID] = {}

    async def get(self, course_id: UUID) -> Course | None:
        return self._by_id.get(course_id)

    async def get_by_slug(self, slug: str) -> Course | None:
        return next((c for c in self._by_id.values() if c.slug == slug), None)

    async def list_published(self) -> list[Course]:
        return sorted(
            (c for c in self._by_id.values() if c.is_published),
            key=lambda c: c.title,
        )

    async def list_by_creator(self, user_id: UUID) -> list[Course]:
        return _newest_first(c for c in self._by_id.values() if c.created_by == user_id)

    async def list_recent(self, limit: int) -> list[Course]:
        return _newest_first(self._by_id.values())[:limit]

    async def search_published(
        self, query: str, category: str | None = None
    ) -> list[Course]:
        needle = query.casefold()
        return _newest_first(
            c
            for c in self._by_id.values()
            if c.is_published
            and (category is None or c.category == category)
            and any(
                needle in text.casefold()
                for text in (c.title, c.description, c.category)
            )
        )

    async def count_lessons(self) -> int:
        return len(self._lesson_course)

    async def add(self, course: Course) -> None:
        if any(c.slug == course.slug for c in self._by_id.values()):
            raise ValueError("slug already exists")
        self._by_id[course.id] = course
        for lesson_id in course.lesson_ids():
            self._lesson_course[lesson_id] = course.id

    async def set_status(self, course_id: UUID, status: str) -> Course | None:
        c = self._by_id.get(course_id)
        if c is None:
            return None
        updated = replace(c, status=status)
        self._by_id[course_id] = updated
        return updated

    async def course_id_for_lesson(self, lesson_id: UUID) -> UUID | None:
        return self._lesson_course.get(lesson_id)


def _newest_first(courses: Iterable[Course]) -> list[Course]:
    return sorted(courses, key=lambda c: c.created_at, reverse=True)
