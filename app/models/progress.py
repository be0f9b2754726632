from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID


@dataclass(frozen=True, slots=True)
class LessonProgress:
    """Unique per (user, lesson); written only by the owning user."""

    user_id: UUID
    lesson_id: UUID
    completed: bool = True
    updated_at: int = 0


@dataclass(frozen=True, slots=True)
class ChapterProgress:
    chapter_id: UUID
    title: str
    completed: int
    total: int


@dataclass(frozen=True, slots=True)
class ProgressSummary:
    """Read model computed from the course tree and progress rows."""

    total_lessons: int
    completed_lessons: int
    progress_percentage: int
    chapters: tuple[ChapterProgress, ...] = ()
