from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID, uuid4

ACTIVITY_TYPES = ("assignment", "quiz", "project", "reading", "video")


@dataclass(frozen=True, slots=True)
class Activity:
    id: UUID
    course_id: UUID
    title: str
    type: str = "assignment"  # see ACTIVITY_TYPES
    description: str = ""
    start_date: int | None = None
    due_date: int | None = None
    created_at: int = 0

    @staticmethod
    def new(
        *,
        course_id: UUID,
        title: str,
        now: int,
        type: str = "assignment",
        description: str = "",
        start_date: int | None = None,
        due_date: int | None = None,
    ) -> Activity:
        return Activity(
            id=uuid4(),
            course_id=course_id,
            title=title,
            type=type,
            description=description,
            start_date=start_date,
            due_date=due_date,
            created_at=now,
        )


@dataclass(frozen=True, slots=True)
class ActivityCompletion:
    """Unique per (user, activity); presence means completed."""

    user_id: UUID
    activity_id: UUID
    completed_at: int
