from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID, uuid4


@dataclass(frozen=True, slots=True)
class LiveSession:
    id: UUID
    course_id: UUID
    host_user_id: UUID
    title: str
    starts_at: int
    status: str = "scheduled"  # scheduled|live|ended|cancelled
    started_at: int | None = None
    ended_at: int | None = None

    @staticmethod
    def new(
        *, course_id: UUID, host_user_id: UUID, title: str, starts_at: int
    ) -> LiveSession:
        return LiveSession(
            id=uuid4(),
            course_id=course_id,
            host_user_id=host_user_id,
            title=title,
            starts_at=starts_at,
        )

    @property
    def is_closed(self) -> bool:
        return self.status in ("ended", "cancelled")
