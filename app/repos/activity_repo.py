from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol
from uuid import UUID

from app.models.activity import Activity, ActivityCompletion


class ActivityRepo(Protocol):
    async def get(self, activity_id: UUID) -> Activity | None: ...
    async def add(self, activity: Activity) -> None: ...
    async def delete(self, activity_id: UUID) -> bool: ...
    async def list_for_courses(self, course_ids: Iterable[UUID]) -> list[Activity]: ...
    async def add_completion_if_absent(
        self, completion: ActivityCompletion
    ) -> bool: ...
    async def get_completion(
        self, user_id: UUID, activity_id: UUID
    ) -> ActivityCompletion | None: ...
    async def remove_completion(self, user_id: UUID, activity_id: UUID) -> bool: ...
    async def list_completions(
        self, user_id: UUID, activity_ids: Iterable[UUID]
    ) -> list[ActivityCompletion]: ...


class InMemoryActivityRepo:
    def __init__(self) -> None:
        self._activities: dict[UUID, Activity] = {}
        self._completions: dict[tuple[UUID, UUID], ActivityCompletion] = {}

    async def get(self, activity_id: UUID) -> Activity | None:
        return self._activities.get(activity_id)

    async def add(self, activity: Activity) -> None:
        self._activities[activity.id] = activity

    async def delete(self, activity_id: UUID) -> bool:
        if self._activities.pop(activity_id, None) is None:
            return False
        for key in [k for k in self._completions if k[1] == activity_id]:
            del self._completions[key]
        return True

    async def list_for_courses(self, course_ids: Iterable[UUID]) -> list[Activity]:
        wanted = set(course_ids)
        return [a for a in self._activities.values() if a.course_id in wanted]

    async def add_completion_if_absent(self, completion: ActivityCompletion) -> bool:
        key = (completion.user_id, completion.activity_id)
        if key in self._completions:
            return False
        self._completions[key] = completion
        return True

    async def get_completion(
        self, user_id: UUID, activity_id: UUID
    ) -> ActivityCompletion | None:
        return self._completions.get((user_id, activity_id))

    async def remove_completion(self, user_id: UUID, activity_id: UUID) -> bool:
        return self._completions.pop((user_id, activity_id), None) is not None

    async def list_completions(
        self, user_id: UUID, activity_ids: Iterable[UUID]
    ) -> list[ActivityCompletion]:
        return [
            self._completions[(user_id, aid)]
            for aid in set(activity_ids)
            if (user_id, aid) in self._completions
        ]
