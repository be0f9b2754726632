from __future__ import annotations

from dataclasses import replace
from typing import Protocol
from uuid import UUID

from app.models.assignment import SUBMITTED, PeerReview, Submission


class AssignmentRepo(Protocol):
    """Project submissions and the peer reviews written against them."""

    async def get_submission(self, submission_id: UUID) -> Submission | None: ...
    async def get_user_submission(
        self, user_id: UUID, lesson_id: UUID
    ) -> Submission | None: ...
    async def upsert_submission(self, submission: Submission) -> Submission: ...
    async def list_reviewable(
        self, reviewer_id: UUID, lesson_id: UUID
    ) -> list[Submission]: ...
    async def add_review_if_absent(self, review: PeerReview) -> bool: ...
    async def count_reviews_by(self, reviewer_id: UUID, lesson_id: UUID) -> int: ...
    async def list_reviews_for(self, submission_id: UUID) -> list[PeerReview]: ...


class InMemoryAssignmentRepo:
    def __init__(self) -> None:
        self._submissions: dict[tuple[UUID, UUID], Submission] = {}
        self._reviews: dict[tuple[UUID, UUID], PeerReview] = {}

    async def get_submission(self, submission_id: UUID) -> Submission | None:
        return next(
            (s for s in self._submissions.values() if s.id == submission_id), None
        )

    async def get_user_submission(
        self, user_id: UUID, lesson_id: UUID
    ) -> Submission | None:
        return self._submissions.get((user_id, lesson_id))

    async def upsert_submission(self, submission: Submission) -> Submission:
        key = (submission.user_id, submission.lesson_id)
        existing = self._submissions.get(key)
        if existing is None:
            self._submissions[key] = submission
            return submission
        updated = replace(
            existing,
            content=submission.content,
            status=SUBMITTED,
            updated_at=submission.updated_at,
        )
        self._submissions[key] = updated
        return updated

    async def list_reviewable(
        self, reviewer_id: UUID, lesson_id: UUID
    ) -> list[Submission]:
        reviewed = {sid for sid, rid in self._reviews if rid == reviewer_id}
        return sorted(
            (
                s
                for s in self._submissions.values()
                if s.lesson_id == lesson_id
                and s.user_id != reviewer_id
                and s.status == SUBMITTED
                and s.id not in reviewed
            ),
            key=lambda s: s.created_at,
        )

    async def add_review_if_absent(self, review: PeerReview) -> bool:
        key = (review.submission_id, review.reviewer_id)
        if key in self._reviews:
            return False
        self._reviews[key] = review
        return True

    async def count_reviews_by(self, reviewer_id: UUID, lesson_id: UUID) -> int:
        on_lesson = {s.id for s in self._submissions.values() if s.lesson_id == lesson_id}
        return sum(
            1
            for (sid, rid) in self._reviews
            if rid == reviewer_id and sid in on_lesson
        )

    async def list_reviews_for(self, submission_id: UUID) -> list[PeerReview]:
        return sorted(
            (r for r in self._reviews.values() if r.submission_id == submission_id),
            key=lambda r: r.created_at,
        )
