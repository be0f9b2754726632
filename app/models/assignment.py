from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID, uuid4

SUBMITTED = "submitted"
APPROVED = "approved"
REJECTED = "rejected"

MIN_SCORE = 1
MAX_SCORE = 5
MIN_FEEDBACK_LENGTH = 10


@dataclass(frozen=True, slots=True)
class Submission:
    """A learner's answer to a project lesson; one per (user, lesson).

    Resubmitting replaces the content and puts the row back to submitted.
    """

    id: UUID
    user_id: UUID
    lesson_id: UUID
    content: str
    status: str = SUBMITTED  # submitted|approved|rejected
    created_at: int = 0
    updated_at: int = 0

    @staticmethod
    def new(*, user_id: UUID, lesson_id: UUID, content: str, now: int) -> Submission:
        return Submission(
            id=uuid4(),
            user_id=user_id,
            lesson_id=lesson_id,
            content=content,
            created_at=now,
            updated_at=now,
        )


@dataclass(frozen=True, slots=True)
class PeerReview:
    """One reviewer's score for one submission; unique per (submission, reviewer)."""

    id: UUID
    submission_id: UUID
    reviewer_id: UUID
    score: int
    feedback: str
    created_at: int = 0

    @staticmethod
    def new(
        *, submission_id: UUID, reviewer_id: UUID, score: int, feedback: str, now: int
    ) -> PeerReview:
        return PeerReview(
            id=uuid4(),
            submission_id=submission_id,
            reviewer_id=reviewer_id,
            score=score,
            feedback=feedback,
            created_at=now,
        )
