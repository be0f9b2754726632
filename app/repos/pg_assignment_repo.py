"""PostgreSQL implementation of AssignmentRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.tables import PeerReviewRow, SubmissionRow
from app.models.assignment import SUBMITTED, PeerReview, Submission


class PgAssignmentRepo:
    """Satisfies the AssignmentRepo Protocol.

    Both writes lean on the table constraints: a resubmission is an
    ON CONFLICT update of (user_id, lesson_id) and a second review of the
    same submission by the same reviewer inserts nothing.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_submission(self, submission_id: UUID) -> Submission | None:
        stmt = select(SubmissionRow).where(SubmissionRow.id == submission_id)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_submission(row) if row is not None else None

    async def get_user_submission(
        self, user_id: UUID, lesson_id: UUID
    ) -> Submission | None:
        stmt = select(SubmissionRow).where(
            SubmissionRow.user_id == user_id, SubmissionRow.lesson_id == lesson_id
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_submission(row) if row is not None else None

    async def upsert_submission(self, submission: Submission) -> Submission:
        stmt = upsert_submission_statement(submission)
        row = (await self._session.execute(stmt)).scalar_one()
        return _row_to_submission(row)

    async def list_reviewable(
        self, reviewer_id: UUID, lesson_id: UUID
    ) -> list[Submission]:
        already = select(PeerReviewRow.submission_id).where(
            PeerReviewRow.reviewer_id == reviewer_id
        )
        stmt = (
            select(SubmissionRow)
            .where(
                SubmissionRow.lesson_id == lesson_id,
                SubmissionRow.user_id != reviewer_id,
                SubmissionRow.status == SUBMITTED,
                SubmissionRow.id.not_in(already),
            )
            .order_by(SubmissionRow.created_at)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_submission(r) for r in rows]

    async def add_review_if_absent(self, review: PeerReview) -> bool:
        stmt = (
            pg_insert(PeerReviewRow)
            .values(
                id=review.id,
                submission_id=review.submission_id,
                reviewer_id=review.reviewer_id,
                score=review.score,
                feedback=review.feedback,
                created_at=review.created_at,
            )
            .on_conflict_do_nothing(
                index_elements=[PeerReviewRow.submission_id, PeerReviewRow.reviewer_id]
            )
        )
        result = await self._session.execute(stmt)
        return result.rowcount == 1

    async def count_reviews_by(self, reviewer_id: UUID, lesson_id: UUID) -> int:
        stmt = (
            select(func.count())
            .select_from(PeerReviewRow)
            .join(SubmissionRow, SubmissionRow.id == PeerReviewRow.submission_id)
            .where(
                PeerReviewRow.reviewer_id == reviewer_id,
                SubmissionRow.lesson_id == lesson_id,
            )
        )
        return (await self._session.execute(stmt)).scalar_one()

    async def list_reviews_for(self, submission_id: UUID) -> list[PeerReview]:
        stmt = (
            select(PeerReviewRow)
            .where(PeerReviewRow.submission_id == submission_id)
            .order_by(PeerReviewRow.created_at)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_review(r) for r in rows]


def upsert_submission_statement(submission: Submission):
    """Insert, or on a resubmission replace the content and reopen the row."""
    return (
        pg_insert(SubmissionRow)
        .values(
            id=submission.id,
            user_id=submission.user_id,
            lesson_id=submission.lesson_id,
            content=submission.content,
            status=SUBMITTED,
            created_at=submission.created_at,
            updated_at=submission.updated_at,
        )
        .on_conflict_do_update(
            index_elements=[SubmissionRow.user_id, SubmissionRow.lesson_id],
            set_={
                "content": submission.content,
                "status": SUBMITTED,
                "updated_at": submission.updated_at,
            },
        )
        .returning(SubmissionRow)
    )


def _row_to_submission(row: SubmissionRow) -> Submission:
    return Submission(
        id=row.id,
        user_id=row.user_id,
        lesson_id=row.lesson_id,
        content=row.content,
        status=row.status,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_review(row: PeerReviewRow) -> PeerReview:
    return PeerReview(
        id=row.id,
        submission_id=row.submission_id,
        reviewer_id=row.reviewer_id,
        score=row.score,
        feedback=row.feedback,
        created_at=row.created_at,
    )
