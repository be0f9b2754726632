"""Peer-reviewed project lessons.

  GET  /v1/assignments/lessons/{lesson_id}/submission         mine, or null
  POST /v1/assignments/lessons/{lesson_id}/submission         submit / resubmit
  GET  /v1/assignments/lessons/{lesson_id}/reviews/pending    up to 3 to score
  GET  /v1/assignments/lessons/{lesson_id}/reviews/received   reviews of mine
  POST /v1/assignments/submissions/{submission_id}/reviews    score a peer
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from app.api.dependencies import CurrentUser, StoreDep
from app.api.ratelimit import require_rate_limit
from app.models.assignment import PeerReview, Submission
from app.services import assignment_service

router = APIRouter(prefix="/v1/assignments", tags=["assignments"])


class SubmissionIn(BaseModel):
    content: str


class ReviewIn(BaseModel):
    score: int
    feedback: str


class SubmissionOut(BaseModel):
    id: UUID
    user_id: UUID
    lesson_id: UUID
    content: str
    status: str
    created_at: int
    updated_at: int


class ReviewOut(BaseModel):
    id: UUID
    submission_id: UUID
    reviewer_id: UUID
    score: int
    feedback: str
    created_at: int


class ReviewResultOut(BaseModel):
    review: ReviewOut
    lesson_completed: bool


def submission_out(s: Submission) -> SubmissionOut:
    return SubmissionOut(
        id=s.id,
        user_id=s.user_id,
        lesson_id=s.lesson_id,
        content=s.content,
        status=s.status,
        created_at=s.created_at,
        updated_at=s.updated_at,
    )


def review_out(r: PeerReview) -> ReviewOut:
    return ReviewOut(
        id=r.id,
        submission_id=r.submission_id,
        reviewer_id=r.reviewer_id,
        score=r.score,
        feedback=r.feedback,
        created_at=r.created_at,
    )


@router.get("/lessons/{lesson_id}/submission", response_model=SubmissionOut | None)
async def my_submission(
    lesson_id: UUID,
    principal: CurrentUser,
    store: StoreDep,
) -> SubmissionOut | None:
    submission = await assignment_service.get_my_submission(store, principal, lesson_id)
    return submission_out(submission) if submission is not None else None


@router.post(
    "/lessons/{lesson_id}/submission",
    response_model=SubmissionOut,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_rate_limit())],
)
async def submit_assignment(
    lesson_id: UUID,
    body: SubmissionIn,
    principal: CurrentUser,
    store: StoreDep,
) -> SubmissionOut:
    submission = await assignment_service.submit_assignment(
        store, principal, lesson_id, body.content
    )
    return submission_out(submission)


@router.get("/lessons/{lesson_id}/reviews/pending", response_model=list[SubmissionOut])
async def submissions_to_review(
    lesson_id: UUID,
    principal: CurrentUser,
    store: StoreDep,
) -> list[SubmissionOut]:
    return [
        submission_out(s)
        for s in await assignment_service.get_submissions_to_review(
            store, principal, lesson_id
        )
    ]


@router.get("/lessons/{lesson_id}/reviews/received", response_model=list[ReviewOut])
async def reviews_received(
    lesson_id: UUID,
    principal: CurrentUser,
    store: StoreDep,
) -> list[ReviewOut]:
    return [
        review_out(r)
        for r in await assignment_service.get_reviews_received(
            store, principal, lesson_id
        )
    ]


@router.post(
    "/submissions/{submission_id}/reviews",
    response_model=ReviewResultOut,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_rate_limit())],
)
async def submit_review(
    submission_id: UUID,
    body: ReviewIn,
    principal: CurrentUser,
    store: StoreDep,
) -> ReviewResultOut:
    review, completed = await assignment_service.submit_review(
        store, principal, submission_id, score=body.score, feedback=body.feedback
    )
    return ReviewResultOut(review=review_out(review), lesson_completed=completed)
