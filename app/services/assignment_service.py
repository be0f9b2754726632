"""Peer-reviewed project lessons.

A learner submits one answer per project lesson (resubmitting replaces it),
is handed a few classmates' submissions to score, and completes the lesson
once they have written ``min_reviews_required`` reviews on it.  Reviewing
your own work is refused and a second review of the same submission by
the same reviewer is a conflict; the (submission, reviewer) constraint
decides that race, not a read before the write.
"""

from __future__ import annotations

import logging
import random
from uuid import UUID

from app.core import clock
from app.core.errors import AlreadyExists, NotFound, ValidationError
from app.core.metrics import PEER_REVIEW_EVENTS
from app.models.assignment import (
    MAX_SCORE,
    MIN_FEEDBACK_LENGTH,
    MIN_SCORE,
    PeerReview,
    Submission,
)
from app.models.course import Lesson
from app.models.principal import Principal
from app.repos.store import Store
from app.services import enrollment_service, progress_service

logger = logging.getLogger(__name__)

REVIEW_BATCH_SIZE = 3


async def submit_assignment(
    store: Store, principal: Principal, lesson_id: UUID, content: str
) -> Submission:
    course_id, lesson = await _lesson(store, lesson_id)
    await enrollment_service.ensure_active_enrollment(store, principal, course_id)
    if not lesson.is_project:
        raise ValidationError("This lesson is not a project")
    content = content.strip()
    if not content:
        raise ValidationError("Content is required")

    fresh = Submission.new(
        user_id=principal.uid, lesson_id=lesson_id, content=content, now=clock.now()
    )
    submission = await store.assignments.upsert_submission(fresh)
    PEER_REVIEW_EVENTS.labels(event="submitted").inc()
    logger.info(
        "Project %s submitted by user=%s resubmission=%s",
        lesson_id,
        principal.user_id,
        submission.id != fresh.id,
        extra={"course_id": str(course_id)},
    )
    return submission


async def get_my_submission(
    store: Store, principal: Principal, lesson_id: UUID
) -> Submission | None:
    course_id, _ = await _lesson(store, lesson_id)
    await enrollment_service.ensure_active_enrollment(store, principal, course_id)
    return await store.assignments.get_user_submission(principal.uid, lesson_id)


async def get_submissions_to_review(
    store: Store, principal: Principal, lesson_id: UUID
) -> list[Submission]:
    """A random handful of classmates' open submissions the caller has not scored."""
    course_id, _ = await _lesson(store, lesson_id)
    await enrollment_service.ensure_active_enrollment(store, principal, course_id)
    candidates = await store.assignments.list_reviewable(principal.uid, lesson_id)
    return random.sample(candidates, min(REVIEW_BATCH_SIZE, len(candidates)))


async def submit_review(
    store: Store,
    principal: Principal,
    submission_id: UUID,
    *,
    score: int,
    feedback: str,
) -> tuple[PeerReview, bool]:
    """Record a review; returns it with whether it completed the reviewer's lesson."""
    if not MIN_SCORE <= score <= MAX_SCORE:
        raise ValidationError(f"score must be between {MIN_SCORE} and {MAX_SCORE}")
    feedback = feedback.strip()
    if len(feedback) < MIN_FEEDBACK_LENGTH:
        raise ValidationError(
            f"feedback must be at least {MIN_FEEDBACK_LENGTH} characters"
        )

    submission = await store.assignments.get_submission(submission_id)
    if submission is None:
        raise NotFound("Submission not found")
    if submission.user_id == principal.uid:
        logger.warning("Self-review refused user=%s", principal.user_id)
        raise ValidationError("Cannot review your own submission")
    course_id, lesson = await _lesson(store, submission.lesson_id)
    await enrollment_service.ensure_active_enrollment(store, principal, course_id)

    review = PeerReview.new(
        submission_id=submission_id,
        reviewer_id=principal.uid,
        score=score,
        feedback=feedback,
        now=clock.now(),
    )
    if not await store.assignments.add_review_if_absent(review):
        raise AlreadyExists("You have already reviewed this submission")
    PEER_REVIEW_EVENTS.labels(event="reviewed").inc()
    logger.info(
        "Submission %s reviewed by user=%s score=%d",
        submission_id,
        principal.user_id,
        score,
        extra={"course_id": str(course_id)},
    )
    return review, await _complete_if_reviewed_enough(store, principal, lesson)


async def get_reviews_received(
    store: Store, principal: Principal, lesson_id: UUID
) -> list[PeerReview]:
    course_id, _ = await _lesson(store, lesson_id)
    await enrollment_service.ensure_active_enrollment(store, principal, course_id)
    submission = await store.assignments.get_user_submission(principal.uid, lesson_id)
    if submission is None:
        return []
    return await store.assignments.list_reviews_for(submission.id)


async def _complete_if_reviewed_enough(
    store: Store, principal: Principal, lesson: Lesson
) -> bool:
    written = await store.assignments.count_reviews_by(principal.uid, lesson.id)
    if written < lesson.min_reviews_required:
        return False
    await progress_service.mark_lesson(store, principal, lesson.id, completed=True)
    if written == max(lesson.min_reviews_required, 1):
        PEER_REVIEW_EVENTS.labels(event="lesson_completed").inc()
    return True


async def _lesson(store: Store, lesson_id: UUID) -> tuple[UUID, Lesson]:
    course_id = await store.courses.course_id_for_lesson(lesson_id)
    course = await store.courses.get(course_id) if course_id is not None else None
    lesson = course.find_lesson(lesson_id) if course is not None else None
    if course is None or lesson is None:
        raise NotFound("Lesson not found")
    return course.id, lesson
