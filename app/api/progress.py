"""Lesson progress endpoints.

  POST   /v1/progress/lessons/{lesson_id}     mark complete / incomplete
  GET    /v1/progress/courses/{course_ref}    aggregate, read through cache
  DELETE /v1/progress/courses/{course_ref}    reset the caller's progress

Writes invalidate the cached aggregate for (user, course), so the next
GET recomputes from the progress rows.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from app.api.dependencies import CurrentUser, StoreDep
from app.api.ratelimit import require_rate_limit
from app.models.course import Course
from app.models.progress import ProgressSummary
from app.services import progress_service

router = APIRouter(prefix="/v1/progress", tags=["progress"])


class LessonProgressIn(BaseModel):
    completed: bool = True


class LessonProgressOut(BaseModel):
    lesson_id: UUID
    completed: bool
    updated_at: int


class ChapterProgressOut(BaseModel):
    chapter_id: UUID
    title: str
    completed: int
    total: int


class CourseProgressOut(BaseModel):
    course_id: UUID
    total_lessons: int
    completed_lessons: int
    progress_percentage: int
    chapters: list[ChapterProgressOut]


class ResetOut(BaseModel):
    deleted: int


def progress_out(course: Course, summary: ProgressSummary) -> CourseProgressOut:
    return CourseProgressOut(
        course_id=course.id,
        total_lessons=summary.total_lessons,
        completed_lessons=summary.completed_lessons,
        progress_percentage=summary.progress_percentage,
        chapters=[
            ChapterProgressOut(
                chapter_id=c.chapter_id,
                title=c.title,
                completed=c.completed,
                total=c.total,
            )
            for c in summary.chapters
        ],
    )


@router.post(
    "/lessons/{lesson_id}",
    response_model=LessonProgressOut,
    dependencies=[Depends(require_rate_limit())],
)
async def mark_lesson(
    lesson_id: UUID,
    principal: CurrentUser,
    store: StoreDep,
    body: LessonProgressIn | None = None,
) -> LessonProgressOut:
    completed = body.completed if body is not None else True
    record = await progress_service.mark_lesson(store, principal, lesson_id, completed)
    return LessonProgressOut(
        lesson_id=record.lesson_id,
        completed=record.completed,
        updated_at=record.updated_at,
    )


@router.get("/courses/{course_ref}", response_model=CourseProgressOut)
async def get_course_progress(
    course_ref: str,
    principal: CurrentUser,
    store: StoreDep,
) -> CourseProgressOut:
    course, summary = await progress_service.get_course_progress(
        store, principal, course_ref
    )
    return progress_out(course, summary)


@router.delete("/courses/{course_ref}", response_model=ResetOut)
async def reset_course_progress(
    course_ref: str,
    principal: CurrentUser,
    store: StoreDep,
) -> ResetOut:
    deleted = await progress_service.reset_course_progress(store, principal, course_ref)
    return ResetOut(deleted=deleted)
