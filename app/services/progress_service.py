"""Per-lesson progress and course-level aggregation.

``aggregate_progress`` is the pure core: given a course's chapter tree and
a user's progress rows it computes the totals.  It does not care about the
order of either input, ignores rows for lessons that are not in the tree
and only counts rows marked completed, so a stale or duplicated record
can never push a course past 100%.

Everything else here is I/O around it: marking a lesson, the cached
per-course read, reset, and the dashboard listing.
"""

from __future__ import annotations

import functools
import json
import logging
from collections.abc import Iterable
from uuid import UUID

from app.core import clock
from app.core.errors import NotFound
from app.core.metrics import CACHE_OPERATIONS
from app.models.course import Chapter, Course
from app.models.enrollment import Enrollment
from app.models.principal import Principal
from app.models.progress import ChapterProgress, LessonProgress, ProgressSummary
from app.repos.store import Store
from app.services import course_service, enrollment_service
from app.services.cache import cache_service

logger = logging.getLogger(__name__)

PROGRESS_CACHE_TTL_SECONDS = 300


def aggregate_progress(
    chapters: Iterable[Chapter], records: Iterable[LessonProgress]
) -> ProgressSummary:
    completed_ids = {r.lesson_id for r in records if r.completed}

    breakdown: list[ChapterProgress] = []
    for chapter in sorted(chapters, key=lambda c: c.position):
        lesson_ids = {lesson.id for lesson in chapter.lessons}
        breakdown.append(
            ChapterProgress(
                chapter_id=chapter.id,
                title=chapter.title,
                completed=len(lesson_ids & completed_ids),
                total=len(lesson_ids),
            )
        )

    total = sum(c.total for c in breakdown)
    completed = sum(c.completed for c in breakdown)
    return ProgressSummary(
        total_lessons=total,
        completed_lessons=completed,
        progress_percentage=_percent(completed, total),
        chapters=tuple(breakdown),
    )


def _percent(completed: int, total: int) -> int:
    """Whole percent, halves rounded up; 0 for an empty course."""
    if total == 0:
        return 0
    return (200 * completed + total) // (2 * total)


def progress_cache_key(user_id: UUID, course_id: UUID) -> str:
    return f"progress:{user_id}:{course_id}"


async def _invalidate(store: Store, user_id: UUID, course_id: UUID) -> None:
    # after commit, or a concurrent read re-caches the old rows
    key = progress_cache_key(user_id, course_id)
    await store.after_commit(functools.partial(cache_service.delete, key))


async def mark_lesson(
    store: Store, principal: Principal, lesson_id: UUID, completed: bool = True
) -> LessonProgress:
    course_id = await store.courses.course_id_for_lesson(lesson_id)
    if course_id is None:
        raise NotFound("Lesson not found")
    await enrollment_service.ensure_active_enrollment(store, principal, course_id)

    record = await store.progress.upsert(
        LessonProgress(
            user_id=principal.uid,
            lesson_id=lesson_id,
            completed=completed,
            updated_at=clock.now(),
        )
    )
    await _invalidate(store, principal.uid, course_id)
    logger.info(
        "Lesson %s marked completed=%s by user=%s",
        lesson_id,
        completed,
        principal.user_id,
        extra={"course_id": str(course_id)},
    )
    return record


async def course_summary(
    store: Store, user_id: UUID, course: Course
) -> ProgressSummary:
    """Aggregate for one (user, course), read through the cache."""
    key = progress_cache_key(user_id, course.id)
    cached = await cache_service.get(key)
    if cached is not None:
        CACHE_OPERATIONS.labels(operation="hit").inc()
        return _summary_from_json(cached)

    CACHE_OPERATIONS.labels(operation="miss").inc()
    records = await store.progress.list_for_lessons(user_id, course.lesson_ids())
    summary = aggregate_progress(course.chapters, records)
    await cache_service.set(key, _summary_to_json(summary), PROGRESS_CACHE_TTL_SECONDS)
    return summary


async def get_course_progress(
    store: Store, principal: Principal, course_ref: str
) -> tuple[Course, ProgressSummary]:
    course = await course_service.resolve_course(store, course_ref)
    await enrollment_service.ensure_active_enrollment(store, principal, course.id)
    return course, await course_summary(store, principal.uid, course)


async def reset_course_progress(
    store: Store, principal: Principal, course_ref: str
) -> int:
    course = await course_service.resolve_course(store, course_ref)
    deleted = await store.progress.delete_for_lessons(
        principal.uid, course.lesson_ids()
    )
    await _invalidate(store, principal.uid, course.id)
    logger.info(
        "Progress reset for user=%s rows=%d",
        principal.user_id,
        deleted,
        extra={"course_id": str(course.id)},
    )
    return deleted


async def list_enrolled_courses(
    store: Store, principal: Principal
) -> list[tuple[Course, Enrollment, ProgressSummary]]:
    """Dashboard view: each active enrollment with its course and progress."""
    out: list[tuple[Course, Enrollment, ProgressSummary]] = []
    for enrollment in await store.enrollments.list_active_for_user(principal.uid):
        course = await store.courses.get(enrollment.course_id)
        if course is None:
            continue
        out.append(
            (course, enrollment, await course_summary(store, principal.uid, course))
        )
    return out


def _summary_to_json(s: ProgressSummary) -> str:
    return json.dumps(
        {
            "total_lessons": s.total_lessons,
            "completed_lessons": s.completed_lessons,
            "progress_percentage": s.progress_percentage,
            "chapters": [
                {
                    "chapter_id": str(c.chapter_id),
                    "title": c.title,
                    "completed": c.completed,
                    "total": c.total,
                }
                for c in s.chapters
            ],
        }
    )


def _summary_from_json(raw: str) -> ProgressSummary:
    data = json.loads(raw)
    return ProgressSummary(
        total_lessons=data["total_lessons"],
        completed_lessons=data["completed_lessons"],
        progress_percentage=data["progress_percentage"],
        chapters=tuple(
            ChapterProgress(
                chapter_id=UUID(c["chapter_id"]),
                title=c["title"],
                completed=c["completed"],
                total=c["total"],
            )
            for c in data["chapters"]
        ),
    )
