"""Read-only roll-ups for the mentor and admin dashboards.

Mentor figures cover only courses the mentor created and only active
enrollments in them.  The admin month view buckets signups and
enrollments by UTC calendar day, one entry per day of the month even
when nothing happened.
"""

from __future__ import annotations

import calendar
import datetime
from collections import Counter
from dataclasses import dataclass
from uuid import UUID

from app.core import clock
from app.core.errors import ValidationError
from app.models.course import Course
from app.models.enrollment import Enrollment
from app.models.principal import Principal
from app.models.user import User
from app.repos.store import Store

MAX_RECENT_COURSES = 50


@dataclass(frozen=True, slots=True)
class MentorStats:
    course_count: int
    student_count: int
    total_revenue: int


@dataclass(frozen=True, slots=True)
class MentorStudent:
    enrollment: Enrollment
    course: Course
    student: User | None  # enrolled before their identity was mirrored


@dataclass(frozen=True, slots=True)
class DayStats:
    date: str  # YYYY-MM-DD
    signups: int
    enrollments: int


@dataclass(frozen=True, slots=True)
class AdminStats:
    total_signups: int
    total_customers: int
    total_courses: int
    total_lessons: int
    recent_signups: int
    by_date: tuple[DayStats, ...]


async def mentor_courses(store: Store, principal: Principal) -> list[Course]:
    return await store.courses.list_by_creator(principal.uid)


async def mentor_stats(store: Store, principal: Principal) -> MentorStats:
    courses = await store.courses.list_by_creator(principal.uid)
    enrollments = await store.enrollments.list_active_for_courses(
        c.id for c in courses
    )
    return MentorStats(
        course_count=len(courses),
        student_count=len({e.user_id for e in enrollments}),
        total_revenue=sum(e.amount for e in enrollments),
    )


async def mentor_students(store: Store, principal: Principal) -> list[MentorStudent]:
    """Active enrollments in the mentor's courses, newest first."""
    courses = {c.id: c for c in await store.courses.list_by_creator(principal.uid)}
    enrollments = await store.enrollments.list_active_for_courses(list(courses))
    students: dict[UUID, User | None] = {}
    out: list[MentorStudent] = []
    for e in enrollments:
        if e.user_id not in students:
            students[e.user_id] = await store.users.get(e.user_id)
        out.append(
            MentorStudent(
                enrollment=e, course=courses[e.course_id], student=students[e.user_id]
            )
        )
    return out


async def admin_stats(
    store: Store, month: int | None = None, year: int | None = None
) -> AdminStats:
    today = _utc_date(clock.now())
    month = today.month if month is None else month
    year = today.year if year is None else year
    if not 1 <= month <= 12:
        raise ValidationError("month must be between 1 and 12")
    if not datetime.MINYEAR <= year <= datetime.MAXYEAR:
        raise ValidationError("year is out of range")

    users = await store.users.list_all()
    enrollments = await store.enrollments.list_all()
    days_in_month = calendar.monthrange(year, month)[1]
    days = [datetime.date(year, month, d) for d in range(1, days_in_month + 1)]
    in_month = set(days)

    signups_by_day = Counter(
        _utc_date(u.created_at) for u in users if u.role != "admin"
    )
    enrollments_by_day = Counter(_utc_date(e.created_at) for e in enrollments)

    return AdminStats(
        total_signups=len(users),
        total_customers=len({e.user_id for e in enrollments}),
        total_courses=len(await store.courses.list_published()),
        total_lessons=await store.courses.count_lessons(),
        recent_signups=sum(1 for u in users if _utc_date(u.created_at) in in_month),
        by_date=tuple(
            DayStats(
                date=day.isoformat(),
                signups=signups_by_day[day],
                enrollments=enrollments_by_day[day],
            )
            for day in days
        ),
    )


async def recent_courses(store: Store, limit: int = 5) -> list[Course]:
    if not 1 <= limit <= MAX_RECENT_COURSES:
        raise ValidationError(f"limit must be between 1 and {MAX_RECENT_COURSES}")
    return await store.courses.list_recent(limit)


def _utc_date(epoch_seconds: int) -> datetime.date:
    return datetime.datetime.fromtimestamp(epoch_seconds, datetime.UTC).date()
