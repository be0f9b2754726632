from __future__ import annotations

import asyncio
import datetime
from uuid import uuid4

import pytest

from app.core import clock
from app.core.errors import ValidationError
from app.models.enrollment import CANCELLED, PENDING
from app.models.principal import Principal
from app.repos.store import memory_store
from app.services import dashboard_service
from tests.conftest import seed_course, seed_enrollment, seed_user


def _epoch(year: int, month: int, day: int, hour: int = 12) -> int:
    return int(datetime.datetime(year, month, day, hour, tzinfo=datetime.UTC).timestamp())


def _mentor() -> Principal:
    return Principal(user_id=str(uuid4()), role="mentor")


def test_mentor_stats_count_only_active_enrollments_in_own_courses() -> None:
    mentor = _mentor()
    mine = seed_course(slug="mine", created_by=mentor.uid)
    also_mine = seed_course(slug="also-mine", created_by=mentor.uid)
    someone_elses = seed_course(slug="other")
    student = uuid4()
    seed_enrollment(student, mine.id, amount=40)
    seed_enrollment(student, also_mine.id, amount=60)
    seed_enrollment(uuid4(), mine.id, status=PENDING, amount=40)
    seed_enrollment(uuid4(), also_mine.id, status=CANCELLED, amount=60)
    seed_enrollment(uuid4(), someone_elses.id, amount=99)

    stats = asyncio.run(dashboard_service.mentor_stats(memory_store, mentor))

    assert stats == dashboard_service.MentorStats(
        course_count=2, student_count=1, total_revenue=100
    )


def test_mentor_with_no_courses_has_zero_stats() -> None:
    stats = asyncio.run(dashboard_service.mentor_stats(memory_store, _mentor()))
    assert (stats.course_count, stats.student_count, stats.total_revenue) == (0, 0, 0)


def test_mentor_courses_newest_first() -> None:
    mentor = _mentor()
    seed_course(slug="older", created_by=mentor.uid, created_at=100)
    seed_course(slug="newer", created_by=mentor.uid, created_at=200)
    seed_course(slug="not-mine", created_at=300)

    courses = asyncio.run(dashboard_service.mentor_courses(memory_store, mentor))

    assert [c.slug for c in courses] == ["newer", "older"]


def test_mentor_students_carry_identity_when_mirrored() -> None:
    mentor = _mentor()
    course = seed_course(created_by=mentor.uid)
    known, unknown = uuid4(), uuid4()
    seed_user(known, email="ada@example.com", name="Ada")
    seed_enrollment(known, course.id, amount=25, now=100)
    seed_enrollment(unknown, course.id, now=200)

    rows = asyncio.run(dashboard_service.mentor_students(memory_store, mentor))

    assert [r.enrollment.user_id for r in rows] == [unknown, known]
    assert rows[0].student is None
    assert (rows[1].student.name, rows[1].student.email) == ("Ada", "ada@example.com")
    assert rows[1].course.id == course.id
    assert rows[1].enrollment.amount == 25


def test_admin_stats_bucket_by_utc_day() -> None:
    seed_user(uuid4(), created_at=_epoch(2026, 2, 3))
    seed_user(uuid4(), created_at=_epoch(2026, 2, 3, hour=23))
    seed_user(uuid4(), role="admin", created_at=_epoch(2026, 2, 3))
    seed_user(uuid4(), created_at=_epoch(2026, 1, 31))
    course = seed_course(lessons_per_chapter=(2, 1))
    seed_course(slug="draft", status="draft", lessons_per_chapter=(1,))
    buyer = uuid4()
    seed_enrollment(buyer, course.id, now=_epoch(2026, 2, 28, hour=0))

    stats = asyncio.run(dashboard_service.admin_stats(memory_store, month=2, year=2026))

    assert stats.total_signups == 4
    assert stats.total_customers == 1
    assert stats.total_courses == 1
    assert stats.total_lessons == 4
    assert stats.recent_signups == 3
    assert len(stats.by_date) == 28
    by_date = {d.date: d for d in stats.by_date}
    assert by_date["2026-02-03"].signups == 2
    assert by_date["2026-02-28"].enrollments == 1
    assert sum(d.signups for d in stats.by_date) == 2
    assert stats.by_date[0].date == "2026-02-01"


def test_admin_stats_default_to_the_current_month(monkeypatch) -> None:
    monkeypatch.setattr(clock, "now", lambda: _epoch(2024, 2, 10))
    stats = asyncio.run(dashboard_service.admin_stats(memory_store))
    assert len(stats.by_date) == 29
    assert stats.by_date[-1].date == "2024-02-29"


@pytest.mark.parametrize("month", [0, 13])
def test_admin_stats_reject_bad_month(month) -> None:
    with pytest.raises(ValidationError, match="month"):
        asyncio.run(dashboard_service.admin_stats(memory_store, month=month, year=2026))


def test_recent_courses_newest_first_and_limited() -> None:
    for i in range(4):
        seed_course(slug=f"course-{i}", created_at=i, status="draft")

    recent = asyncio.run(dashboard_service.recent_courses(memory_store, limit=2))

    assert [c.slug for c in recent] == ["course-3", "course-2"]
    with pytest.raises(ValidationError):
        asyncio.run(dashboard_service.recent_courses(memory_store, limit=0))
