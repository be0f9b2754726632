"""Mentor dashboard endpoints."""

from __future__ import annotations

from uuid import uuid4

from fastapi.testclient import TestClient

from app.models.enrollment import PENDING
from tests.conftest import Caller, seed_course, seed_enrollment, seed_user


def test_learners_cannot_open_the_mentor_dashboard(
    client: TestClient, learner: Caller
) -> None:
    for path in ("/v1/mentor/dashboard/stats", "/v1/mentor/courses", "/v1/mentor/students"):
        assert client.get(path, headers=learner.headers).status_code == 403


def test_stats_and_courses_cover_only_own_courses(
    client: TestClient, mentor: Caller
) -> None:
    older = seed_course(slug="older", created_by=mentor.id, created_at=10)
    newer = seed_course(slug="newer", created_by=mentor.id, created_at=20)
    foreign = seed_course(slug="foreign", created_at=30)
    seed_enrollment(uuid4(), older.id, amount=30)
    seed_enrollment(uuid4(), newer.id, amount=45)
    seed_enrollment(uuid4(), newer.id, status=PENDING, amount=45)
    seed_enrollment(uuid4(), foreign.id, amount=80)

    stats = client.get("/v1/mentor/dashboard/stats", headers=mentor.headers)
    courses = client.get("/v1/mentor/courses", headers=mentor.headers)

    assert stats.status_code == 200
    assert stats.json() == {"course_count": 2, "student_count": 2, "total_revenue": 75}
    assert [c["slug"] for c in courses.json()] == ["newer", "older"]


def test_students_list_newest_enrollment_first(
    client: TestClient, mentor: Caller
) -> None:
    course = seed_course(created_by=mentor.id)
    early, late = uuid4(), uuid4()
    seed_user(early, email="early@example.com", name="Early Bird")
    seed_enrollment(early, course.id, amount=20, now=100)
    seed_enrollment(late, course.id, now=200)

    resp = client.get("/v1/mentor/students", headers=mentor.headers)

    assert resp.status_code == 200
    rows = resp.json()
    assert [r["student"]["id"] for r in rows] == [str(late), str(early)]
    assert rows[1]["student"] == {
        "id": str(early),
        "name": "Early Bird",
        "email": "early@example.com",
    }
    assert rows[1]["course"] == {"id": str(course.id), "title": course.title}
    assert (rows[1]["enrolled_at"], rows[1]["amount"]) == (100, 20)
    assert rows[0]["student"]["email"] == ""
