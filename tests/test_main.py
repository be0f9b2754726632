from __future__ import annotations

from fastapi.testclient import TestClient

from app.main import app
from tests.conftest import Caller, make_caller, seed_course

client = TestClient(app)


def test_health_returns_ok() -> None:
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


def test_courses_reject_missing_token() -> None:
    resp = client.get("/v1/courses")
    assert resp.status_code == 401


def test_learner_walkthrough() -> None:
    """Free course end to end: enroll, watch, finish."""
    course = seed_course(slug="walkthrough", lessons_per_chapter=(1,))
    learner: Caller = make_caller()

    enrolled = client.post(
        "/v1/enrollments/free", json={"course_id": course.slug}, headers=learner.headers
    )
    assert enrolled.status_code == 201

    detail = client.get(f"/v1/courses/{course.slug}", headers=learner.headers).json()
    lesson = detail["chapters"][0]["lessons"][0]
    assert lesson["video_key"] == "videos/1-1.mp4"

    client.post(f"/v1/progress/lessons/{lesson['id']}", headers=learner.headers)
    dashboard = client.get("/v1/users/me/courses", headers=learner.headers).json()
    assert [row["progress"]["progress_percentage"] for row in dashboard] == [100]


def test_openapi_lists_lms_routes() -> None:
    paths = client.get("/openapi.json").json()["paths"]
    assert "/v1/quizzes/attempts/{attempt_id}/submit" in paths
    assert "/v1/webhooks/stripe" in paths
