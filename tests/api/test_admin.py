"""Admin user management, how role and ban changes reach requests, and the
admin dashboard figures."""

from __future__ import annotations

import datetime
from uuid import uuid4

from fastapi.testclient import TestClient

from tests.conftest import Caller, seed_course, seed_enrollment, seed_user


def _sync(client: TestClient, caller: Caller) -> None:
    assert client.post("/v1/users/me/sync", headers=caller.headers).status_code == 200


def test_admin_lists_users(client: TestClient, admin: Caller, learner: Caller) -> None:
    _sync(client, learner)
    resp = client.get("/admin/users", headers=admin.headers)
    assert resp.status_code == 200
    assert [u["id"] for u in resp.json()] == [str(learner.id)]


def test_non_admins_are_refused(client: TestClient, mentor: Caller) -> None:
    assert client.get("/admin/users", headers=mentor.headers).status_code == 403


def test_promotion_takes_effect_on_next_request(
    client: TestClient, admin: Caller, learner: Caller
) -> None:
    _sync(client, learner)
    course_body = {"slug": "promoted", "title": "Promoted"}
    assert client.post("/v1/courses", json=course_body, headers=learner.headers).status_code == 403

    resp = client.patch(
        f"/admin/users/{learner.id}/role", json={"role": "mentor"}, headers=admin.headers
    )
    assert resp.json()["role"] == "mentor"

    # same token, still claiming "user"; the stored role wins
    created = client.post("/v1/courses", json=course_body, headers=learner.headers)
    assert created.status_code == 201


def test_unknown_role_is_400(
    client: TestClient, admin: Caller, learner: Caller
) -> None:
    _sync(client, learner)
    resp = client.patch(
        f"/admin/users/{learner.id}/role", json={"role": "owner"}, headers=admin.headers
    )
    assert resp.status_code == 400


def test_banned_user_is_refused_everywhere(
    client: TestClient, admin: Caller, learner: Caller
) -> None:
    _sync(client, learner)
    banned = client.patch(f"/admin/users/{learner.id}/ban", json={}, headers=admin.headers)
    assert banned.json()["banned"] is True

    resp = client.get("/v1/courses", headers=learner.headers)
    assert resp.status_code == 403
    assert resp.json()["message"] == "Your account has been suspended"

    client.patch(
        f"/admin/users/{learner.id}/ban", json={"banned": False}, headers=admin.headers
    )
    assert client.get("/v1/courses", headers=learner.headers).status_code == 200


def test_admin_cannot_ban_self(client: TestClient, admin: Caller) -> None:
    _sync(client, admin)
    resp = client.patch(f"/admin/users/{admin.id}/ban", json={}, headers=admin.headers)
    assert resp.status_code == 403


def _epoch(year: int, month: int, day: int) -> int:
    return int(datetime.datetime(year, month, day, 9, tzinfo=datetime.UTC).timestamp())


def test_dashboard_stats_for_a_month(client: TestClient, admin: Caller) -> None:
    student = uuid4()
    seed_user(student, created_at=_epoch(2026, 4, 2))
    seed_user(uuid4(), created_at=_epoch(2026, 3, 30))
    course = seed_course(lessons_per_chapter=(3,))
    seed_enrollment(student, course.id, now=_epoch(2026, 4, 5))

    resp = client.get(
        "/admin/dashboard/stats", params={"month": 4, "year": 2026}, headers=admin.headers
    )

    assert resp.status_code == 200
    body = resp.json()
    assert {k: body[k] for k in body if k != "stats_by_date"} == {
        "total_signups": 2,
        "total_customers": 1,
        "total_courses": 1,
        "total_lessons": 3,
        "recent_signups": 1,
    }
    assert len(body["stats_by_date"]) == 30
    assert body["stats_by_date"][1] == {"date": "2026-04-02", "signups": 1, "enrollments": 0}
    assert body["stats_by_date"][4] == {"date": "2026-04-05", "signups": 0, "enrollments": 1}


def test_dashboard_rejects_bad_month(client: TestClient, admin: Caller) -> None:
    resp = client.get("/admin/dashboard/stats", params={"month": 13}, headers=admin.headers)
    assert resp.status_code == 400


def test_recent_courses(client: TestClient, admin: Caller, mentor: Caller) -> None:
    for i in range(7):
        seed_course(slug=f"course-{i}", created_at=100 + i)

    default = client.get("/admin/courses/recent", headers=admin.headers)
    two = client.get("/admin/courses/recent", params={"limit": 2}, headers=admin.headers)

    assert [c["slug"] for c in default.json()] == [f"course-{i}" for i in (6, 5, 4, 3, 2)]
    assert [c["slug"] for c in two.json()] == ["course-6", "course-5"]
    assert client.get("/admin/courses/recent", headers=mentor.headers).status_code == 403
