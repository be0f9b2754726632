from __future__ import annotations

from fastapi.testclient import TestClient

from tests.conftest import Caller, auth, mint_token, seed_course, seed_enrollment


def test_sync_creates_user_from_token(client: TestClient, mentor: Caller) -> None:
    resp = client.post("/v1/users/me/sync", headers=mentor.headers)
    assert resp.status_code == 200
    body = resp.json()
    assert body["id"] == str(mentor.id)
    assert body["role"] == "mentor"
    assert body["banned"] is False


def test_sync_without_email_claim_is_400(client: TestClient) -> None:
    resp = client.post("/v1/users/me/sync", headers=auth(mint_token(email="")))
    assert resp.status_code == 400


def test_sync_requires_token(client: TestClient) -> None:
    resp = client.post("/v1/users/me/sync")
    assert resp.status_code == 401
    assert resp.headers["www-authenticate"] == "Bearer"


def test_my_courses_lists_active_enrollments_with_progress(
    client: TestClient, learner: Caller
) -> None:
    active = seed_course(slug="active", lessons_per_chapter=(2,))
    seed_course(slug="not-mine")
    seed_enrollment(learner.id, active.id)
    client.post(
        f"/v1/progress/lessons/{active.chapters[0].lessons[0].id}", headers=learner.headers
    )

    resp = client.get("/v1/users/me/courses", headers=learner.headers)

    assert resp.status_code == 200
    (row,) = resp.json()
    assert row["course"]["slug"] == "active"
    assert row["enrollment"]["status"] == "active"
    assert row["progress"]["progress_percentage"] == 50
