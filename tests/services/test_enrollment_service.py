from __future__ import annotations

import asyncio
import json
import time
from uuid import uuid4

import pytest
from prometheus_client import REGISTRY

from app.core.errors import (
    AlreadyEnrolled,
    Forbidden,
    InvalidState,
    NotConfigured,
    NotFound,
    PriceTooLow,
    RateLimited,
    UpstreamFailure,
    ValidationError,
)
from app.models.enrollment import ACTIVE, CANCELLED, PENDING
from app.models.principal import Principal
from app.repos.store import memory_store
from app.services import enrollment_service
from app.services.payment_gateway import (
    CheckoutSession,
    payment_gateway,
    webhook_signature_header,
)
from tests.conftest import seed_course, seed_enrollment

SECRET = "whsec_test"


def _principal() -> Principal:
    return Principal(user_id=str(uuid4()), email="buyer@example.com", name="Buyer")


def _paid_course(slug: str = "paid-course", amount: int = 49_900):
    payment_gateway.set_price("price_123", amount)
    return seed_course(slug=slug, price=amount // 100, payment_price_id="price_123")


def _get(user: Principal, course_id):
    return asyncio.run(memory_store.enrollments.get(user.uid, course_id))


def _webhook(event_type: str, session) -> tuple[bytes, str]:
    payload = json.dumps(
        {
            "type": event_type,
            "data": {
                "object": {
                    "id": session.id,
                    "status": session.status,
                    "payment_status": session.payment_status,
                    "metadata": session.metadata,
                }
            },
        }
    ).encode()
    return payload, webhook_signature_header(payload, SECRET, int(time.time()))


# ---- enroll ----


def test_enroll_opens_checkout_with_pending_row() -> None:
    course = _paid_course()
    user = _principal()

    enrollment, url = asyncio.run(enrollment_service.enroll(memory_store, user, course.slug))

    assert enrollment.status == PENDING
    assert enrollment.amount == 499
    assert url.startswith("https://checkout.test/pay/cs_test_")
    session = next(iter(payment_gateway.sessions.values()))
    assert session.metadata["user_id"] == user.user_id
    assert session.metadata["course_id"] == str(course.id)
    assert session.metadata["enrollment_id"] == str(enrollment.id)
    assert session.metadata["course_price"] == "499"


def test_enroll_reuses_payment_customer() -> None:
    course = _paid_course()
    user = _principal()
    asyncio.run(enrollment_service.enroll(memory_store, user, course.slug))
    asyncio.run(enrollment_service.enroll(memory_store, user, course.slug))
    assert len(payment_gateway.customers) == 1


def test_repeat_enroll_keeps_single_pending_row() -> None:
    course = _paid_course()
    user = _principal()
    first, _ = asyncio.run(enrollment_service.enroll(memory_store, user, course.slug))
    second, _ = asyncio.run(enrollment_service.enroll(memory_store, user, course.slug))
    assert first.id == second.id
    counts = asyncio.run(memory_store.enrollments.count_by_status())
    assert counts == {PENDING: 1}


def test_enroll_when_active_is_already_enrolled() -> None:
    course = _paid_course()
    user = _principal()
    seed_enrollment(user.uid, course.id)
    with pytest.raises(AlreadyEnrolled):
        asyncio.run(enrollment_service.enroll(memory_store, user, course.slug))


def test_enroll_without_price_id_is_not_configured() -> None:
    course = seed_course(price=499, payment_price_id=None)
    with pytest.raises(NotConfigured):
        asyncio.run(enrollment_service.enroll(memory_store, _principal(), course.slug))


def test_enroll_with_price_missing_at_provider_is_not_configured() -> None:
    course = seed_course(price=499, payment_price_id="price_gone")
    with pytest.raises(NotConfigured):
        asyncio.run(enrollment_service.enroll(memory_store, _principal(), course.slug))


def test_enroll_below_minimum_price_is_rejected() -> None:
    course = _paid_course(amount=4_999)  # 49.99 < 50
    with pytest.raises(PriceTooLow, match="at least 50 INR"):
        asyncio.run(enrollment_service.enroll(memory_store, _principal(), course.slug))
    assert payment_gateway.sessions == {}


def test_enroll_unknown_course_is_not_found() -> None:
    with pytest.raises(NotFound):
        asyncio.run(enrollment_service.enroll(memory_store, _principal(), "nope"))


def test_provider_outage_is_upstream_failure() -> None:
    course = _paid_course()
    payment_gateway.outage = True
    before = REGISTRY.get_sample_value("upstream_failures_total", {"provider": "stripe"}) or 0.0

    with pytest.raises(UpstreamFailure):
        asyncio.run(enrollment_service.enroll(memory_store, _principal(), course.slug))

    after = REGISTRY.get_sample_value("upstream_failures_total", {"provider": "stripe"})
    assert after == before + 1


def test_enroll_is_rate_limited_per_user() -> None:
    course = _paid_course()
    user = _principal()
    limit = enrollment_service.ENROLL_RATE_LIMIT.limit

    async def scenario():
        for _ in range(limit):
            await enrollment_service.enroll(memory_store, user, course.slug)
        await enrollment_service.enroll(memory_store, user, course.slug)

    with pytest.raises(RateLimited) as exc:
        asyncio.run(scenario())
    assert exc.value.retry_after > 0

    # another user still has a fresh window
    asyncio.run(enrollment_service.enroll(memory_store, _principal(), course.slug))


# ---- free ----


def test_enroll_free_activates_immediately() -> None:
    course = seed_course(price=0)
    user = _principal()
    enrollment = asyncio.run(enrollment_service.enroll_free(memory_store, user, course.slug))
    assert enrollment.status == ACTIVE
    assert enrollment.amount == 0
    with pytest.raises(AlreadyEnrolled):
        asyncio.run(enrollment_service.enroll_free(memory_store, user, course.slug))


def test_enroll_free_rejects_paid_course() -> None:
    course = _paid_course()
    with pytest.raises(ValidationError, match="not free"):
        asyncio.run(enrollment_service.enroll_free(memory_store, _principal(), course.slug))


# ---- verify ----


def _checkout(user: Principal, course):
    asyncio.run(enrollment_service.enroll(memory_store, user, course.slug))
    return next(iter(payment_gateway.sessions.values()))


def test_verify_unpaid_session_is_invalid_state() -> None:
    course = _paid_course()
    user = _principal()
    session = _checkout(user, course)
    with pytest.raises(InvalidState, match="not been completed"):
        asyncio.run(enrollment_service.verify(memory_store, user, session.id))
    assert _get(user, course.id).status == PENDING


def test_verify_paid_session_activates_and_is_idempotent() -> None:
    course = _paid_course()
    user = _principal()
    session = _checkout(user, course)
    payment_gateway.complete_session(session.id)

    first = asyncio.run(enrollment_service.verify(memory_store, user, session.id))
    second = asyncio.run(enrollment_service.verify(memory_store, user, session.id))

    assert first.status == second.status == ACTIVE
    assert first.id == second.id
    assert first.payment_reference == session.id
    assert first.amount == 499


def test_verify_someone_elses_session_is_forbidden() -> None:
    course = _paid_course()
    owner = _principal()
    session = _checkout(owner, course)
    payment_gateway.complete_session(session.id)
    with pytest.raises(Forbidden):
        asyncio.run(enrollment_service.verify(memory_store, _principal(), session.id))


def test_verify_unknown_or_blank_session() -> None:
    user = _principal()
    with pytest.raises(NotFound):
        asyncio.run(enrollment_service.verify(memory_store, user, "cs_missing"))
    with pytest.raises(ValidationError):
        asyncio.run(enrollment_service.verify(memory_store, user, "  "))


def test_verify_recreates_row_dropped_by_expiry() -> None:
    course = _paid_course()
    user = _principal()
    session = _checkout(user, course)
    asyncio.run(memory_store.enrollments.delete_pending(user.uid, course.id))
    payment_gateway.complete_session(session.id)

    enrollment = asyncio.run(enrollment_service.verify(memory_store, user, session.id))
    assert enrollment.status == ACTIVE


def test_verify_does_not_reactivate_cancelled() -> None:
    course = _paid_course()
    user = _principal()
    session = _checkout(user, course)
    payment_gateway.complete_session(session.id)
    first = asyncio.run(enrollment_service.verify(memory_store, user, session.id))
    asyncio.run(
        enrollment_service.cancel_enrollment(memory_store, _principal(), first.id)
    )
    with pytest.raises(InvalidState):
        asyncio.run(enrollment_service.verify(memory_store, user, session.id))
    assert _get(user, course.id).status == CANCELLED


# ---- webhook ----


def test_webhook_completed_activates() -> None:
    course = _paid_course()
    user = _principal()
    session = payment_gateway.complete_session(_checkout(user, course).id)
    payload, sig = _webhook("checkout.session.completed", session)

    event_type = asyncio.run(
        enrollment_service.handle_webhook(memory_store, payload, sig, secret=SECRET)
    )

    assert event_type == "checkout.session.completed"
    assert _get(user, course.id).status == ACTIVE


def test_webhook_and_verify_race_activates_once() -> None:
    course = _paid_course()
    user = _principal()
    session = payment_gateway.complete_session(_checkout(user, course).id)
    payload, sig = _webhook("checkout.session.completed", session)
    before = REGISTRY.get_sample_value("enrollment_transitions_total", {"status": "active"}) or 0.0

    async def race():
        return await asyncio.gather(
            enrollment_service.verify(memory_store, user, session.id),
            enrollment_service.handle_webhook(memory_store, payload, sig, secret=SECRET),
        )

    verified, _ = asyncio.run(race())
    again = asyncio.run(
        enrollment_service.handle_webhook(memory_store, payload, sig, secret=SECRET)
    )

    after = REGISTRY.get_sample_value("enrollment_transitions_total", {"status": "active"})
    assert verified.status == ACTIVE
    assert again == "checkout.session.completed"
    assert after == before + 1
    assert asyncio.run(memory_store.enrollments.count_by_status()) == {ACTIVE: 1}


def test_webhook_expired_drops_pending_only() -> None:
    course = _paid_course()
    user = _principal()
    session = payment_gateway.expire_session(_checkout(user, course).id)
    payload, sig = _webhook("checkout.session.expired", session)

    asyncio.run(
        enrollment_service.handle_webhook(memory_store, payload, sig, secret=SECRET)
    )
    assert _get(user, course.id) is None

    # an active row survives a late expiry event
    active_user = _principal()
    seed_enrollment(active_user.uid, course.id)
    late = CheckoutSession(
        id="cs_late",
        url=None,
        status="expired",
        payment_status="unpaid",
        metadata={"user_id": active_user.user_id, "course_id": str(course.id)},
    )
    payload, sig = _webhook("checkout.session.expired", late)
    asyncio.run(
        enrollment_service.handle_webhook(memory_store, payload, sig, secret=SECRET)
    )
    assert _get(active_user, course.id).status == ACTIVE


def test_webhook_rejects_bad_signature() -> None:
    course = _paid_course()
    session = payment_gateway.complete_session(_checkout(_principal(), course).id)
    payload, _ = _webhook("checkout.session.completed", session)
    with pytest.raises(ValidationError, match="Invalid webhook signature"):
        asyncio.run(
            enrollment_service.handle_webhook(
                memory_store, payload, "t=1,v1=deadbeef", secret=SECRET
            )
        )


def test_webhook_without_secret_is_not_configured() -> None:
    with pytest.raises(NotConfigured):
        asyncio.run(
            enrollment_service.handle_webhook(memory_store, b"{}", "t=1,v1=x", secret=None)
        )


def test_webhook_ignores_other_events() -> None:
    payload = json.dumps({"type": "invoice.paid", "data": {"object": {}}}).encode()
    sig = webhook_signature_header(payload, SECRET, int(time.time()))
    assert (
        asyncio.run(
            enrollment_service.handle_webhook(memory_store, payload, sig, secret=SECRET)
        )
        == "invoice.paid"
    )


# ---- admin ----


def test_cancel_and_stats() -> None:
    course = seed_course()
    a, b, c = _principal(), _principal(), _principal()
    active = seed_enrollment(a.uid, course.id)
    seed_enrollment(b.uid, course.id)
    seed_enrollment(c.uid, course.id, status=PENDING)

    cancelled = asyncio.run(
        enrollment_service.cancel_enrollment(memory_store, _principal(), active.id)
    )
    stats = asyncio.run(enrollment_service.enrollment_stats(memory_store))

    assert cancelled.status == CANCELLED
    assert stats == {"total": 3, "active": 1, "pending": 1, "cancelled": 1}


def test_cancel_unknown_enrollment_is_not_found() -> None:
    with pytest.raises(NotFound):
        asyncio.run(
            enrollment_service.cancel_enrollment(memory_store, _principal(), uuid4())
        )
