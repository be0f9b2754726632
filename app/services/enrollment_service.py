"""Enrollment and payment reconciliation.

Lifecycle of one (user, course) row:

    (none) --enroll--> pending --verify / webhook paid--> active
                         |  ^
          webhook expired|  |enroll again
                         v  |
                      (deleted)          active --admin cancel--> cancelled

The checkout redirect and the provider webhook race each other to
activate.  Both go through ``_activate_from_session``, which only ever
moves pending -> active with a conditional write and treats an already
active row as success, so whichever arrives second is a no-op.
"""

from __future__ import annotations

import logging
from uuid import UUID

from app.core import clock
from app.core.config import SETTINGS
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
from app.core.metrics import ENROLLMENT_TRANSITIONS, RATE_LIMIT_HITS, UPSTREAM_FAILURES
from app.models.enrollment import ACTIVE, Enrollment
from app.models.principal import Principal
from app.repos.store import Store
from app.services import course_service, users_service
from app.services.payment_gateway import (
    CheckoutSession,
    PaymentError,
    SignatureError,
    construct_event,
    payment_gateway,
    session_from_json,
)
from app.services.rate_limiter import RateLimitConfig, rate_limiter

logger = logging.getLogger(__name__)

ENROLL_RATE_LIMIT = RateLimitConfig(
    limit=SETTINGS.enroll_rate_limit,
    window_seconds=SETTINGS.enroll_rate_window_seconds,
)


async def ensure_active_enrollment(
    store: Store, principal: Principal, course_id: UUID
) -> Enrollment:
    enrollment = await store.enrollments.get(principal.uid, course_id)
    if enrollment is None or not enrollment.is_active:
        logger.warning(
            "Access denied: user=%s not enrolled",
            principal.user_id,
            extra={"course_id": str(course_id)},
        )
        raise Forbidden("You are not enrolled in this course")
    return enrollment


async def enroll(
    store: Store, principal: Principal, course_ref: str
) -> tuple[Enrollment, str]:
    """Open a hosted checkout for a paid course.

    Returns the pending enrollment and the URL to redirect the learner to.
    """
    await _throttle(principal)

    course = await course_service.resolve_course(store, course_ref)
    existing = await store.enrollments.get(principal.uid, course.id)
    if existing is not None and existing.is_active:
        raise AlreadyEnrolled()
    if not course.payment_price_id:
        logger.warning(
            "Enroll rejected: course has no price id",
            extra={"course_id": str(course.id)},
        )
        raise NotConfigured()

    try:
        price = await payment_gateway.get_price(course.payment_price_id)
    except PaymentError as e:
        if e.status_code == 404:
            logger.error("Price %s missing at provider: %s", course.payment_price_id, e)
            raise NotConfigured() from None
        raise _upstream("get_price", e) from None

    if price.unit_amount < SETTINGS.min_course_price * 100:
        currency = price.currency or SETTINGS.payment_currency
        raise PriceTooLow(SETTINGS.min_course_price, currency)
    course_price = price.unit_amount // 100

    user = await users_service.ensure_user(store, principal)
    enrollment = await store.enrollments.upsert_pending(
        Enrollment.new(
            user_id=principal.uid,
            course_id=course.id,
            now=clock.now(),
            amount=course_price,
        )
    )
    if enrollment.is_active:
        raise AlreadyEnrolled()

    try:
        customer_id = user.payment_customer_id
        if not customer_id:
            customer_id = await payment_gateway.create_customer(
                email=user.email, name=user.name, user_id=principal.user_id
            )
            await store.users.set_payment_customer(principal.uid, customer_id)
        session = await payment_gateway.create_checkout_session(
            customer_id=customer_id,
            price_id=course.payment_price_id,
            metadata={
                "user_id": principal.user_id,
                "course_id": str(course.id),
                "enrollment_id": str(enrollment.id),
                "course_price": str(course_price),
            },
            success_url=(
                f"{SETTINGS.app_url}/payment/success"
                "?session_id={CHECKOUT_SESSION_ID}"
            ),
            cancel_url=f"{SETTINGS.app_url}/courses/{course.slug}?payment=cancelled",
        )
    except PaymentError as e:
        raise _upstream("create_checkout_session", e) from None

    ENROLLMENT_TRANSITIONS.labels(status="pending").inc()
    logger.info(
        "Checkout opened session=%s user=%s",
        session.id,
        principal.user_id,
        extra={"course_id": str(course.id), "enrollment_id": str(enrollment.id)},
    )
    return enrollment, session.url or ""


async def enroll_free(
    store: Store, principal: Principal, course_ref: str
) -> Enrollment:
    course = await course_service.resolve_course(store, course_ref)
    if course.price != 0:
        raise ValidationError("This course is not free")

    await users_service.ensure_user(store, principal)
    now = clock.now()
    pending = await store.enrollments.upsert_pending(
        Enrollment.new(user_id=principal.uid, course_id=course.id, now=now)
    )
    if pending.is_active:
        raise AlreadyEnrolled()

    activated = await store.enrollments.activate(
        principal.uid, course.id, amount=0, payment_reference=None, now=now
    )
    if activated is None:
        # a concurrent request activated it between our two writes
        raise AlreadyEnrolled()
    ENROLLMENT_TRANSITIONS.labels(status=ACTIVE).inc()
    logger.info(
        "Free enrollment user=%s",
        principal.user_id,
        extra={"course_id": str(course.id), "enrollment_id": str(activated.id)},
    )
    return activated


async def verify(store: Store, principal: Principal, session_id: str) -> Enrollment:
    """Confirm a checkout after the redirect back from the provider."""
    session_id = session_id.strip()
    if not session_id:
        raise ValidationError("session_id is required")

    try:
        session = await payment_gateway.retrieve_checkout_session(session_id)
    except PaymentError as e:
        if e.status_code == 404:
            raise NotFound("Checkout session not found") from None
        raise _upstream("retrieve_checkout_session", e) from None

    if not session.is_paid:
        raise InvalidState("Payment has not been completed")
    if session.metadata.get("user_id") != principal.user_id:
        logger.warning(
            "Verify rejected: session=%s belongs to another user, caller=%s",
            session.id,
            principal.user_id,
        )
        raise Forbidden("This checkout session belongs to another user")

    return await _activate_from_session(store, session)


async def handle_webhook(
    store: Store, payload: bytes, signature: str | None, *, secret: str | None
) -> str:
    """Process one provider event; returns the event type."""
    if not secret:
        raise NotConfigured("Webhook secret is not configured")
    if not signature:
        raise ValidationError("Missing webhook signature")
    try:
        event = construct_event(payload, signature, secret)
    except SignatureError as e:
        logger.warning("Webhook rejected: %s", e)
        raise ValidationError("Invalid webhook signature") from None

    event_type = str(event.get("type", ""))
    obj = (event.get("data") or {}).get("object") or {}

    if event_type == "checkout.session.completed":
        session = session_from_json(obj)
        if session.is_paid:
            try:
                await _activate_from_session(store, session)
            except InvalidState as e:
                logger.warning("Webhook session=%s not applied: %s", session.id, e)
        else:
            await _drop_pending(store, session)
    elif event_type == "checkout.session.expired":
        await _drop_pending(store, session_from_json(obj))
    else:
        logger.info("Ignoring webhook event type=%s", event_type)
    return event_type


async def is_enrolled(
    store: Store, principal: Principal, course_ref: str
) -> Enrollment | None:
    course = await course_service.resolve_course(store, course_ref)
    return await store.enrollments.get(principal.uid, course.id)


async def cancel_enrollment(
    store: Store, principal: Principal, enrollment_id: UUID
) -> Enrollment:
    enrollment = await store.enrollments.cancel(enrollment_id, clock.now())
    if enrollment is None:
        raise NotFound("Enrollment not found")
    ENROLLMENT_TRANSITIONS.labels(status="cancelled").inc()
    logger.info(
        "Enrollment cancelled by admin=%s",
        principal.user_id,
        extra={"enrollment_id": str(enrollment_id)},
    )
    return enrollment


async def enrollment_stats(store: Store) -> dict[str, int]:
    counts = await store.enrollments.count_by_status()
    stats = {s: counts.get(s, 0) for s in ("active", "pending", "cancelled")}
    return {"total": sum(counts.values()), **stats}


# ---------------------------------------------------------------------------
# internals
# ---------------------------------------------------------------------------


async def _throttle(principal: Principal) -> None:
    result = await rate_limiter.check(f"enroll:{principal.user_id}", ENROLL_RATE_LIMIT)
    if not result.allowed:
        RATE_LIMIT_HITS.labels(scope="enroll").inc()
        logger.warning("Enroll rate limit exceeded user=%s", principal.user_id)
        raise RateLimited(
            result.retry_after,
            "Too many enrollment attempts. Please try again later.",
        )


def _session_ids(session: CheckoutSession) -> tuple[UUID, UUID]:
    try:
        return UUID(session.metadata["user_id"]), UUID(session.metadata["course_id"])
    except (KeyError, ValueError):
        raise ValidationError("Checkout session metadata is incomplete") from None


async def _activate_from_session(store: Store, session: CheckoutSession) -> Enrollment:
    user_id, course_id = _session_ids(session)
    try:
        amount = int(float(session.metadata.get("course_price") or 0))
    except ValueError:
        amount = 0
    now = clock.now()
    log_extra = {"course_id": str(course_id)}

    activated = await store.enrollments.activate(
        user_id, course_id, amount=amount, payment_reference=session.id, now=now
    )
    if activated is not None:
        ENROLLMENT_TRANSITIONS.labels(status=ACTIVE).inc()
        logger.info(
            "Enrollment activated session=%s user=%s",
            session.id,
            user_id,
            extra=log_extra,
        )
        return activated

    existing = await store.enrollments.get(user_id, course_id)
    if existing is None:
        fresh = Enrollment.new(
            user_id=user_id,
            course_id=course_id,
            now=now,
            status=ACTIVE,
            amount=amount,
            payment_reference=session.id,
        )
        if await store.enrollments.insert_if_absent(fresh):
            ENROLLMENT_TRANSITIONS.labels(status=ACTIVE).inc()
            logger.info(
                "Enrollment created active session=%s user=%s",
                session.id,
                user_id,
                extra=log_extra,
            )
            return fresh
        existing = await store.enrollments.get(user_id, course_id)

    if existing is not None and existing.is_active:
        return existing
    raise InvalidState("Enrollment cannot be activated from its current state")


async def _drop_pending(store: Store, session: CheckoutSession) -> None:
    user_id, course_id = _session_ids(session)
    if await store.enrollments.delete_pending(user_id, course_id):
        ENROLLMENT_TRANSITIONS.labels(status="deleted").inc()
        logger.info(
            "Pending enrollment dropped session=%s user=%s",
            session.id,
            user_id,
            extra={"course_id": str(course_id)},
        )


def _upstream(operation: str, error: PaymentError) -> UpstreamFailure:
    UPSTREAM_FAILURES.labels(provider="stripe").inc()
    logger.error("Stripe %s failed: %s", operation, error)
    return UpstreamFailure(
        "stripe", "Payment provider unavailable. Please try again later."
    )
