"""Ungraded course activities and their per-user completion marks.

A completion is a row keyed by (user, activity).  Marking complete is an
insert that does nothing when the row exists, so double clicks and
retries leave exactly one row and the original timestamp.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import UUID

from app.core import clock
from app.core.errors import InvalidState, NotFound, ValidationError
from app.models.activity import ACTIVITY_TYPES, Activity, ActivityCompletion
from app.models.principal import Principal
from app.repos.store import Store
from app.services import course_service, enrollment_service

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ActivityView:
    activity: Activity
    is_completed: bool
    completed_at: int | None


def parse_activity_id(raw: str | None) -> UUID:
    if raw is None or not raw.strip():
        raise ValidationError("activity_id is required")
    try:
        return UUID(raw.strip())
    except ValueError:
        raise ValidationError("activity_id is not a valid id") from None


async def list_activities(store: Store, principal: Principal) -> list[ActivityView]:
    """Activities of every course the caller is actively enrolled in.

    Sorted by due date (undated last), then newest first.
    """
    enrollments = await store.enrollments.list_active_for_user(principal.uid)
    activities = await store.activities.list_for_courses(
        e.course_id for e in enrollments
    )
    completions = {
        c.activity_id: c
        for c in await store.activities.list_completions(
            principal.uid, (a.id for a in activities)
        )
    }

    views = [
        ActivityView(
            activity=a,
            is_completed=a.id in completions,
            completed_at=(
                completions[a.id].completed_at if a.id in completions else None
            ),
        )
        for a in activities
    ]
    views.sort(key=lambda v: -v.activity.created_at)
    views.sort(key=lambda v: (v.activity.due_date is None, v.activity.due_date or 0))
    return views


async def complete_activity(
    store: Store, principal: Principal, activity_id: str | None
) -> ActivityCompletion:
    aid = parse_activity_id(activity_id)

    if await store.users.get(principal.uid) is None:
        raise NotFound("User not found")
    activity = await store.activities.get(aid)
    if activity is None:
        raise NotFound("Activity not found")
    await enrollment_service.ensure_active_enrollment(
        store, principal, activity.course_id
    )

    completion = ActivityCompletion(
        user_id=principal.uid, activity_id=aid, completed_at=clock.now()
    )
    if await store.activities.add_completion_if_absent(completion):
        logger.info(
            "Activity %s completed by user=%s",
            aid,
            principal.user_id,
            extra={"course_id": str(activity.course_id)},
        )
        return completion

    existing = await store.activities.get_completion(principal.uid, aid)
    if existing is None:
        # uncompleted between the insert and the read
        raise InvalidState("Activity completion changed, please retry")
    logger.debug("Activity %s already completed by user=%s", aid, principal.user_id)
    return existing


async def uncomplete_activity(
    store: Store, principal: Principal, activity_id: str | None
) -> bool:
    aid = parse_activity_id(activity_id)
    removed = await store.activities.remove_completion(principal.uid, aid)
    if removed:
        logger.info("Activity %s marked incomplete by user=%s", aid, principal.user_id)
    return removed


async def create_activity(
    store: Store,
    principal: Principal,
    *,
    course_id: UUID,
    title: str,
    type: str = "assignment",
    description: str = "",
    start_date: int | None = None,
    due_date: int | None = None,
) -> Activity:
    title = title.strip()
    if not title:
        raise ValidationError("title must be non-empty")
    if type not in ACTIVITY_TYPES:
        raise ValidationError(f"type must be one of {', '.join(ACTIVITY_TYPES)}")
    if start_date is not None and due_date is not None and due_date < start_date:
        raise ValidationError("due_date must not be before start_date")
    course = await course_service.resolve_course(store, course_id)

    activity = Activity.new(
        course_id=course.id,
        title=title,
        now=clock.now(),
        type=type,
        description=description,
        start_date=start_date,
        due_date=due_date,
    )
    await store.activities.add(activity)
    logger.info(
        "Activity created id=%s by user=%s",
        activity.id,
        principal.user_id,
        extra={"course_id": str(course.id)},
    )
    return activity


async def list_course_activities(store: Store, course_id: UUID) -> list[Activity]:
    course = await course_service.resolve_course(store, course_id)
    return sorted(
        await store.activities.list_for_courses([course.id]),
        key=lambda a: a.created_at,
        reverse=True,
    )


async def delete_activity(
    store: Store, principal: Principal, activity_id: UUID
) -> None:
    if not await store.activities.delete(activity_id):
        raise NotFound("Activity not found")
    logger.info("Activity %s deleted by user=%s", activity_id, principal.user_id)
