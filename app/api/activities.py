from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from app.api.dependencies import CurrentUser, StoreDep, require_capability
from app.api.ratelimit import require_rate_limit
from app.models.activity import Activity, ActivityCompletion
from app.models.principal import Principal
from app.services import activity_service

router = APIRouter(tags=["activities"])

ManageCourses = Annotated[Principal, Depends(require_capability("course:manage"))]


class ActivityIn(BaseModel):
    course_id: UUID
    title: str
    type: str = "assignment"
    description: str = ""
    start_date: int | None = None
    due_date: int | None = None


class ActivityOut(BaseModel):
    id: UUID
    course_id: UUID
    title: str
    type: str
    description: str
    start_date: int | None
    due_date: int | None
    created_at: int


class LearnerActivityOut(ActivityOut):
    is_completed: bool
    completed_at: int | None


class CompletionOut(BaseModel):
    activity_id: UUID
    completed_at: int


class CompleteOut(BaseModel):
    success: bool
    completion: CompletionOut


class UncompleteOut(BaseModel):
    success: bool
    removed: bool


def activity_out(a: Activity) -> ActivityOut:
    return ActivityOut(
        id=a.id,
        course_id=a.course_id,
        title=a.title,
        type=a.type,
        description=a.description,
        start_date=a.start_date,
        due_date=a.due_date,
        created_at=a.created_at,
    )


def completion_out(c: ActivityCompletion) -> CompletionOut:
    return CompletionOut(activity_id=c.activity_id, completed_at=c.completed_at)


# ---- learner ----


@router.get("/v1/activities", response_model=list[LearnerActivityOut])
async def list_activities(
    principal: CurrentUser,
    store: StoreDep,
) -> list[LearnerActivityOut]:
    views = await activity_service.list_activities(store, principal)
    return [
        LearnerActivityOut(
            **activity_out(v.activity).model_dump(),
            is_completed=v.is_completed,
            completed_at=v.completed_at,
        )
        for v in views
    ]


@router.post(
    "/v1/activities/{activity_id}/complete",
    response_model=CompleteOut,
    dependencies=[Depends(require_rate_limit())],
)
async def complete_activity(
    activity_id: str,
    principal: CurrentUser,
    store: StoreDep,
) -> CompleteOut:
    completion = await activity_service.complete_activity(store, principal, activity_id)
    return CompleteOut(success=True, completion=completion_out(completion))


@router.delete("/v1/activities/{activity_id}/complete", response_model=UncompleteOut)
async def uncomplete_activity(
    activity_id: str,
    principal: CurrentUser,
    store: StoreDep,
) -> UncompleteOut:
    removed = await activity_service.uncomplete_activity(store, principal, activity_id)
    return UncompleteOut(success=True, removed=removed)


# ---- staff ----


@router.post(
    "/v1/activities", response_model=ActivityOut, status_code=status.HTTP_201_CREATED
)
async def create_activity(
    body: ActivityIn,
    principal: ManageCourses,
    store: StoreDep,
) -> ActivityOut:
    activity = await activity_service.create_activity(
        store,
        principal,
        course_id=body.course_id,
        title=body.title,
        type=body.type,
        description=body.description,
        start_date=body.start_date,
        due_date=body.due_date,
    )
    return activity_out(activity)


@router.get("/v1/courses/{course_id}/activities", response_model=list[ActivityOut])
async def list_course_activities(
    course_id: UUID,
    _principal: ManageCourses,
    store: StoreDep,
) -> list[ActivityOut]:
    return [
        activity_out(a)
        for a in await activity_service.list_course_activities(store, course_id)
    ]


@router.delete(
    "/v1/activities/{activity_id}", status_code=status.HTTP_204_NO_CONTENT
)
async def delete_activity(
    activity_id: UUID,
    principal: ManageCourses,
    store: StoreDep,
) -> None:
    await activity_service.delete_activity(store, principal, activity_id)
