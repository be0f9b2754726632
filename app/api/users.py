from __future__ import annotations

import logging
from uuid import UUID

from fastapi import APIRouter
from pydantic import BaseModel

from app.api.courses import CourseSummaryOut, summary_out
from app.api.dependencies import CurrentUser, StoreDep
from app.api.enrollments import EnrollmentOut, enrollment_out
from app.api.progress import CourseProgressOut, progress_out
from app.models.user import User
from app.services import progress_service, users_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/users", tags=["users"])


class UserOut(BaseModel):
    id: UUID
    email: str
    name: str
    role: str
    banned: bool
    created_at: int


class EnrolledCourseOut(BaseModel):
    course: CourseSummaryOut
    enrollment: EnrollmentOut
    progress: CourseProgressOut


def user_out(u: User) -> UserOut:
    return UserOut(
        id=u.id,
        email=u.email,
        name=u.name,
        role=u.role,
        banned=u.banned,
        created_at=u.created_at,
    )


@router.post("/me/sync", response_model=UserOut)
async def sync_me(principal: CurrentUser, store: StoreDep) -> UserOut:
    """Mirror the token's identity claims into the local user record."""
    return user_out(await users_service.sync_current_user(store, principal))


@router.get("/me/courses", response_model=list[EnrolledCourseOut])
async def my_courses(
    principal: CurrentUser, store: StoreDep
) -> list[EnrolledCourseOut]:
    rows = await progress_service.list_enrolled_courses(store, principal)
    logger.debug("Dashboard for user=%s courses=%d", principal.user_id, len(rows))
    return [
        EnrolledCourseOut(
            course=summary_out(course),
            enrollment=enrollment_out(enrollment),
            progress=progress_out(course, summary),
        )
        for course, enrollment, summary in rows
    ]
