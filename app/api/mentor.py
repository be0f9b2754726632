from __future__ import annotations

import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from app.api.courses import CourseSummaryOut, summary_out
from app.api.dependencies import StoreDep, require_capability
from app.models.principal import Principal
from app.services import dashboard_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/mentor", tags=["mentor"])

Mentor = Annotated[Principal, Depends(require_capability("course:manage"))]


class MentorStatsOut(BaseModel):
    course_count: int
    student_count: int
    total_revenue: int


class StudentOut(BaseModel):
    id: UUID
    name: str
    email: str


class StudentCourseOut(BaseModel):
    id: UUID
    title: str


class MentorStudentOut(BaseModel):
    enrollment_id: UUID
    student: StudentOut
    course: StudentCourseOut
    enrolled_at: int
    amount: int


@router.get("/dashboard/stats", response_model=MentorStatsOut)
async def mentor_stats(principal: Mentor, store: StoreDep) -> MentorStatsOut:
    stats = await dashboard_service.mentor_stats(store, principal)
    return MentorStatsOut(
        course_count=stats.course_count,
        student_count=stats.student_count,
        total_revenue=stats.total_revenue,
    )


@router.get("/courses", response_model=list[CourseSummaryOut])
async def mentor_courses(principal: Mentor, store: StoreDep) -> list[CourseSummaryOut]:
    return [
        summary_out(c) for c in await dashboard_service.mentor_courses(store, principal)
    ]


@router.get("/students", response_model=list[MentorStudentOut])
async def mentor_students(principal: Mentor, store: StoreDep) -> list[MentorStudentOut]:
    logger.info("Mentor student list requested by user=%s", principal.user_id)
    return [
        MentorStudentOut(
            enrollment_id=row.enrollment.id,
            student=StudentOut(
                id=row.enrollment.user_id,
                name=row.student.name if row.student else "",
                email=row.student.email if row.student else "",
            ),
            course=StudentCourseOut(id=row.course.id, title=row.course.title),
            enrolled_at=row.enrollment.created_at,
            amount=row.enrollment.amount,
        )
        for row in await dashboard_service.mentor_students(store, principal)
    ]
