"""Enrollment endpoints: paid checkout, free enrollment, verification.

  POST /v1/enrollments           open a checkout, 201 {enrollment, redirect_url}
  POST /v1/enrollments/free      enroll in a free course
  POST /v1/enrollments/verify    confirm a checkout after the redirect back
  GET  /v1/enrollments/check/x   {enrolled, status} for one course
  GET  /v1/enrollments/stats     counts by status (admin)
  POST /v1/enrollments/{id}/cancel   revoke (admin)
"""

from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from app.api.dependencies import CurrentUser, StoreDep, require_capability
from app.models.enrollment import Enrollment
from app.models.principal import Principal
from app.services import enrollment_service

router = APIRouter(prefix="/v1/enrollments", tags=["enrollments"])

ManageEnrollments = Annotated[
    Principal, Depends(require_capability("enrollment:manage"))
]


class EnrollIn(BaseModel):
    course_id: str  # UUID or slug


class VerifyIn(BaseModel):
    session_id: str


class EnrollmentOut(BaseModel):
    id: UUID
    user_id: UUID
    course_id: UUID
    status: str
    amount: int
    created_at: int
    updated_at: int


class CheckoutOut(BaseModel):
    enrollment: EnrollmentOut
    redirect_url: str


class EnrollmentCheckOut(BaseModel):
    enrolled: bool
    status: str | None


class EnrollmentStatsOut(BaseModel):
    total: int
    active: int
    pending: int
    cancelled: int


def enrollment_out(e: Enrollment) -> EnrollmentOut:
    return EnrollmentOut(
        id=e.id,
        user_id=e.user_id,
        course_id=e.course_id,
        status=e.status,
        amount=e.amount,
        created_at=e.created_at,
        updated_at=e.updated_at,
    )


@router.post("", response_model=CheckoutOut, status_code=status.HTTP_201_CREATED)
async def enroll(
    body: EnrollIn,
    principal: CurrentUser,
    store: StoreDep,
) -> CheckoutOut:
    enrollment, redirect_url = await enrollment_service.enroll(
        store, principal, body.course_id
    )
    return CheckoutOut(enrollment=enrollment_out(enrollment), redirect_url=redirect_url)


@router.post(
    "/free", response_model=EnrollmentOut, status_code=status.HTTP_201_CREATED
)
async def enroll_free(
    body: EnrollIn,
    principal: CurrentUser,
    store: StoreDep,
) -> EnrollmentOut:
    return enrollment_out(
        await enrollment_service.enroll_free(store, principal, body.course_id)
    )


@router.post("/verify", response_model=EnrollmentOut)
async def verify(
    body: VerifyIn,
    principal: CurrentUser,
    store: StoreDep,
) -> EnrollmentOut:
    return enrollment_out(
        await enrollment_service.verify(store, principal, body.session_id)
    )


@router.get("/check/{course_ref}", response_model=EnrollmentCheckOut)
async def check(
    course_ref: str,
    principal: CurrentUser,
    store: StoreDep,
) -> EnrollmentCheckOut:
    enrollment = await enrollment_service.is_enrolled(store, principal, course_ref)
    return EnrollmentCheckOut(
        enrolled=enrollment is not None and enrollment.is_active,
        status=enrollment.status if enrollment else None,
    )


@router.get("/stats", response_model=EnrollmentStatsOut)
async def stats(
    _principal: ManageEnrollments,
    store: StoreDep,
) -> EnrollmentStatsOut:
    return EnrollmentStatsOut(**await enrollment_service.enrollment_stats(store))


@router.post("/{enrollment_id}/cancel", response_model=EnrollmentOut)
async def cancel(
    enrollment_id: UUID,
    principal: ManageEnrollments,
    store: StoreDep,
) -> EnrollmentOut:
    return enrollment_out(
        await enrollment_service.cancel_enrollment(store, principal, enrollment_id)
    )
