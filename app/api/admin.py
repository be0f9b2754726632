from __future__ import annotations

import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from app.api.courses import CourseSummaryOut, summary_out
from app.api.dependencies import StoreDep, require_capability
from app.api.users import UserOut, user_out
from app.models.principal import Principal
from app.services import dashboard_service, users_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])

Admin = Annotated[Principal, Depends(require_capability("user:manage"))]


class RoleIn(BaseModel):
    role: str


class BanIn(BaseModel):
    banned: bool = True


class DayStatsOut(BaseModel):
    date: str
    signups: int
    enrollments: int


class DashboardStatsOut(BaseModel):
    total_signups: int
    total_customers: int
    total_courses: int
    total_lessons: int
    recent_signups: int
    stats_by_date: list[DayStatsOut]


@router.get("/users", response_model=list[UserOut])
async def admin_list_users(principal: Admin, store: StoreDep) -> list[UserOut]:
    logger.info("Admin user list requested by user=%s", principal.user_id)
    return [user_out(u) for u in await users_service.list_users(store)]


@router.patch("/users/{user_id}/role", response_model=UserOut)
async def admin_set_role(
    user_id: UUID,
    body: RoleIn,
    principal: Admin,
    store: StoreDep,
) -> UserOut:
    return user_out(await users_service.set_role(store, principal, user_id, body.role))


@router.patch("/users/{user_id}/ban", response_model=UserOut)
async def admin_set_banned(
    user_id: UUID,
    body: BanIn,
    principal: Admin,
    store: StoreDep,
) -> UserOut:
    return user_out(
        await users_service.set_banned(store, principal, user_id, body.banned)
    )


@router.get("/dashboard/stats", response_model=DashboardStatsOut)
async def admin_dashboard_stats(
    principal: Admin,
    store: StoreDep,
    month: int | None = None,
    year: int | None = None,
) -> DashboardStatsOut:
    logger.info(
        "Admin dashboard stats requested by user=%s month=%s year=%s",
        principal.user_id,
        month,
        year,
    )
    stats = await dashboard_service.admin_stats(store, month, year)
    return DashboardStatsOut(
        total_signups=stats.total_signups,
        total_customers=stats.total_customers,
        total_courses=stats.total_courses,
        total_lessons=stats.total_lessons,
        recent_signups=stats.recent_signups,
        stats_by_date=[
            DayStatsOut(date=d.date, signups=d.signups, enrollments=d.enrollments)
            for d in stats.by_date
        ],
    )


@router.get("/courses/recent", response_model=list[CourseSummaryOut])
async def admin_recent_courses(
    _principal: Admin,
    store: StoreDep,
    limit: int = 5,
) -> list[CourseSummaryOut]:
    return [summary_out(c) for c in await dashboard_service.recent_courses(store, limit)]
