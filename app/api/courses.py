"""Course catalogue endpoints.

Courses are addressed by UUID or slug on read routes (``course_ref``) so
links like /v1/courses/intro-to-python work; write routes take the UUID.
``/v1/courses/search`` is declared before ``/{course_ref}`` so "search" is
never read as a slug.  Lesson video keys are only returned to callers who
may watch them: staff, enrolled learners, and anyone for free-preview
lessons.
"""

from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from app.api.dependencies import CurrentUser, StoreDep, require_capability
from app.core.errors import NotFound
from app.models.course import Course
from app.models.principal import Principal
from app.services import course_service

router = APIRouter(prefix="/v1/courses", tags=["courses"])

ManageCourses = Annotated[Principal, Depends(require_capability("course:manage"))]


class LessonIn(BaseModel):
    title: str = Field(min_length=1)
    description: str = ""
    video_key: str | None = None
    thumbnail_key: str | None = None
    is_free_preview: bool = False
    lesson_type: str = "video"
    min_reviews_required: int = 2


class ChapterIn(BaseModel):
    title: str = Field(min_length=1)
    lessons: list[LessonIn] = []


class CourseIn(BaseModel):
    slug: str
    title: str
    price: int = 0
    level: str = "beginner"
    category: str = ""
    description: str = ""
    payment_price_id: str | None = None
    chapters: list[ChapterIn] = []


class CourseSummaryOut(BaseModel):
    id: UUID
    slug: str
    title: str
    price: int
    level: str
    category: str
    status: str
    description: str
    created_at: int


class LessonOut(BaseModel):
    id: UUID
    position: int
    title: str
    description: str
    video_key: str | None
    thumbnail_key: str | None
    is_free_preview: bool
    lesson_type: str
    min_reviews_required: int


class ChapterOut(BaseModel):
    id: UUID
    position: int
    title: str
    lessons: list[LessonOut]


class CourseOut(CourseSummaryOut):
    chapters: list[ChapterOut]


def summary_out(course: Course) -> CourseSummaryOut:
    return CourseSummaryOut(
        id=course.id,
        slug=course.slug,
        title=course.title,
        price=course.price,
        level=course.level,
        category=course.category,
        status=course.status,
        description=course.description,
        created_at=course.created_at,
    )


def course_out(course: Course, *, show_media: bool) -> CourseOut:
    return CourseOut(
        **summary_out(course).model_dump(),
        chapters=[
            ChapterOut(
                id=ch.id,
                position=ch.position,
                title=ch.title,
                lessons=[
                    LessonOut(
                        id=le.id,
                        position=le.position,
                        title=le.title,
                        description=le.description,
                        video_key=le.video_key
                        if show_media or le.is_free_preview
                        else None,
                        thumbnail_key=le.thumbnail_key,
                        is_free_preview=le.is_free_preview,
                        lesson_type=le.lesson_type,
                        min_reviews_required=le.min_reviews_required,
                    )
                    for le in ch.lessons
                ],
            )
            for ch in course.chapters
        ],
    )


@router.get("", response_model=list[CourseSummaryOut])
async def list_courses(
    _principal: CurrentUser,
    store: StoreDep,
) -> list[CourseSummaryOut]:
    return [summary_out(c) for c in await course_service.list_courses(store)]


@router.get("/search", response_model=list[CourseSummaryOut])
async def search_courses(
    _principal: CurrentUser,
    store: StoreDep,
    q: Annotated[str, Query(min_length=1)],
    category: str | None = None,
) -> list[CourseSummaryOut]:
    courses = await course_service.search_courses(store, q, category)
    return [summary_out(c) for c in courses]


@router.get("/{course_ref}", response_model=CourseOut)
async def get_course(
    course_ref: str,
    principal: CurrentUser,
    store: StoreDep,
) -> CourseOut:
    course = await course_service.resolve_course(store, course_ref)
    if principal.is_staff():
        return course_out(course, show_media=True)
    if not course.is_published:
        raise NotFound("Course not found")

    enrollment = await store.enrollments.get(principal.uid, course.id)
    return course_out(
        course, show_media=enrollment is not None and enrollment.is_active
    )


@router.post("", response_model=CourseOut, status_code=status.HTTP_201_CREATED)
async def create_course(
    body: CourseIn,
    principal: ManageCourses,
    store: StoreDep,
) -> CourseOut:
    course = await course_service.create_course(
        store,
        principal,
        slug=body.slug,
        title=body.title,
        price=body.price,
        level=body.level,
        category=body.category,
        description=body.description,
        payment_price_id=body.payment_price_id,
        chapters=[
            course_service.ChapterInput(
                title=ch.title,
                lessons=[
                    course_service.LessonInput(**le.model_dump()) for le in ch.lessons
                ],
            )
            for ch in body.chapters
        ],
    )
    return course_out(course, show_media=True)


@router.post("/{course_id}/publish", response_model=CourseSummaryOut)
async def publish_course(
    course_id: UUID,
    principal: ManageCourses,
    store: StoreDep,
) -> CourseSummaryOut:
    return summary_out(await course_service.publish_course(store, principal, course_id))
