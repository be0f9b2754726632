"""Course catalogue: listing, lookup by id or slug, creation, publishing."""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass, field, replace
from uuid import UUID

from app.core import clock
from app.core.errors import AlreadyExists, NotFound, ValidationError
from app.models.course import LESSON_TYPES, Chapter, Course, Lesson
from app.models.principal import Principal
from app.repos.store import Store
from app.services import users_service

logger = logging.getLogger(__name__)

LEVELS = ("beginner", "intermediate", "advanced")
_SLUG_RE = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")


@dataclass(frozen=True, slots=True)
class LessonInput:
    title: str
    description: str = ""
    video_key: str | None = None
    thumbnail_key: str | None = None
    is_free_preview: bool = False
    lesson_type: str = "video"
    min_reviews_required: int = 2


@dataclass(frozen=True, slots=True)
class ChapterInput:
    title: str
    lessons: Sequence[LessonInput] = field(default=())


async def list_courses(store: Store) -> list[Course]:
    return await store.courses.list_published()


async def search_courses(
    store: Store, query: str, category: str | None = None
) -> list[Course]:
    """Published courses matching ``query`` in title, description or category."""
    query = query.strip()
    if not query:
        raise ValidationError("search query must be non-empty")
    return await store.courses.search_published(query, category or None)


async def resolve_course(store: Store, course_ref: str | UUID) -> Course:
    """Look a course up by UUID or, failing that, by slug."""
    if isinstance(course_ref, UUID):
        course = await store.courses.get(course_ref)
    else:
        try:
            course_id = UUID(course_ref)
        except ValueError:
            course = await store.courses.get_by_slug(course_ref)
        else:
            course = await store.courses.get(course_id)
    if course is None:
        raise NotFound("Course not found")
    return course


async def create_course(
    store: Store,
    principal: Principal,
    *,
    slug: str,
    title: str,
    price: int = 0,
    level: str = "beginner",
    category: str = "",
    description: str = "",
    payment_price_id: str | None = None,
    chapters: Sequence[ChapterInput] = (),
) -> Course:
    slug = slug.strip().lower()
    title = title.strip()
    if not _SLUG_RE.match(slug):
        raise ValidationError("slug must be lowercase words separated by hyphens")
    if not title:
        raise ValidationError("title must be non-empty")
    if price < 0:
        raise ValidationError("price must be >= 0")
    if level not in LEVELS:
        raise ValidationError(f"level must be one of {', '.join(LEVELS)}")
    for ch_in in chapters:
        for l_in in ch_in.lessons:
            _validate_lesson(l_in)

    await users_service.ensure_user(store, principal)

    course = Course.new(
        slug=slug,
        title=title,
        price=price,
        level=level,
        category=category.strip(),
        description=description.strip(),
        payment_price_id=payment_price_id or None,
        created_by=principal.uid,
        created_at=clock.now(),
    )
    built: list[Chapter] = []
    for ch_pos, ch_in in enumerate(chapters, start=1):
        chapter = Chapter.new(course_id=course.id, position=ch_pos, title=ch_in.title)
        lessons = tuple(
            Lesson.new(
                chapter_id=chapter.id,
                position=l_pos,
                title=l_in.title,
                description=l_in.description,
                video_key=l_in.video_key,
                thumbnail_key=l_in.thumbnail_key,
                is_free_preview=l_in.is_free_preview,
                lesson_type=l_in.lesson_type,
                min_reviews_required=l_in.min_reviews_required,
            )
            for l_pos, l_in in enumerate(ch_in.lessons, start=1)
        )
        built.append(replace(chapter, lessons=lessons))
    course = replace(course, chapters=tuple(built))

    try:
        await store.courses.add(course)
    except ValueError:
        logger.warning("Rejected duplicate course slug=%s", slug)
        raise AlreadyExists("A course with this slug already exists") from None

    logger.info(
        "Course created slug=%s chapters=%d by user=%s",
        slug,
        len(built),
        principal.user_id,
        extra={"course_id": str(course.id)},
    )
    return course


async def publish_course(store: Store, principal: Principal, course_id: UUID) -> Course:
    course = await store.courses.set_status(course_id, "published")
    if course is None:
        raise NotFound("Course not found")
    logger.info(
        "Course published by user=%s",
        principal.user_id,
        extra={"course_id": str(course_id)},
    )
    return course


def _validate_lesson(lesson: LessonInput) -> None:
    if lesson.lesson_type not in LESSON_TYPES:
        raise ValidationError(f"lesson_type must be one of {', '.join(LESSON_TYPES)}")
    if lesson.min_reviews_required < 0:
        raise ValidationError("min_reviews_required must be >= 0")
