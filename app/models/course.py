from __future__ import annotations

from dataclasses import dataclass, field
from uuid import UUID, uuid4

LESSON_TYPES = ("video", "text", "project")


@dataclass(frozen=True, slots=True)
class Lesson:
    id: UUID
    chapter_id: UUID
    position: int
    title: str
    description: str = ""
    video_key: str | None = None
    thumbnail_key: str | None = None
    is_free_preview: bool = False
    lesson_type: str = "video"  # video|text|project
    # project lessons complete once the learner has reviewed this many peers
    min_reviews_required: int = 2

    @staticmethod
    def new(
        *,
        chapter_id: UUID,
        position: int,
        title: str,
        description: str = "",
        video_key: str | None = None,
        thumbnail_key: str | None = None,
        is_free_preview: bool = False,
        lesson_type: str = "video",
        min_reviews_required: int = 2,
    ) -> Lesson:
        return Lesson(
            id=uuid4(),
            chapter_id=chapter_id,
            position=position,
            title=title,
            description=description,
            video_key=video_key,
            thumbnail_key=thumbnail_key,
            is_free_preview=is_free_preview,
            lesson_type=lesson_type,
            min_reviews_required=min_reviews_required,
        )

    @property
    def is_project(self) -> bool:
        return self.lesson_type == "project"


@dataclass(frozen=True, slots=True)
class Chapter:
    id: UUID
    course_id: UUID
    position: int
    title: str
    lessons: tuple[Lesson, ...] = ()

    @staticmethod
    def new(*, course_id: UUID, position: int, title: str) -> Chapter:
        return Chapter(id=uuid4(), course_id=course_id, position=position, title=title)


@dataclass(frozen=True, slots=True)
class Course:
    id: UUID
    slug: str
    title: str
    price: int = 0  # major currency units; 0 = free
    level: str = "beginner"  # beginner|intermediate|advanced
    category: str = ""
    status: str = "draft"  # draft|published
    payment_price_id: str | None = None
    created_by: UUID | None = None
    description: str = ""
    created_at: int = 0
    chapters: tuple[Chapter, ...] = field(default=())

    @staticmethod
    def new(
        *,
        slug: str,
        title: str,
        price: int = 0,
        level: str = "beginner",
        category: str = "",
        description: str = "",
        payment_price_id: str | None = None,
        created_by: UUID | None = None,
        created_at: int = 0,
    ) -> Course:
        return Course(
            id=uuid4(),
            slug=slug,
            title=title,
            price=price,
            level=level,
            category=category,
            payment_price_id=payment_price_id,
            created_by=created_by,
            description=description,
            created_at=created_at,
        )

    @property
    def is_published(self) -> bool:
        return self.status == "published"

    def lesson_ids(self) -> set[UUID]:
        return {lesson.id for chapter in self.chapters for lesson in chapter.lessons}

    def find_lesson(self, lesson_id: UUID) -> Lesson | None:
        for chapter in self.chapters:
            for lesson in chapter.lessons:
                if lesson.id == lesson_id:
                    return lesson
        return None
