"""PostgreSQL implementation of CourseRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.tables import ChapterRow, CourseRow, LessonRow
from app.models.course import Chapter, Course, Lesson


class PgCourseRepo:
    """Satisfies the CourseRepo Protocol.

    A course is assembled from three tables: the course row, its chapters
    and their lessons, each ordered by position.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, course_id: UUID) -> Course | None:
        stmt = select(CourseRow).where(CourseRow.id == course_id)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return await self._with_tree(row)

    async def get_by_slug(self, slug: str) -> Course | None:
        stmt = select(CourseRow).where(CourseRow.slug == slug)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return await self._with_tree(row)

    async def list_published(self) -> list[Course]:
        stmt = (
            select(CourseRow)
            .where(CourseRow.status == "published")
            .order_by(CourseRow.title)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_course(r) for r in rows]

    async def list_by_creator(self, user_id: UUID) -> list[Course]:
        stmt = (
            select(CourseRow)
            .where(CourseRow.created_by == user_id)
            .order_by(CourseRow.created_at.desc())
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_course(r) for r in rows]

    async def list_recent(self, limit: int) -> list[Course]:
        stmt = select(CourseRow).order_by(CourseRow.created_at.desc()).limit(limit)
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_course(r) for r in rows]

    async def search_published(
        self, query: str, category: str | None = None
    ) -> list[Course]:
        stmt = search_statement(query, category)
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_course(r) for r in rows]

    async def count_lessons(self) -> int:
        stmt = select(func.count()).select_from(LessonRow)
        return (await self._session.execute(stmt)).scalar_one()

    async def add(self, course: Course) -> None:
        self._session.add(
            CourseRow(
                id=course.id,
                slug=course.slug,
                title=course.title,
                price=course.price,
                level=course.level,
                category=course.category,
                description=course.description,
                status=course.status,
                payment_price_id=course.payment_price_id,
                created_by=course.created_by,
                created_at=course.created_at,
            )
        )
        for chapter in course.chapters:
            self._session.add(
                ChapterRow(
                    id=chapter.id,
                    course_id=course.id,
                    position=chapter.position,
                    title=chapter.title,
                )
            )
            for lesson in chapter.lessons:
                self._session.add(
                    LessonRow(
                        id=lesson.id,
                        chapter_id=chapter.id,
                        position=lesson.position,
                        title=lesson.title,
                        description=lesson.description,
                        video_key=lesson.video_key,
                        thumbnail_key=lesson.thumbnail_key,
                        is_free_preview=lesson.is_free_preview,
                        lesson_type=lesson.lesson_type,
                        min_reviews_required=lesson.min_reviews_required,
                    )
                )
        try:
            await self._session.flush()
        except IntegrityError:
            raise ValueError("slug already exists") from None

    async def set_status(self, course_id: UUID, status: str) -> Course | None:
        stmt = update(CourseRow).where(CourseRow.id == course_id).values(status=status)
        result = await self._session.execute(stmt)
        if result.rowcount == 0:
            return None
        return await self.get(course_id)

    async def course_id_for_lesson(self, lesson_id: UUID) -> UUID | None:
        stmt = (
            select(ChapterRow.course_id)
            .join(LessonRow, LessonRow.chapter_id == ChapterRow.id)
            .where(LessonRow.id == lesson_id)
        )
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def _with_tree(self, row: CourseRow) -> Course:
        chapter_rows = (
            (
                await self._session.execute(
                    select(ChapterRow)
                    .where(ChapterRow.course_id == row.id)
                    .order_by(ChapterRow.position)
                )
            )
            .scalars()
            .all()
        )
        lessons_by_chapter: dict[UUID, list[Lesson]] = {c.id: [] for c in chapter_rows}
        if chapter_rows:
            lesson_rows = (
                (
                    await self._session.execute(
                        select(LessonRow)
                        .where(LessonRow.chapter_id.in_(list(lessons_by_chapter)))
                        .order_by(LessonRow.position)
                    )
                )
                .scalars()
                .all()
            )
            for lr in lesson_rows:
                lessons_by_chapter[lr.chapter_id].append(_row_to_lesson(lr))

        chapters = tuple(
            Chapter(
                id=c.id,
                course_id=c.course_id,
                position=c.position,
                title=c.title,
                lessons=tuple(lessons_by_chapter[c.id]),
            )
            for c in chapter_rows
        )
        return _row_to_course(row, chapters)


def _row_to_lesson(row: LessonRow) -> Lesson:
    return Lesson(
        id=row.id,
        chapter_id=row.chapter_id,
        position=row.position,
        title=row.title,
        description=row.description or "",
        video_key=row.video_key,
        thumbnail_key=row.thumbnail_key,
        is_free_preview=row.is_free_preview,
        lesson_type=row.lesson_type,
        min_reviews_required=row.min_reviews_required,
    )


def _row_to_course(row: CourseRow, chapters: tuple[Chapter, ...] = ()) -> Course:
    return Course(
        id=row.id,
        slug=row.slug,
        title=row.title,
        price=row.price,
        level=row.level,
        category=row.category or "",
        status=row.status,
        payment_price_id=row.payment_price_id,
        created_by=row.created_by,
        description=row.description or "",
        created_at=row.created_at,
        chapters=chapters,
    )


def search_statement(query: str, category: str | None = None):
    """Published courses whose title, description or category contains ``query``."""
    pattern = f"%{query}%"
    stmt = select(CourseRow).where(
        CourseRow.status == "published",
        or_(
            CourseRow.title.ilike(pattern),
            CourseRow.description.ilike(pattern),
            CourseRow.category.ilike(pattern),
        ),
    )
    if category is not None:
        stmt = stmt.where(CourseRow.category == category)
    return stmt.order_by(CourseRow.created_at.desc())
