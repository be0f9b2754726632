"""PostgreSQL implementation of QuizRepo.

Answers and per-question results are stored as JSON text on the attempt
row; question correct answers likewise, since they are either a string
or a boolean depending on the question type.
"""

from __future__ import annotations

import json
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.tables import QuizAttemptRow, QuizQuestionRow, QuizRow
from app.models.quiz import (
    IN_PROGRESS,
    SUBMITTED,
    Question,
    QuestionResult,
    Quiz,
    QuizAttempt,
)


class PgQuizRepo:
    """Satisfies the QuizRepo Protocol."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, quiz_id: UUID) -> Quiz | None:
        stmt = select(QuizRow).where(QuizRow.id == quiz_id)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_quiz(row, await self._questions([row.id]))

    async def add(self, quiz: Quiz) -> None:
        self._session.add(
            QuizRow(
                id=quiz.id,
                course_id=quiz.course_id,
                title=quiz.title,
                description=quiz.description,
                passing_score=quiz.passing_score,
                time_limit=quiz.time_limit,
                allowed_attempts=quiz.allowed_attempts,
                shuffle_questions=quiz.shuffle_questions,
                show_correct_answers=quiz.show_correct_answers,
                start_date=quiz.start_date,
                due_date=quiz.due_date,
                is_published=quiz.is_published,
                created_by=quiz.created_by,
            )
        )
        for position, q in enumerate(quiz.questions):
            self._session.add(
                QuizQuestionRow(
                    id=q.id,
                    quiz_id=quiz.id,
                    position=position,
                    type=q.type,
                    prompt=q.prompt,
                    options=list(q.options),
                    correct_answer_json=json.dumps(q.correct_answer),
                    explanation=q.explanation,
                    points=q.points,
                )
            )
        await self._session.flush()

    async def set_published(self, quiz_id: UUID, published: bool) -> Quiz | None:
        result = await self._session.execute(
            update(QuizRow).where(QuizRow.id == quiz_id).values(is_published=published)
        )
        if result.rowcount == 0:
            return None
        return await self.get(quiz_id)

    async def delete(self, quiz_id: UUID) -> bool:
        result = await self._session.execute(
            delete(QuizRow).where(QuizRow.id == quiz_id)
        )
        return result.rowcount > 0

    async def list_for_course(
        self, course_id: UUID, *, published_only: bool = True
    ) -> list[Quiz]:
        stmt = select(QuizRow).where(QuizRow.course_id == course_id)
        if published_only:
            stmt = stmt.where(QuizRow.is_published.is_(True))
        result = await self._session.execute(stmt.order_by(QuizRow.title))
        rows = result.scalars().all()
        questions = await self._questions([r.id for r in rows])
        return [_row_to_quiz(r, questions) for r in rows]

    async def count_submitted(self, user_id: UUID, quiz_id: UUID) -> int:
        stmt = select(func.count()).where(
            QuizAttemptRow.user_id == user_id,
            QuizAttemptRow.quiz_id == quiz_id,
            QuizAttemptRow.status == SUBMITTED,
        )
        return (await self._session.execute(stmt)).scalar_one()

    async def get_in_progress(self, user_id: UUID, quiz_id: UUID) -> QuizAttempt | None:
        stmt = (
            select(QuizAttemptRow)
            .where(
                QuizAttemptRow.user_id == user_id,
                QuizAttemptRow.quiz_id == quiz_id,
                QuizAttemptRow.status == IN_PROGRESS,
            )
            .order_by(QuizAttemptRow.attempt_number.desc())
            .limit(1)
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_attempt(row) if row is not None else None

    async def add_attempt(self, attempt: QuizAttempt) -> bool:
        stmt = (
            pg_insert(QuizAttemptRow)
            .values(
                id=attempt.id,
                user_id=attempt.user_id,
                quiz_id=attempt.quiz_id,
                attempt_number=attempt.attempt_number,
                status=attempt.status,
                answers_json="{}",
                results_json="[]",
                started_at=attempt.started_at,
            )
            .on_conflict_do_nothing(
                index_elements=[
                    QuizAttemptRow.user_id,
                    QuizAttemptRow.quiz_id,
                    QuizAttemptRow.attempt_number,
                ]
            )
        )
        result = await self._session.execute(stmt)
        return result.rowcount == 1

    async def get_attempt(self, attempt_id: UUID) -> QuizAttempt | None:
        stmt = select(QuizAttemptRow).where(QuizAttemptRow.id == attempt_id)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_attempt(row) if row is not None else None

    async def submit_attempt(self, scored: QuizAttempt) -> bool:
        stmt = (
            update(QuizAttemptRow)
            .where(
                QuizAttemptRow.id == scored.id,
                QuizAttemptRow.status == IN_PROGRESS,
            )
            .values(
                status=SUBMITTED,
                answers_json=json.dumps(scored.answers),
                results_json=json.dumps([_result_to_dict(r) for r in scored.results]),
                score=scored.score,
                total_points=scored.total_points,
                percentage=scored.percentage,
                passed=scored.passed,
                is_auto_submitted=scored.is_auto_submitted,
                submitted_at=scored.submitted_at,
                time_taken_seconds=scored.time_taken_seconds,
            )
        )
        result = await self._session.execute(stmt)
        return result.rowcount == 1

    async def list_attempts(self, user_id: UUID, quiz_id: UUID) -> list[QuizAttempt]:
        stmt = (
            select(QuizAttemptRow)
            .where(
                QuizAttemptRow.user_id == user_id,
                QuizAttemptRow.quiz_id == quiz_id,
                QuizAttemptRow.status == SUBMITTED,
            )
            .order_by(QuizAttemptRow.attempt_number.desc())
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_attempt(r) for r in rows]

    async def list_submitted_for_quiz(self, quiz_id: UUID) -> list[QuizAttempt]:
        stmt = select(QuizAttemptRow).where(
            QuizAttemptRow.quiz_id == quiz_id,
            QuizAttemptRow.status == SUBMITTED,
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_attempt(r) for r in rows]

    async def _questions(self, quiz_ids: list[UUID]) -> dict[UUID, list[Question]]:
        by_quiz: dict[UUID, list[Question]] = {qid: [] for qid in quiz_ids}
        if not quiz_ids:
            return by_quiz
        stmt = (
            select(QuizQuestionRow)
            .where(QuizQuestionRow.quiz_id.in_(quiz_ids))
            .order_by(QuizQuestionRow.position)
        )
        for r in (await self._session.execute(stmt)).scalars().all():
            by_quiz[r.quiz_id].append(
                Question(
                    id=r.id,
                    type=r.type,
                    prompt=r.prompt,
                    correct_answer=json.loads(r.correct_answer_json),
                    options=tuple(r.options or ()),
                    explanation=r.explanation or "",
                    points=r.points,
                )
            )
        return by_quiz


def _result_to_dict(r: QuestionResult) -> dict:
    return {
        "question_id": str(r.question_id),
        "is_correct": r.is_correct,
        "user_answer": r.user_answer,
        "points": r.points,
        "max_points": r.max_points,
    }


def _row_to_quiz(row: QuizRow, questions: dict[UUID, list[Question]]) -> Quiz:
    return Quiz(
        id=row.id,
        course_id=row.course_id,
        title=row.title,
        questions=tuple(questions.get(row.id, ())),
        description=row.description or "",
        passing_score=row.passing_score,
        time_limit=row.time_limit,
        allowed_attempts=row.allowed_attempts,
        shuffle_questions=row.shuffle_questions,
        show_correct_answers=row.show_correct_answers,
        start_date=row.start_date,
        due_date=row.due_date,
        is_published=row.is_published,
        created_by=row.created_by,
    )


def _row_to_attempt(row: QuizAttemptRow) -> QuizAttempt:
    return QuizAttempt(
        id=row.id,
        user_id=row.user_id,
        quiz_id=row.quiz_id,
        attempt_number=row.attempt_number,
        started_at=row.started_at,
        status=row.status,
        answers=json.loads(row.answers_json or "{}"),
        results=tuple(
            QuestionResult(
                question_id=UUID(r["question_id"]),
                is_correct=r["is_correct"],
                user_answer=r["user_answer"],
                points=r["points"],
                max_points=r["max_points"],
            )
            for r in json.loads(row.results_json or "[]")
        ),
        score=row.score,
        total_points=row.total_points,
        percentage=row.percentage,
        passed=row.passed,
        is_auto_submitted=row.is_auto_submitted,
        submitted_at=row.submitted_at,
        time_taken_seconds=row.time_taken_seconds,
    )
