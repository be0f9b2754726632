from __future__ import annotations

from dataclasses import replace
from typing import Protocol
from uuid import UUID

from app.models.quiz import IN_PROGRESS, SUBMITTED, Quiz, QuizAttempt


class QuizRepo(Protocol):
    async def get(self, quiz_id: UUID) -> Quiz | None: ...
    async def add(self, quiz: Quiz) -> None: ...
    async def set_published(self, quiz_id: UUID, published: bool) -> Quiz | None: ...
    async def delete(self, quiz_id: UUID) -> bool: ...
    async def list_for_course(
        self, course_id: UUID, *, published_only: bool = True
    ) -> list[Quiz]: ...

    async def count_submitted(self, user_id: UUID, quiz_id: UUID) -> int: ...
    async def get_in_progress(
        self, user_id: UUID, quiz_id: UUID
    ) -> QuizAttempt | None: ...
    async def add_attempt(self, attempt: QuizAttempt) -> bool: ...
    async def get_attempt(self, attempt_id: UUID) -> QuizAttempt | None: ...
    async def submit_attempt(self, scored: QuizAttempt) -> bool: ...
    async def list_attempts(
        self, user_id: UUID, quiz_id: UUID
    ) -> list[QuizAttempt]: ...
    async def list_submitted_for_quiz(self, quiz_id: UUID) -> list[QuizAttempt]: ...


class InMemoryQuizRepo:
    def __init__(self) -> None:
        self._quizzes: dict[UUID, Quiz] = {}
        self._attempts: dict[UUID, QuizAttempt] = {}

    async def get(self, quiz_id: UUID) -> Quiz | None:
        return self._quizzes.get(quiz_id)

    async def add(self, quiz: Quiz) -> None:
        self._quizzes[quiz.id] = quiz

    async def set_published(self, quiz_id: UUID, published: bool) -> Quiz | None:
        q = self._quizzes.get(quiz_id)
        if q is None:
            return None
        updated = replace(q, is_published=published)
        self._quizzes[quiz_id] = updated
        return updated

    async def delete(self, quiz_id: UUID) -> bool:
        if self._quizzes.pop(quiz_id, None) is None:
            return False
        for aid in [a.id for a in self._attempts.values() if a.quiz_id == quiz_id]:
            del self._attempts[aid]
        return True

    async def list_for_course(
        self, course_id: UUID, *, published_only: bool = True
    ) -> list[Quiz]:
        return [
            q
            for q in self._quizzes.values()
            if q.course_id == course_id and (q.is_published or not published_only)
        ]

    async def count_submitted(self, user_id: UUID, quiz_id: UUID) -> int:
        return sum(
            1
            for a in self._attempts.values()
            if a.user_id == user_id and a.quiz_id == quiz_id and a.is_submitted
        )

    async def get_in_progress(self, user_id: UUID, quiz_id: UUID) -> QuizAttempt | None:
        return next(
            (
                a
                for a in self._attempts.values()
                if a.user_id == user_id
                and a.quiz_id == quiz_id
                and a.status == IN_PROGRESS
            ),
            None,
        )

    async def add_attempt(self, attempt: QuizAttempt) -> bool:
        for a in self._attempts.values():
            if (a.user_id, a.quiz_id, a.attempt_number) == (
                attempt.user_id,
                attempt.quiz_id,
                attempt.attempt_number,
            ):
                return False
        self._attempts[attempt.id] = attempt
        return True

    async def get_attempt(self, attempt_id: UUID) -> QuizAttempt | None:
        return self._attempts.get(attempt_id)

    async def submit_attempt(self, scored: QuizAttempt) -> bool:
        current = self._attempts.get(scored.id)
        if current is None or current.status != IN_PROGRESS:
            return False
        self._attempts[scored.id] = replace(scored, status=SUBMITTED)
        return True

    async def list_attempts(self, user_id: UUID, quiz_id: UUID) -> list[QuizAttempt]:
        return sorted(
            (
                a
                for a in self._attempts.values()
                if a.user_id == user_id and a.quiz_id == quiz_id and a.is_submitted
            ),
            key=lambda a: a.attempt_number,
            reverse=True,
        )

    async def list_submitted_for_quiz(self, quiz_id: UUID) -> list[QuizAttempt]:
        return [
            a
            for a in self._attempts.values()
            if a.quiz_id == quiz_id and a.is_submitted
        ]
