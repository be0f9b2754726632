from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any
from uuid import UUID, uuid4

QUESTION_TYPES = ("multiple_choice", "true_false", "fill_blank", "one_choice_answer")

IN_PROGRESS = "in_progress"
SUBMITTED = "submitted"

Answer = Any  # str for text types, bool for true_false


@dataclass(frozen=True, slots=True)
class Question:
    id: UUID
    type: str  # see QUESTION_TYPES
    prompt: str
    correct_answer: str | bool
    options: tuple[str, ...] = ()
    explanation: str = ""
    points: int = 1

    @staticmethod
    def new(
        *,
        type: str,
        prompt: str,
        correct_answer: str | bool,
        options: tuple[str, ...] = (),
        explanation: str = "",
        points: int = 1,
    ) -> Question:
        return Question(
            id=uuid4(),
            type=type,
            prompt=prompt,
            correct_answer=correct_answer,
            options=options,
            explanation=explanation,
            points=points,
        )


@dataclass(frozen=True, slots=True)
class Quiz:
    id: UUID
    course_id: UUID
    title: str
    questions: tuple[Question, ...]
    description: str = ""
    passing_score: int = 70
    time_limit: int | None = None  # minutes
    allowed_attempts: int = 0  # 0 = unlimited
    shuffle_questions: bool = False
    show_correct_answers: bool = True
    start_date: int | None = None
    due_date: int | None = None
    is_published: bool = False
    created_by: UUID | None = None

    @staticmethod
    def new(
        *,
        course_id: UUID,
        title: str,
        questions: tuple[Question, ...],
        description: str = "",
        passing_score: int = 70,
        time_limit: int | None = None,
        allowed_attempts: int = 0,
        shuffle_questions: bool = False,
        show_correct_answers: bool = True,
        start_date: int | None = None,
        due_date: int | None = None,
        created_by: UUID | None = None,
    ) -> Quiz:
        return Quiz(
            id=uuid4(),
            course_id=course_id,
            title=title,
            questions=questions,
            description=description,
            passing_score=passing_score,
            time_limit=time_limit,
            allowed_attempts=allowed_attempts,
            shuffle_questions=shuffle_questions,
            show_correct_answers=show_correct_answers,
            start_date=start_date,
            due_date=due_date,
            created_by=created_by,
        )

    @property
    def total_points(self) -> int:
        return sum(q.points for q in self.questions)


@dataclass(frozen=True, slots=True)
class QuestionResult:
    question_id: UUID
    is_correct: bool
    user_answer: Answer
    points: int
    max_points: int


@dataclass(frozen=True, slots=True)
class QuizAttempt:
    """One sitting of a quiz.

    Created in_progress on start; submit fills in the scoring fields and
    flips the status exactly once. A submitted attempt never changes.
    """

    id: UUID
    user_id: UUID
    quiz_id: UUID
    attempt_number: int
    started_at: int
    status: str = IN_PROGRESS
    answers: dict[str, Answer] = field(default_factory=dict)
    results: tuple[QuestionResult, ...] = ()
    score: int = 0
    total_points: int = 0
    percentage: float = 0.0
    passed: bool = False
    is_auto_submitted: bool = False
    submitted_at: int | None = None
    time_taken_seconds: int | None = None

    @staticmethod
    def new(
        *, user_id: UUID, quiz_id: UUID, attempt_number: int, now: int
    ) -> QuizAttempt:
        return QuizAttempt(
            id=uuid4(),
            user_id=user_id,
            quiz_id=quiz_id,
            attempt_number=attempt_number,
            started_at=now,
        )

    @property
    def is_submitted(self) -> bool:
        return self.status == SUBMITTED
