"""Quiz endpoints.

Learner flow::

    GET  /v1/quizzes/{quiz_id}/eligibility           may I start?
    POST /v1/quizzes/{quiz_id}/attempts              start or resume (201)
    GET  /v1/quizzes/attempts/{attempt_id}/questions same questions, same order
    POST /v1/quizzes/attempts/{attempt_id}/submit    score it, once
    GET  /v1/quizzes/attempts/{attempt_id}           the scored result

Questions handed out for taking never carry the correct answer or the
explanation; those only appear in results, and only when the quiz is set
to show correct answers.

Submit is not rate limited: a timer expiry must always be able to land,
and the in_progress -> submitted update already refuses a second submit.
"""

from __future__ import annotations

from typing import Annotated, Any
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from app.api.dependencies import CurrentUser, StoreDep, require_capability
from app.api.ratelimit import require_rate_limit
from app.core import clock
from app.models.principal import Principal
from app.models.quiz import Question, Quiz, QuizAttempt
from app.services import quiz_service

router = APIRouter(tags=["quizzes"])

ManageQuizzes = Annotated[Principal, Depends(require_capability("quiz:manage"))]


# ---- schemas ----


class QuestionIn(BaseModel):
    type: str
    prompt: str
    correct_answer: bool | str
    options: list[str] = []
    explanation: str = ""
    points: int = 1


class QuizIn(BaseModel):
    course_id: UUID
    title: str
    questions: list[QuestionIn]
    description: str = ""
    passing_score: int = 70
    time_limit: int | None = None
    allowed_attempts: int = 0
    shuffle_questions: bool = False
    show_correct_answers: bool = True
    start_date: int | None = None
    due_date: int | None = None


class SubmitIn(BaseModel):
    answers: dict[str, Any] = {}
    is_auto_submitted: bool = False


class QuestionOut(BaseModel):
    id: UUID
    type: str
    prompt: str
    options: list[str]
    points: int


class QuizOut(BaseModel):
    id: UUID
    course_id: UUID
    title: str
    description: str
    passing_score: int
    time_limit: int | None
    allowed_attempts: int
    shuffle_questions: bool
    show_correct_answers: bool
    start_date: int | None
    due_date: int | None
    is_published: bool
    question_count: int
    total_points: int


class AttemptOut(BaseModel):
    id: UUID
    quiz_id: UUID
    attempt_number: int
    status: str
    started_at: int
    answers: dict[str, Any]
    score: int
    total_points: int
    percentage: float
    passed: bool
    is_auto_submitted: bool
    submitted_at: int | None
    time_taken_seconds: int | None


class CourseQuizOut(QuizOut):
    attempts: list[AttemptOut]


class StartOut(BaseModel):
    attempt: AttemptOut
    questions: list[QuestionOut]
    time_limit: int | None
    remaining_seconds: int | None


class EligibilityOut(BaseModel):
    allowed: bool
    reason: str | None
    attempt_count: int


class ResultItemOut(BaseModel):
    question_id: UUID
    prompt: str
    is_correct: bool
    user_answer: Any
    points: int
    max_points: int
    correct_answer: bool | str | None
    explanation: str | None


class AttemptResultOut(BaseModel):
    attempt: AttemptOut
    quiz_title: str
    passing_score: int
    show_correct_answers: bool
    items: list[ResultItemOut]


class QuizStatisticsOut(BaseModel):
    total_attempts: int
    unique_students: int
    average_score: float
    average_percentage: float
    pass_rate: float
    highest_score: int
    lowest_score: int


def question_out(q: Question) -> QuestionOut:
    return QuestionOut(
        id=q.id, type=q.type, prompt=q.prompt, options=list(q.options), points=q.points
    )


def quiz_out(quiz: Quiz) -> QuizOut:
    return QuizOut(
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
        question_count=len(quiz.questions),
        total_points=quiz.total_points,
    )


def attempt_out(a: QuizAttempt) -> AttemptOut:
    return AttemptOut(
        id=a.id,
        quiz_id=a.quiz_id,
        attempt_number=a.attempt_number,
        status=a.status,
        started_at=a.started_at,
        answers=a.answers,
        score=a.score,
        total_points=a.total_points,
        percentage=a.percentage,
        passed=a.passed,
        is_auto_submitted=a.is_auto_submitted,
        submitted_at=a.submitted_at,
        time_taken_seconds=a.time_taken_seconds,
    )


def _remaining_seconds(quiz: Quiz, attempt: QuizAttempt) -> int | None:
    if quiz.time_limit is None:
        return None
    return max(0, quiz.time_limit * 60 - (clock.now() - attempt.started_at))


def _taking_out(
    attempt: QuizAttempt, quiz: Quiz, questions: list[Question]
) -> StartOut:
    return StartOut(
        attempt=attempt_out(attempt),
        questions=[question_out(q) for q in questions],
        time_limit=quiz.time_limit,
        remaining_seconds=_remaining_seconds(quiz, attempt),
    )


# ---- staff ----


@router.post(
    "/v1/quizzes", response_model=QuizOut, status_code=status.HTTP_201_CREATED
)
async def create_quiz(
    body: QuizIn,
    principal: ManageQuizzes,
    store: StoreDep,
) -> QuizOut:
    quiz = await quiz_service.create_quiz(
        store,
        principal,
        course_id=body.course_id,
        title=body.title,
        questions=[
            quiz_service.QuestionInput(
                type=q.type,
                prompt=q.prompt,
                correct_answer=q.correct_answer,
                options=q.options,
                explanation=q.explanation,
                points=q.points,
            )
            for q in body.questions
        ],
        description=body.description,
        passing_score=body.passing_score,
        time_limit=body.time_limit,
        allowed_attempts=body.allowed_attempts,
        shuffle_questions=body.shuffle_questions,
        show_correct_answers=body.show_correct_answers,
        start_date=body.start_date,
        due_date=body.due_date,
    )
    return quiz_out(quiz)


@router.post("/v1/quizzes/{quiz_id}/publish", response_model=QuizOut)
async def publish_quiz(
    quiz_id: UUID,
    principal: ManageQuizzes,
    store: StoreDep,
) -> QuizOut:
    return quiz_out(await quiz_service.publish_quiz(store, principal, quiz_id))


@router.delete("/v1/quizzes/{quiz_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_quiz(
    quiz_id: UUID,
    principal: ManageQuizzes,
    store: StoreDep,
) -> None:
    await quiz_service.delete_quiz(store, principal, quiz_id)


@router.get("/v1/quizzes/{quiz_id}/statistics", response_model=QuizStatisticsOut)
async def quiz_statistics(
    quiz_id: UUID,
    _principal: ManageQuizzes,
    store: StoreDep,
) -> QuizStatisticsOut:
    stats = await quiz_service.quiz_statistics(store, quiz_id)
    return QuizStatisticsOut(
        total_attempts=stats.total_attempts,
        unique_students=stats.unique_students,
        average_score=stats.average_score,
        average_percentage=stats.average_percentage,
        pass_rate=stats.pass_rate,
        highest_score=stats.highest_score,
        lowest_score=stats.lowest_score,
    )


# ---- learner ----
# attempt routes first so "attempts" is never read as a quiz id


@router.post("/v1/quizzes/attempts/{attempt_id}/submit", response_model=AttemptOut)
async def submit_attempt(
    attempt_id: UUID,
    body: SubmitIn,
    principal: CurrentUser,
    store: StoreDep,
) -> AttemptOut:
    attempt = await quiz_service.submit_attempt(
        store,
        principal,
        attempt_id,
        body.answers,
        is_auto_submitted=body.is_auto_submitted,
    )
    return attempt_out(attempt)


@router.get("/v1/quizzes/attempts/{attempt_id}", response_model=AttemptResultOut)
async def get_attempt_result(
    attempt_id: UUID,
    principal: CurrentUser,
    store: StoreDep,
) -> AttemptResultOut:
    result = await quiz_service.get_attempt_result(store, principal, attempt_id)
    return AttemptResultOut(
        attempt=attempt_out(result.attempt),
        quiz_title=result.quiz.title,
        passing_score=result.quiz.passing_score,
        show_correct_answers=result.quiz.show_correct_answers,
        items=[
            ResultItemOut(
                question_id=i.question_id,
                prompt=i.prompt,
                is_correct=i.is_correct,
                user_answer=i.user_answer,
                points=i.points,
                max_points=i.max_points,
                correct_answer=i.correct_answer,
                explanation=i.explanation,
            )
            for i in result.items
        ],
    )


@router.get("/v1/courses/{course_id}/quizzes", response_model=list[CourseQuizOut])
async def list_course_quizzes(
    course_id: UUID,
    principal: CurrentUser,
    store: StoreDep,
) -> list[CourseQuizOut]:
    rows = await quiz_service.list_course_quizzes(store, principal, course_id)
    return [
        CourseQuizOut(
            **quiz_out(quiz).model_dump(),
            attempts=[attempt_out(a) for a in attempts],
        )
        for quiz, attempts in rows
    ]


@router.get("/v1/quizzes/{quiz_id}/eligibility", response_model=EligibilityOut)
async def eligibility(
    quiz_id: UUID,
    principal: CurrentUser,
    store: StoreDep,
) -> EligibilityOut:
    verdict = await quiz_service.can_take_quiz(store, principal, quiz_id)
    return EligibilityOut(
        allowed=verdict.allowed,
        reason=verdict.reason,
        attempt_count=verdict.attempt_count,
    )


@router.post(
    "/v1/quizzes/{quiz_id}/attempts",
    response_model=StartOut,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_rate_limit())],
)
async def start_attempt(
    quiz_id: UUID,
    principal: CurrentUser,
    store: StoreDep,
) -> StartOut:
    attempt, quiz, questions = await quiz_service.start_attempt(
        store, principal, quiz_id
    )
    return _taking_out(attempt, quiz, questions)


@router.get("/v1/quizzes/attempts/{attempt_id}/questions", response_model=StartOut)
async def attempt_questions(
    attempt_id: UUID,
    principal: CurrentUser,
    store: StoreDep,
) -> StartOut:
    attempt, quiz, questions = await quiz_service.get_quiz_for_taking(
        store, principal, attempt_id
    )
    return _taking_out(attempt, quiz, questions)


@router.get("/v1/quizzes/{quiz_id}/attempts", response_model=list[AttemptOut])
async def list_attempts(
    quiz_id: UUID,
    principal: CurrentUser,
    store: StoreDep,
) -> list[AttemptOut]:
    return [
        attempt_out(a)
        for a in await quiz_service.list_attempt_history(store, principal, quiz_id)
    ]
