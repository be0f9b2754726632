"""Timed quizzes and scored attempts.

Attempt lifecycle::

    (not started) --start--> in_progress --submit--> submitted

``submitted`` is terminal.  Submit is a single conditional write
(in_progress -> submitted); the loser of a manual-vs-auto submit race gets
InvalidState and the first scoring stands.

Eligibility counts *submitted* attempts only, so an abandoned in-progress
attempt does not burn one of the learner's tries; starting again resumes
it instead.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, replace
from typing import Any
from uuid import UUID

from app.core import clock
from app.core.errors import (
    AttemptsExhausted,
    Forbidden,
    InvalidState,
    NotFound,
    ValidationError,
)
from app.core.metrics import QUIZ_SUBMISSIONS
from app.models.principal import Principal
from app.models.quiz import (
    QUESTION_TYPES,
    SUBMITTED,
    Question,
    QuestionResult,
    Quiz,
    QuizAttempt,
)
from app.repos.store import Store
from app.services import course_service, enrollment_service, users_service

logger = logging.getLogger(__name__)

# Seconds past the time limit a manual submit may land and still count as
# manual (network latency between the timer hitting zero and the request).
SUBMIT_GRACE_SECONDS = 30

_CHOICE_TYPES = ("multiple_choice", "one_choice_answer")


@dataclass(frozen=True, slots=True)
class QuestionInput:
    type: str
    prompt: str
    correct_answer: str | bool
    options: Sequence[str] = ()
    explanation: str = ""
    points: int = 1


@dataclass(frozen=True, slots=True)
class Eligibility:
    allowed: bool
    reason: str | None
    attempt_count: int


@dataclass(frozen=True, slots=True)
class ResultItem:
    question_id: UUID
    prompt: str
    is_correct: bool
    user_answer: Any
    points: int
    max_points: int
    correct_answer: str | bool | None = None
    explanation: str | None = None


@dataclass(frozen=True, slots=True)
class AttemptResult:
    attempt: QuizAttempt
    quiz: Quiz
    items: tuple[ResultItem, ...]


@dataclass(frozen=True, slots=True)
class QuizStatistics:
    total_attempts: int
    unique_students: int
    average_score: float
    average_percentage: float
    pass_rate: float
    highest_score: int
    lowest_score: int


# ---------------------------------------------------------------------------
# Scoring (pure)
# ---------------------------------------------------------------------------


def is_correct(question: Question, answer: Any) -> bool:
    if answer is None:
        return False
    if question.type == "true_false":
        expected = question.correct_answer
        return (
            isinstance(answer, bool)
            and isinstance(expected, bool)
            and answer == expected
        )
    if not isinstance(answer, str):
        return False
    if question.type == "fill_blank":
        expected = str(question.correct_answer)
        return answer.strip().casefold() == expected.strip().casefold()
    return answer == question.correct_answer


def score_answers(
    quiz: Quiz, answers: Mapping[str, Any]
) -> tuple[tuple[QuestionResult, ...], int, int, float, bool]:
    """Returns (results, score, total_points, percentage, passed)."""
    results = []
    for q in quiz.questions:
        answer = answers.get(str(q.id))
        correct = is_correct(q, answer)
        results.append(
            QuestionResult(
                question_id=q.id,
                is_correct=correct,
                user_answer=answer,
                points=q.points if correct else 0,
                max_points=q.points,
            )
        )
    score = sum(r.points for r in results)
    total = quiz.total_points
    percentage = 100 * score / total if total else 0.0
    return tuple(results), score, total, percentage, percentage >= quiz.passing_score


def presentation_order(quiz: Quiz, attempt: QuizAttempt) -> list[Question]:
    """Question order shown for an attempt.

    Shuffled quizzes use a generator seeded by the attempt id, so the same
    attempt always sees the same order without storing it.
    """
    questions = list(quiz.questions)
    if quiz.shuffle_questions:
        random.Random(str(attempt.id)).shuffle(questions)
    return questions


# ---------------------------------------------------------------------------
# Staff operations
# ---------------------------------------------------------------------------


def _build_question(q: QuestionInput, index: int) -> Question:
    where = f"question {index}"
    if q.type not in QUESTION_TYPES:
        allowed = ", ".join(QUESTION_TYPES)
        raise ValidationError(f"{where}: type must be one of {allowed}")
    if not q.prompt.strip():
        raise ValidationError(f"{where}: prompt must be non-empty")
    if q.points < 1:
        raise ValidationError(f"{where}: points must be >= 1")

    options = tuple(o.strip() for o in q.options if o.strip())
    if q.type in _CHOICE_TYPES:
        if len(options) < 2:
            raise ValidationError(f"{where}: needs at least 2 options")
        if q.correct_answer not in options:
            raise ValidationError(f"{where}: correct_answer must be one of the options")
    elif q.type == "true_false":
        if not isinstance(q.correct_answer, bool):
            raise ValidationError(f"{where}: correct_answer must be true or false")
        options = ()
    elif not isinstance(q.correct_answer, str) or not q.correct_answer.strip():
        raise ValidationError(f"{where}: correct_answer must be non-empty text")

    return Question.new(
        type=q.type,
        prompt=q.prompt.strip(),
        correct_answer=q.correct_answer,
        options=options,
        explanation=q.explanation,
        points=q.points,
    )


async def create_quiz(
    store: Store,
    principal: Principal,
    *,
    course_id: UUID,
    title: str,
    questions: Sequence[QuestionInput],
    description: str = "",
    passing_score: int = 70,
    time_limit: int | None = None,
    allowed_attempts: int = 0,
    shuffle_questions: bool = False,
    show_correct_answers: bool = True,
    start_date: int | None = None,
    due_date: int | None = None,
) -> Quiz:
    if not title.strip():
        raise ValidationError("title must be non-empty")
    if not 0 <= passing_score <= 100:
        raise ValidationError("passing_score must be between 0 and 100")
    if time_limit is not None and time_limit < 1:
        raise ValidationError("time_limit must be at least 1 minute")
    if allowed_attempts < 0:
        raise ValidationError("allowed_attempts must be >= 0")
    if not questions:
        raise ValidationError("a quiz needs at least one question")
    if start_date is not None and due_date is not None and due_date < start_date:
        raise ValidationError("due_date must not be before start_date")

    course = await course_service.resolve_course(store, course_id)
    await users_service.ensure_user(store, principal)
    quiz = Quiz.new(
        course_id=course.id,
        title=title.strip(),
        questions=tuple(
            _build_question(q, i) for i, q in enumerate(questions, start=1)
        ),
        description=description,
        passing_score=passing_score,
        time_limit=time_limit,
        allowed_attempts=allowed_attempts,
        shuffle_questions=shuffle_questions,
        show_correct_answers=show_correct_answers,
        start_date=start_date,
        due_date=due_date,
        created_by=principal.uid,
    )
    await store.quizzes.add(quiz)
    logger.info(
        "Quiz created questions=%d by user=%s",
        len(quiz.questions),
        principal.user_id,
        extra={"course_id": str(course.id), "quiz_id": str(quiz.id)},
    )
    return quiz


async def publish_quiz(store: Store, principal: Principal, quiz_id: UUID) -> Quiz:
    quiz = await store.quizzes.set_published(quiz_id, True)
    if quiz is None:
        raise NotFound("Quiz not found")
    logger.info(
        "Quiz published by user=%s", principal.user_id, extra={"quiz_id": str(quiz_id)}
    )
    return quiz


async def delete_quiz(store: Store, principal: Principal, quiz_id: UUID) -> None:
    if not await store.quizzes.delete(quiz_id):
        raise NotFound("Quiz not found")
    logger.info(
        "Quiz deleted by user=%s", principal.user_id, extra={"quiz_id": str(quiz_id)}
    )


async def quiz_statistics(store: Store, quiz_id: UUID) -> QuizStatistics:
    if await store.quizzes.get(quiz_id) is None:
        raise NotFound("Quiz not found")
    attempts = await store.quizzes.list_submitted_for_quiz(quiz_id)
    if not attempts:
        return QuizStatistics(0, 0, 0.0, 0.0, 0.0, 0, 0)

    n = len(attempts)
    return QuizStatistics(
        total_attempts=n,
        unique_students=len({a.user_id for a in attempts}),
        average_score=sum(a.score for a in attempts) / n,
        average_percentage=sum(a.percentage for a in attempts) / n,
        pass_rate=100 * sum(1 for a in attempts if a.passed) / n,
        highest_score=max(a.score for a in attempts),
        lowest_score=min(a.score for a in attempts),
    )


# ---------------------------------------------------------------------------
# Learner operations
# ---------------------------------------------------------------------------


async def _get_quiz(store: Store, quiz_id: UUID) -> Quiz:
    quiz = await store.quizzes.get(quiz_id)
    if quiz is None:
        raise NotFound("Quiz not found")
    return quiz


def _evaluate(quiz: Quiz, attempt_count: int, now: int) -> Eligibility:
    reason = None
    if not quiz.is_published:
        reason = "Quiz is not available"
    elif quiz.start_date is not None and now < quiz.start_date:
        reason = "Quiz has not opened yet"
    elif quiz.due_date is not None and now > quiz.due_date:
        reason = "Quiz is past its due date"
    elif quiz.allowed_attempts > 0 and attempt_count >= quiz.allowed_attempts:
        reason = f"Maximum attempts ({quiz.allowed_attempts}) reached"
    return Eligibility(
        allowed=reason is None, reason=reason, attempt_count=attempt_count
    )


async def can_take_quiz(
    store: Store, principal: Principal, quiz_id: UUID
) -> Eligibility:
    quiz = await _get_quiz(store, quiz_id)
    count = await store.quizzes.count_submitted(principal.uid, quiz.id)
    return _evaluate(quiz, count, clock.now())


async def list_course_quizzes(
    store: Store, principal: Principal, course_id: UUID
) -> list[tuple[Quiz, list[QuizAttempt]]]:
    course = await course_service.resolve_course(store, course_id)
    out = []
    for quiz in await store.quizzes.list_for_course(course.id, published_only=True):
        out.append((quiz, await store.quizzes.list_attempts(principal.uid, quiz.id)))
    return out


async def start_attempt(
    store: Store, principal: Principal, quiz_id: UUID
) -> tuple[QuizAttempt, Quiz, list[Question]]:
    quiz = await _get_quiz(store, quiz_id)
    if not principal.is_staff():
        await enrollment_service.ensure_active_enrollment(
            store, principal, quiz.course_id
        )

    count = await store.quizzes.count_submitted(principal.uid, quiz.id)
    verdict = _evaluate(quiz, count, clock.now())
    if not verdict.allowed:
        logger.warning(
            "Quiz start refused user=%s reason=%s",
            principal.user_id,
            verdict.reason,
            extra={"quiz_id": str(quiz.id)},
        )
        raise AttemptsExhausted(verdict.reason or "Not allowed", count)

    log_extra = {"quiz_id": str(quiz.id)}
    current = await store.quizzes.get_in_progress(principal.uid, quiz.id)
    if current is not None:
        logger.info(
            "Resuming attempt %s user=%s",
            current.attempt_number,
            principal.user_id,
            extra={**log_extra, "attempt_id": str(current.id)},
        )
        return current, quiz, presentation_order(quiz, current)

    await users_service.ensure_user(store, principal)
    attempt = QuizAttempt.new(
        user_id=principal.uid,
        quiz_id=quiz.id,
        attempt_number=count + 1,
        now=clock.now(),
    )
    if not await store.quizzes.add_attempt(attempt):
        # a concurrent start claimed this attempt number
        current = await store.quizzes.get_in_progress(principal.uid, quiz.id)
        if current is None:
            raise InvalidState("Attempt could not be started, please retry")
        return current, quiz, presentation_order(quiz, current)

    logger.info(
        "Attempt %d started user=%s",
        attempt.attempt_number,
        principal.user_id,
        extra={**log_extra, "attempt_id": str(attempt.id)},
    )
    return attempt, quiz, presentation_order(quiz, attempt)


async def _owned_attempt(
    store: Store, principal: Principal, attempt_id: UUID, *, allow_staff: bool = False
) -> QuizAttempt:
    attempt = await store.quizzes.get_attempt(attempt_id)
    if attempt is None:
        raise NotFound("Attempt not found")
    if attempt.user_id != principal.uid and not (allow_staff and principal.is_staff()):
        logger.warning(
            "Access denied: user=%s does not own attempt",
            principal.user_id,
            extra={"attempt_id": str(attempt_id)},
        )
        raise Forbidden("This attempt belongs to another user")
    return attempt


async def get_quiz_for_taking(
    store: Store, principal: Principal, attempt_id: UUID
) -> tuple[QuizAttempt, Quiz, list[Question]]:
    attempt = await _owned_attempt(store, principal, attempt_id)
    quiz = await _get_quiz(store, attempt.quiz_id)
    return attempt, quiz, presentation_order(quiz, attempt)


async def submit_attempt(
    store: Store,
    principal: Principal,
    attempt_id: UUID,
    answers: Mapping[str, Any] | None,
    *,
    is_auto_submitted: bool = False,
) -> QuizAttempt:
    attempt = await _owned_attempt(store, principal, attempt_id)
    log_extra = {"quiz_id": str(attempt.quiz_id), "attempt_id": str(attempt.id)}
    if attempt.is_submitted:
        raise InvalidState("Attempt has already been submitted")
    quiz = await _get_quiz(store, attempt.quiz_id)

    known = {str(q.id) for q in quiz.questions}
    kept = {str(k): v for k, v in (answers or {}).items() if str(k) in known}

    now = clock.now()
    elapsed = max(0, now - attempt.started_at)
    late = (
        quiz.time_limit is not None
        and elapsed > quiz.time_limit * 60 + SUBMIT_GRACE_SECONDS
    )
    if late and not is_auto_submitted:
        logger.info(
            "Late manual submit after %ds recorded as auto-submitted",
            elapsed,
            extra=log_extra,
        )
    auto = is_auto_submitted or late

    results, score, total, percentage, passed = score_answers(quiz, kept)
    scored = replace(
        attempt,
        answers=kept,
        results=results,
        score=score,
        total_points=total,
        percentage=percentage,
        passed=passed,
        is_auto_submitted=auto,
        submitted_at=now,
        time_taken_seconds=elapsed,
    )
    if not await store.quizzes.submit_attempt(scored):
        logger.warning(
            "Duplicate submit rejected user=%s", principal.user_id, extra=log_extra
        )
        raise InvalidState("Attempt has already been submitted")

    QUIZ_SUBMISSIONS.labels(mode="auto" if auto else "manual").inc()
    logger.info(
        "Attempt submitted user=%s score=%d/%d passed=%s auto=%s",
        principal.user_id,
        score,
        total,
        passed,
        auto,
        extra=log_extra,
    )
    return replace(scored, status=SUBMITTED)


async def get_attempt_result(
    store: Store, principal: Principal, attempt_id: UUID
) -> AttemptResult:
    attempt = await _owned_attempt(store, principal, attempt_id, allow_staff=True)
    if not attempt.is_submitted:
        raise InvalidState("Attempt has not been submitted yet")
    quiz = await _get_quiz(store, attempt.quiz_id)

    by_id = {r.question_id: r for r in attempt.results}
    reveal = quiz.show_correct_answers
    items = []
    for q in quiz.questions:
        r = by_id.get(q.id)
        items.append(
            ResultItem(
                question_id=q.id,
                prompt=q.prompt,
                is_correct=r.is_correct if r else False,
                user_answer=r.user_answer if r else None,
                points=r.points if r else 0,
                max_points=q.points,
                correct_answer=q.correct_answer if reveal else None,
                explanation=q.explanation if reveal else None,
            )
        )
    return AttemptResult(attempt=attempt, quiz=quiz, items=tuple(items))


async def list_attempt_history(
    store: Store, principal: Principal, quiz_id: UUID
) -> list[QuizAttempt]:
    quiz = await _get_quiz(store, quiz_id)
    return await store.quizzes.list_attempts(principal.uid, quiz.id)
