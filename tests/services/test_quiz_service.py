from __future__ import annotations

import asyncio
from dataclasses import replace
from uuid import uuid4

import pytest

from app.core import clock
from app.core.errors import (
    AttemptsExhausted,
    Forbidden,
    InvalidState,
    NotFound,
    ValidationError,
)
from app.models.principal import Principal
from app.models.quiz import Question, QuizAttempt
from app.repos.store import memory_store
from app.services import quiz_service
from app.services.quiz_service import QuestionInput, is_correct, score_answers
from tests.conftest import correct_answers, seed_course, seed_enrollment, seed_quiz

T0 = 1_700_000_000


@pytest.fixture
def frozen_clock(monkeypatch: pytest.MonkeyPatch):
    """Controllable clock: set ``frozen_clock.now`` to move time."""

    class _Clock:
        now = T0

    monkeypatch.setattr(clock, "now", lambda: _Clock.now)
    return _Clock


def _learner_in(course_id) -> Principal:
    user_id = uuid4()
    seed_enrollment(user_id, course_id)
    return Principal(user_id=str(user_id), email="l@example.com")


# ---- answer checking ----


def _q(type: str, correct, options=()) -> Question:
    return Question.new(type=type, prompt="?", correct_answer=correct, options=options)


@pytest.mark.parametrize(
    "question,answer,expected",
    [
        (_q("multiple_choice", "B", ("A", "B")), "B", True),
        (_q("multiple_choice", "B", ("A", "B")), "b", False),
        (_q("one_choice_answer", "A", ("A", "B")), "A", True),
        (_q("true_false", True), True, True),
        (_q("true_false", True), "true", False),
        (_q("true_false", False), 0, False),
        (_q("fill_blank", "Paris"), "  paris ", True),
        (_q("fill_blank", "Paris"), "Lyon", False),
        (_q("fill_blank", "Paris"), None, False),
        (_q("multiple_choice", "B", ("A", "B")), ["B"], False),
    ],
)
def test_is_correct(question: Question, answer, expected: bool) -> None:
    assert is_correct(question, answer) is expected


def test_score_answers_weights_points_and_pass_threshold() -> None:
    course = seed_course()
    quiz = seed_quiz(course.id, passing_score=75)
    answers = correct_answers(quiz)
    answers[str(quiz.questions[0].id)] = "lambda"  # 1 of 4 points wrong

    results, score, total, percentage, passed = score_answers(quiz, answers)

    assert (score, total) == (3, 4)
    assert percentage == 75.0
    assert passed is True
    assert [r.is_correct for r in results] == [False, True, True]


def test_score_below_threshold_fails() -> None:
    course = seed_course()
    quiz = seed_quiz(course.id, passing_score=70)
    answers = {str(quiz.questions[2].id): "Paris"}  # 2 of 4

    _, score, _, percentage, passed = score_answers(quiz, answers)

    assert score == 2
    assert percentage == 50.0
    assert passed is False


def test_percentage_is_not_rounded() -> None:
    course = seed_course()
    quiz = seed_quiz(course.id)
    questions = quiz.questions[:2]  # 1 point each
    three = replace(
        quiz,
        questions=questions + (Question.new(type="true_false", prompt="x", correct_answer=False),),
    )
    _, _, total, percentage, _ = score_answers(three, {str(questions[0].id): "def"})
    assert total == 3
    assert percentage == pytest.approx(100 / 3)


# ---- create ----


def test_create_quiz_validates_questions() -> None:
    course = seed_course()
    staff = Principal(user_id=str(uuid4()), role="mentor")
    bad = QuestionInput(type="multiple_choice", prompt="?", correct_answer="Z", options=["A", "B"])
    with pytest.raises(ValidationError, match="question 1: correct_answer must be one of"):
        asyncio.run(
            quiz_service.create_quiz(
                memory_store, staff, course_id=course.id, title="Q", questions=[bad]
            )
        )


def test_create_quiz_requires_questions_and_sane_limits() -> None:
    course = seed_course()
    staff = Principal(user_id=str(uuid4()), role="mentor")
    tf = QuestionInput(type="true_false", prompt="?", correct_answer=True)
    for kwargs, message in [
        ({"questions": []}, "at least one question"),
        ({"questions": [tf], "passing_score": 101}, "passing_score"),
        ({"questions": [tf], "time_limit": 0}, "time_limit"),
        ({"questions": [tf], "start_date": 10, "due_date": 5}, "due_date"),
    ]:
        with pytest.raises(ValidationError, match=message):
            asyncio.run(
                quiz_service.create_quiz(
                    memory_store, staff, course_id=course.id, title="Q", **kwargs
                )
            )


def test_create_quiz_starts_unpublished() -> None:
    course = seed_course()
    staff = Principal(user_id=str(uuid4()), role="mentor")
    tf = QuestionInput(type="true_false", prompt="Sky is blue", correct_answer=True)
    quiz = asyncio.run(
        quiz_service.create_quiz(
            memory_store, staff, course_id=course.id, title="Q", questions=[tf]
        )
    )
    assert quiz.is_published is False
    assert quiz.questions[0].correct_answer is True


# ---- eligibility ----


def test_eligibility_reasons_in_order(frozen_clock) -> None:
    course = seed_course()
    learner = _learner_in(course.id)

    def verdict(**overrides):
        quiz = seed_quiz(course.id, **overrides)
        return asyncio.run(quiz_service.can_take_quiz(memory_store, learner, quiz.id))

    assert verdict(is_published=False).reason == "Quiz is not available"
    assert verdict(start_date=T0 + 60).reason == "Quiz has not opened yet"
    assert verdict(due_date=T0 - 60).reason == "Quiz is past its due date"
    assert verdict(due_date=T0).allowed is True
    ok = verdict()
    assert ok.allowed is True
    assert ok.reason is None
    assert ok.attempt_count == 0


def test_attempt_limit_counts_submitted_only(frozen_clock) -> None:
    course = seed_course()
    quiz = seed_quiz(course.id, allowed_attempts=1)
    learner = _learner_in(course.id)

    async def scenario():
        attempt, _, _ = await quiz_service.start_attempt(memory_store, learner, quiz.id)
        before = await quiz_service.can_take_quiz(memory_store, learner, quiz.id)
        await quiz_service.submit_attempt(memory_store, learner, attempt.id, {})
        after = await quiz_service.can_take_quiz(memory_store, learner, quiz.id)
        return before, after

    before, after = asyncio.run(scenario())
    assert before.allowed is True
    assert after.allowed is False
    assert after.reason == "Maximum attempts (1) reached"
    assert after.attempt_count == 1


# ---- start ----


def test_start_requires_enrollment_for_learners() -> None:
    course = seed_course()
    quiz = seed_quiz(course.id)
    outsider = Principal(user_id=str(uuid4()))
    with pytest.raises(Forbidden, match="not enrolled"):
        asyncio.run(quiz_service.start_attempt(memory_store, outsider, quiz.id))


def test_staff_may_start_without_enrollment() -> None:
    course = seed_course()
    quiz = seed_quiz(course.id)
    mentor = Principal(user_id=str(uuid4()), role="mentor")
    attempt, questions = asyncio.run(
        quiz_service.start_attempt(memory_store, mentor, quiz.id)
    )
    assert attempt.attempt_number == 1
    assert len(questions) == 3


def test_start_refused_with_reason_when_exhausted() -> None:
    course = seed_course()
    quiz = seed_quiz(course.id, allowed_attempts=1)
    learner = _learner_in(course.id)

    async def scenario():
        attempt, _, _ = await quiz_service.start_attempt(memory_store, learner, quiz.id)
        await quiz_service.submit_attempt(memory_store, learner, attempt.id, {})
        await quiz_service.start_attempt(memory_store, learner, quiz.id)

    with pytest.raises(AttemptsExhausted) as exc:
        asyncio.run(scenario())
    assert exc.value.attempt_count == 1
    assert exc.value.reason == "Maximum attempts (1) reached"


def test_start_resumes_in_progress_attempt() -> None:
    course = seed_course()
    quiz = seed_quiz(course.id)
    learner = _learner_in(course.id)

    async def scenario():
        first, _, _ = await quiz_service.start_attempt(memory_store, learner, quiz.id)
        again, _, _ = await quiz_service.start_attempt(memory_store, learner, quiz.id)
        return first, again

    first, again = asyncio.run(scenario())
    assert again.id == first.id


def test_attempt_numbers_increase_after_submit() -> None:
    course = seed_course()
    quiz = seed_quiz(course.id)
    learner = _learner_in(course.id)

    async def scenario():
        numbers = []
        for _ in range(3):
            attempt, _, _ = await quiz_service.start_attempt(memory_store, learner, quiz.id)
            await quiz_service.submit_attempt(memory_store, learner, attempt.id, {})
            numbers.append(attempt.attempt_number)
        history = await quiz_service.list_attempt_history(memory_store, learner, quiz.id)
        return numbers, history

    numbers, history = asyncio.run(scenario())
    assert numbers == [1, 2, 3]
    assert [a.attempt_number for a in history] == [3, 2, 1]


def test_shuffled_order_is_stable_per_attempt() -> None:
    course = seed_course()
    quiz = seed_quiz(course.id, shuffle_questions=True)
    attempt = QuizAttempt.new(user_id=uuid4(), quiz_id=quiz.id, attempt_number=1, now=T0)

    first = quiz_service.presentation_order(quiz, attempt)
    second = quiz_service.presentation_order(quiz, attempt)

    assert [q.id for q in first] == [q.id for q in second]
    assert {q.id for q in first} == {q.id for q in quiz.questions}


def test_unshuffled_order_follows_quiz() -> None:
    course = seed_course()
    quiz = seed_quiz(course.id)
    attempt = QuizAttempt.new(user_id=uuid4(), quiz_id=quiz.id, attempt_number=1, now=T0)
    ordered = quiz_service.presentation_order(quiz, attempt)
    assert [q.id for q in ordered] == [q.id for q in quiz.questions]


# ---- submit ----


def test_submit_scores_and_records_time(frozen_clock) -> None:
    course = seed_course()
    quiz = seed_quiz(course.id)
    learner = _learner_in(course.id)

    async def scenario():
        attempt, _, _ = await quiz_service.start_attempt(memory_store, learner, quiz.id)
        frozen_clock.now = T0 + 95
        return await quiz_service.submit_attempt(
            memory_store, learner, attempt.id, correct_answers(quiz)
        )

    scored = asyncio.run(scenario())
    assert scored.is_submitted
    assert (scored.score, scored.total_points) == (4, 4)
    assert scored.percentage == 100.0
    assert scored.passed is True
    assert scored.time_taken_seconds == 95
    assert scored.submitted_at == T0 + 95
    assert scored.is_auto_submitted is False


def test_second_submit_is_rejected_and_first_result_stands() -> None:
    course = seed_course()
    quiz = seed_quiz(course.id)
    learner = _learner_in(course.id)

    async def scenario():
        attempt, _, _ = await quiz_service.start_attempt(memory_store, learner, quiz.id)
        first = await quiz_service.submit_attempt(
            memory_store, learner, attempt.id, correct_answers(quiz)
        )
        try:
            await quiz_service.submit_attempt(
                memory_store, learner, attempt.id, {}, is_auto_submitted=True
            )
        except InvalidState:
            pass
        else:
            raise AssertionError("second submit accepted")
        stored = await memory_store.quizzes.get_attempt(attempt.id)
        return first, stored

    first, stored = asyncio.run(scenario())
    assert stored is not None
    assert stored.score == first.score == 4
    assert stored.is_auto_submitted is False


def test_unknown_question_ids_are_dropped() -> None:
    course = seed_course()
    quiz = seed_quiz(course.id)
    learner = _learner_in(course.id)
    answers = {**correct_answers(quiz), "not-a-question": "x"}

    async def scenario():
        attempt, _, _ = await quiz_service.start_attempt(memory_store, learner, quiz.id)
        return await quiz_service.submit_attempt(memory_store, learner, attempt.id, answers)

    scored = asyncio.run(scenario())
    assert "not-a-question" not in scored.answers
    assert scored.score == 4


def test_late_manual_submit_is_flagged_auto(frozen_clock) -> None:
    course = seed_course()
    quiz = seed_quiz(course.id, time_limit=1)
    learner = _learner_in(course.id)

    async def scenario(delay: int):
        attempt, _, _ = await quiz_service.start_attempt(memory_store, learner, quiz.id)
        frozen_clock.now += delay
        return await quiz_service.submit_attempt(memory_store, learner, attempt.id, {})

    within_grace = asyncio.run(scenario(60 + quiz_service.SUBMIT_GRACE_SECONDS))
    late = asyncio.run(scenario(60 + quiz_service.SUBMIT_GRACE_SECONDS + 1))
    assert within_grace.is_auto_submitted is False
    assert late.is_auto_submitted is True


def test_cannot_submit_someone_elses_attempt() -> None:
    course = seed_course()
    quiz = seed_quiz(course.id)
    owner = _learner_in(course.id)
    other = _learner_in(course.id)

    async def scenario():
        attempt, _, _ = await quiz_service.start_attempt(memory_store, owner, quiz.id)
        await quiz_service.submit_attempt(memory_store, other, attempt.id, {})

    with pytest.raises(Forbidden):
        asyncio.run(scenario())


def test_submit_unknown_attempt_is_not_found() -> None:
    learner = Principal(user_id=str(uuid4()))
    with pytest.raises(NotFound):
        asyncio.run(quiz_service.submit_attempt(memory_store, learner, uuid4(), {}))


# ---- results and statistics ----


@pytest.mark.parametrize("show", [True, False])
def test_result_reveals_answers_only_when_configured(show: bool) -> None:
    course = seed_course()
    quiz = seed_quiz(course.id, show_correct_answers=show)
    learner = _learner_in(course.id)

    async def scenario():
        attempt, _, _ = await quiz_service.start_attempt(memory_store, learner, quiz.id)
        await quiz_service.submit_attempt(memory_store, learner, attempt.id, {})
        return await quiz_service.get_attempt_result(memory_store, learner, attempt.id)

    result = asyncio.run(scenario())
    first = result.items[0]
    if show:
        assert first.correct_answer == "def"
        assert first.explanation == "def starts a function definition."
    else:
        assert first.correct_answer is None
        assert first.explanation is None


def test_result_of_unsubmitted_attempt_is_invalid_state() -> None:
    course = seed_course()
    quiz = seed_quiz(course.id)
    learner = _learner_in(course.id)

    async def scenario():
        attempt, _, _ = await quiz_service.start_attempt(memory_store, learner, quiz.id)
        await quiz_service.get_attempt_result(memory_store, learner, attempt.id)

    with pytest.raises(InvalidState):
        asyncio.run(scenario())


def test_statistics_over_submitted_attempts() -> None:
    course = seed_course()
    quiz = seed_quiz(course.id)
    a, b = _learner_in(course.id), _learner_in(course.id)

    async def scenario():
        for learner, answers in ((a, correct_answers(quiz)), (b, {})):
            attempt, _, _ = await quiz_service.start_attempt(memory_store, learner, quiz.id)
            await quiz_service.submit_attempt(memory_store, learner, attempt.id, answers)
        # in-progress attempts are not counted
        await quiz_service.start_attempt(memory_store, a, quiz.id)
        return await quiz_service.quiz_statistics(memory_store, quiz.id)

    stats = asyncio.run(scenario())
    assert stats.total_attempts == 2
    assert stats.unique_students == 2
    assert stats.average_score == 2.0
    assert stats.average_percentage == 50.0
    assert stats.pass_rate == 50.0
    assert (stats.highest_score, stats.lowest_score) == (4, 0)


def test_statistics_without_attempts_are_zero() -> None:
    course = seed_course()
    quiz = seed_quiz(course.id)
    stats = asyncio.run(quiz_service.quiz_statistics(memory_store, quiz.id))
    assert stats.total_attempts == 0
    assert stats.pass_rate == 0.0
