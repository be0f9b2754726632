from __future__ import annotations

import asyncio
import sys
from dataclasses import dataclass, replace
from pathlib import Path
from uuid import UUID, uuid4

import pytest
from fastapi.testclient import TestClient

# Ensure repo root is on sys.path so `import app` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.main import app  # noqa: E402
from app.models.course import Chapter, Course, Lesson  # noqa: E402
from app.models.enrollment import ACTIVE, Enrollment  # noqa: E402
from app.models.quiz import Question, Quiz  # noqa: E402
from app.models.user import User  # noqa: E402
from app.repos.store import memory_store, reset_memory_store  # noqa: E402
from app.services import token_service  # noqa: E402
from app.services.cache import cache_service  # noqa: E402
from app.services.payment_gateway import payment_gateway  # noqa: E402
from app.services.rate_limiter import rate_limiter  # noqa: E402


@pytest.fixture(autouse=True)
def reset_store() -> None:
    """Fresh in-memory repos for every test."""
    reset_memory_store()


@pytest.fixture(autouse=True)
def reset_rate_limiter() -> None:
    """Clear rate limit windows between tests so limits don't bleed."""
    if hasattr(rate_limiter, "_windows"):
        rate_limiter._windows.clear()  # type: ignore[union-attr]


@pytest.fixture(autouse=True)
def reset_cache() -> None:
    if hasattr(cache_service, "_store"):
        cache_service._store.clear()  # type: ignore[union-attr]


@pytest.fixture(autouse=True)
def reset_payment_gateway() -> None:
    """Forget prices, customers and sessions on the in-memory provider."""
    if hasattr(payment_gateway, "sessions"):
        payment_gateway.prices.clear()  # type: ignore[union-attr]
        payment_gateway.customers.clear()  # type: ignore[union-attr]
        payment_gateway.sessions.clear()  # type: ignore[union-attr]
        payment_gateway.outage = False  # type: ignore[union-attr]


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


# ---------------------------------------------------------------------------
# Callers
# ---------------------------------------------------------------------------


def mint_token(
    user_id: UUID | str | None = None,
    role: str = "user",
    *,
    email: str | None = None,
    name: str = "Test User",
) -> str:
    """Create a valid ES256 JWT for testing."""
    sub = str(user_id or uuid4())
    return token_service.create_access_token(
        sub=sub,
        role=role,
        email=email if email is not None else f"{sub[:8]}@example.com",
        name=name,
    )


def auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@dataclass(frozen=True)
class Caller:
    id: UUID
    role: str
    token: str

    @property
    def headers(self) -> dict[str, str]:
        return auth(self.token)


def make_caller(role: str = "user") -> Caller:
    user_id = uuid4()
    return Caller(id=user_id, role=role, token=mint_token(user_id, role))


@pytest.fixture
def learner() -> Caller:
    return make_caller("user")


@pytest.fixture
def mentor() -> Caller:
    return make_caller("mentor")


@pytest.fixture
def admin() -> Caller:
    return make_caller("admin")


# ---------------------------------------------------------------------------
# Seed helpers (write straight into the in-memory store)
# ---------------------------------------------------------------------------


def seed_course(
    *,
    slug: str = "python-101",
    price: int = 0,
    payment_price_id: str | None = None,
    lessons_per_chapter: tuple[int, ...] = (2, 1),
    status: str = "published",
    free_preview_first: bool = False,
    lesson_type: str = "video",
    min_reviews_required: int = 2,
    created_by: UUID | None = None,
    category: str = "",
    description: str = "",
    created_at: int = 0,
) -> Course:
    course = replace(
        Course.new(
            slug=slug,
            title=slug.title(),
            price=price,
            payment_price_id=payment_price_id,
            created_by=created_by,
            category=category,
            description=description,
            created_at=created_at,
        ),
        status=status,
    )
    chapters = []
    for ch_pos, count in enumerate(lessons_per_chapter, start=1):
        chapter = Chapter.new(
            course_id=course.id, position=ch_pos, title=f"Chapter {ch_pos}"
        )
        lessons = tuple(
            Lesson.new(
                chapter_id=chapter.id,
                position=pos,
                title=f"Lesson {ch_pos}.{pos}",
                video_key=f"videos/{ch_pos}-{pos}.mp4",
                is_free_preview=free_preview_first and ch_pos == 1 and pos == 1,
                lesson_type=lesson_type,
                min_reviews_required=min_reviews_required,
            )
            for pos in range(1, count + 1)
        )
        chapters.append(replace(chapter, lessons=lessons))
    course = replace(course, chapters=tuple(chapters))
    asyncio.run(memory_store.courses.add(course))
    return course


def seed_enrollment(
    user_id: UUID,
    course_id: UUID,
    status: str = ACTIVE,
    *,
    amount: int = 0,
    now: int = 1_700_000_000,
) -> Enrollment:
    enrollment = Enrollment.new(
        user_id=user_id, course_id=course_id, now=now, status=status, amount=amount
    )
    asyncio.run(memory_store.enrollments.insert_if_absent(enrollment))
    return enrollment


def seed_user(
    user_id: UUID,
    *,
    email: str | None = None,
    name: str = "Test User",
    role: str = "user",
    created_at: int = 1_700_000_000,
) -> User:
    return asyncio.run(
        memory_store.users.upsert_identity(
            user_id,
            email or f"{str(user_id)[:8]}@example.com",
            name,
            role,
            created_at,
        )
    )


def sample_questions() -> tuple[Question, ...]:
    return (
        Question.new(
            type="multiple_choice",
            prompt="Which keyword defines a function?",
            correct_answer="def",
            options=("func", "def", "lambda"),
            explanation="def starts a function definition.",
        ),
        Question.new(
            type="true_false",
            prompt="Lists are mutable.",
            correct_answer=True,
        ),
        Question.new(
            type="fill_blank",
            prompt="The capital of France is ____.",
            correct_answer="Paris",
            points=2,
        ),
    )


def seed_quiz(course_id: UUID, **overrides) -> Quiz:
    quiz = replace(
        Quiz.new(course_id=course_id, title="Basics check", questions=sample_questions()),
        is_published=True,
    )
    if overrides:
        quiz = replace(quiz, **overrides)
    asyncio.run(memory_store.quizzes.add(quiz))
    return quiz


def correct_answers(quiz: Quiz) -> dict[str, object]:
    return {str(q.id): q.correct_answer for q in quiz.questions}
