"""Repository bundle handed to the services.

One ``Store`` per request.  Without DATABASE_URL every request shares the
process-wide in-memory store; with it, each request gets PostgreSQL repos
bound to a single session that commits when the handler returns and rolls
back when it raises.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Awaitable, Callable
from dataclasses import dataclass, field, fields

from sqlalchemy.ext.asyncio import AsyncSession

from app.db.engine import async_session_factory
from app.repos.activity_repo import ActivityRepo, InMemoryActivityRepo
from app.repos.assignment_repo import AssignmentRepo, InMemoryAssignmentRepo
from app.repos.course_repo import CourseRepo, InMemoryCourseRepo
from app.repos.enrollment_repo import EnrollmentRepo, InMemoryEnrollmentRepo
from app.repos.live_session_repo import InMemoryLiveSessionRepo, LiveSessionRepo
from app.repos.pg_activity_repo import PgActivityRepo
from app.repos.pg_assignment_repo import PgAssignmentRepo
from app.repos.pg_course_repo import PgCourseRepo
from app.repos.pg_enrollment_repo import PgEnrollmentRepo
from app.repos.pg_live_session_repo import PgLiveSessionRepo
from app.repos.pg_progress_repo import PgProgressRepo
from app.repos.pg_quiz_repo import PgQuizRepo
from app.repos.pg_user_repo import PgUserRepo
from app.repos.progress_repo import InMemoryProgressRepo, ProgressRepo
from app.repos.quiz_repo import InMemoryQuizRepo, QuizRepo
from app.repos.user_repo import InMemoryUserRepo, UserRepo


@dataclass
class Store:
    users: UserRepo
    courses: CourseRepo
    enrollments: EnrollmentRepo
    progress: ProgressRepo
    activities: ActivityRepo
    quizzes: QuizRepo
    live_sessions: LiveSessionRepo
    assignments: AssignmentRepo
    # true when writes only become visible at commit (a Postgres session)
    transactional: bool = False
    _after_commit: list[Callable[[], Awaitable[None]]] = field(
        default_factory=list, repr=False
    )

    async def after_commit(self, hook: Callable[[], Awaitable[None]]) -> None:
        """Run ``hook`` once this request's writes are visible to other readers.

        Cache invalidation goes through here: dropping a key before the
        commit lets a concurrent read re-cache the old rows.
        """
        if self.transactional:
            self._after_commit.append(hook)
        else:
            await hook()

    async def run_after_commit(self) -> None:
        hooks, self._after_commit = self._after_commit, []
        for hook in hooks:
            await hook()


def in_memory_store() -> Store:
    return Store(
        users=InMemoryUserRepo(),
        courses=InMemoryCourseRepo(),
        enrollments=InMemoryEnrollmentRepo(),
        progress=InMemoryProgressRepo(),
        activities=InMemoryActivityRepo(),
        quizzes=InMemoryQuizRepo(),
        live_sessions=InMemoryLiveSessionRepo(),
        assignments=InMemoryAssignmentRepo(),
    )


def pg_store(session: AsyncSession) -> Store:
    return Store(
        users=PgUserRepo(session),
        courses=PgCourseRepo(session),
        enrollments=PgEnrollmentRepo(session),
        progress=PgProgressRepo(session),
        activities=PgActivityRepo(session),
        quizzes=PgQuizRepo(session),
        live_sessions=PgLiveSessionRepo(session),
        assignments=PgAssignmentRepo(session),
        transactional=True,
    )


# Module-level singleton used when no database is configured
memory_store = in_memory_store()


def reset_memory_store() -> None:
    """Swap fresh repos into the shared store (test isolation)."""
    fresh = in_memory_store()
    for f in fields(Store):
        setattr(memory_store, f.name, getattr(fresh, f.name))


async def get_store() -> AsyncGenerator[Store, None]:
    """FastAPI dependency yielding the request's Store."""
    if async_session_factory is None:
        yield memory_store
        return

    async with async_session_factory() as session:
        store = pg_store(session)
        try:
            yield store
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        await store.run_after_commit()
