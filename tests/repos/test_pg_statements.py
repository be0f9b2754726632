"""The Postgres repos lean on single statements for their invariants.

These compile the statements against the postgresql dialect (no server
needed) and check the clauses that make them idempotent or conditional.
"""

from __future__ import annotations

from pathlib import Path
from uuid import uuid4

from sqlalchemy import UniqueConstraint
from sqlalchemy.dialects import postgresql

from alembic.config import Config
from alembic.script import ScriptDirectory
from app.db import tables  # noqa: F401
from app.db.engine import Base
from app.models.assignment import Submission
from app.models.progress import LessonProgress
from app.repos.pg_assignment_repo import upsert_submission_statement
from app.repos.pg_course_repo import search_statement
from app.repos.pg_progress_repo import upsert_statement


def _sql(stmt) -> str:
    return str(stmt.compile(dialect=postgresql.dialect()))


def test_progress_upsert_conflicts_on_user_and_lesson() -> None:
    record = LessonProgress(user_id=uuid4(), lesson_id=uuid4(), completed=False, updated_at=5)
    sql = _sql(upsert_statement(record))

    assert sql.startswith("INSERT INTO lesson_progress")
    assert "ON CONFLICT (user_id, lesson_id) DO UPDATE SET" in sql
    assert "completed = " in sql
    assert "updated_at = " in sql


def test_table_metadata_carries_uniqueness() -> None:
    meta = Base.metadata.tables
    enrollment_uniques = {
        tuple(c.name for c in con.columns)
        for con in meta["enrollments"].constraints
        if isinstance(con, UniqueConstraint)
    }
    attempt_uniques = {
        tuple(c.name for c in con.columns)
        for con in meta["quiz_attempts"].constraints
        if isinstance(con, UniqueConstraint)
    }

    assert ("user_id", "course_id") in enrollment_uniques
    assert ("user_id", "quiz_id", "attempt_number") in attempt_uniques
    assert ("user_id", "lesson_id") in _uniques(meta["assignment_submissions"])
    assert ("submission_id", "reviewer_id") in _uniques(meta["peer_reviews"])
    assert [c.name for c in meta["lesson_progress"].primary_key] == ["user_id", "lesson_id"]
    assert [c.name for c in meta["activity_completions"].primary_key] == [
        "user_id",
        "activity_id",
    ]


def test_migrations_have_a_single_head() -> None:
    ini = Path(__file__).resolve().parents[2] / "alembic.ini"
    script = ScriptDirectory.from_config(Config(str(ini)))
    assert len(script.get_heads()) == 1


def _uniques(table) -> set[tuple[str, ...]]:
    return {
        tuple(c.name for c in con.columns)
        for con in table.constraints
        if isinstance(con, UniqueConstraint)
    }


def test_resubmission_reopens_the_existing_row() -> None:
    submission = Submission.new(user_id=uuid4(), lesson_id=uuid4(), content="v2", now=7)
    sql = _sql(upsert_submission_statement(submission))

    assert sql.startswith("INSERT INTO assignment_submissions")
    assert "ON CONFLICT (user_id, lesson_id) DO UPDATE SET" in sql
    assert "content = " in sql
    assert "status = " in sql
    assert "created_at = " not in sql.split("DO UPDATE SET", 1)[1]
    assert "RETURNING" in sql


def test_search_is_case_insensitive_over_published_courses() -> None:
    sql = _sql(search_statement("python", "data"))

    assert sql.count("ILIKE") == 3
    assert "courses.status = " in sql
    assert "courses.category = " in sql
    assert "ORDER BY courses.created_at DESC" in sql
