"""initial lms schema

Revision ID: 3b1d0e7a9c42
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3b1d0e7a9c42"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _uuid(name: str, *args, **kwargs) -> sa.Column:
    return sa.Column(name, postgresql.UUID(as_uuid=True), *args, **kwargs)


def upgrade() -> None:
    op.create_table(
        "users",
        _uuid("id", primary_key=True),
        sa.Column("email", sa.String(length=320), nullable=False, server_default=""),
        sa.Column("name", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("role", sa.String(length=16), nullable=False, server_default="user"),
        sa.Column("banned", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("payment_customer_id", sa.String(length=255), nullable=True),
    )

    op.create_table(
        "courses",
        _uuid("id", primary_key=True),
        sa.Column("slug", sa.String(length=255), nullable=False, unique=True),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("price", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("level", sa.String(length=32), nullable=False, server_default="beginner"),
        sa.Column("category", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="draft"),
        sa.Column("payment_price_id", sa.String(length=255), nullable=True),
        _uuid("created_by", sa.ForeignKey("users.id"), nullable=True),
    )
    op.create_table(
        "chapters",
        _uuid("id", primary_key=True),
        _uuid("course_id", sa.ForeignKey("courses.id", ondelete="CASCADE"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(length=500), nullable=False),
    )
    op.create_index("ix_chapters_course_id", "chapters", ["course_id"])
    op.create_table(
        "lessons",
        _uuid("id", primary_key=True),
        _uuid("chapter_id", sa.ForeignKey("chapters.id", ondelete="CASCADE"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("video_key", sa.String(length=500), nullable=True),
        sa.Column("thumbnail_key", sa.String(length=500), nullable=True),
        sa.Column("is_free_preview", sa.Boolean(), nullable=False, server_default=sa.false()),
    )
    op.create_index("ix_lessons_chapter_id", "lessons", ["chapter_id"])

    op.create_table(
        "enrollments",
        _uuid("id", primary_key=True),
        _uuid("user_id", sa.ForeignKey("users.id"), nullable=False),
        _uuid("course_id", sa.ForeignKey("courses.id"), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="pending"),
        sa.Column("amount", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("payment_reference", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.Integer(), nullable=False),
        sa.Column("updated_at", sa.Integer(), nullable=False),
        sa.UniqueConstraint("user_id", "course_id"),
    )
    op.create_table(
        "lesson_progress",
        _uuid("user_id", sa.ForeignKey("users.id"), primary_key=True),
        _uuid(
            "lesson_id",
            sa.ForeignKey("lessons.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("completed", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("updated_at", sa.Integer(), nullable=False),
    )

    op.create_table(
        "activities",
        _uuid("id", primary_key=True),
        _uuid("course_id", sa.ForeignKey("courses.id", ondelete="CASCADE"), nullable=False),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("type", sa.String(length=32), nullable=False, server_default="assignment"),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("start_date", sa.Integer(), nullable=True),
        sa.Column("due_date", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.Integer(), nullable=False),
    )
    op.create_index("ix_activities_course_id", "activities", ["course_id"])
    op.create_table(
        "activity_completions",
        _uuid("user_id", sa.ForeignKey("users.id"), primary_key=True),
        _uuid(
            "activity_id",
            sa.ForeignKey("activities.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("completed_at", sa.Integer(), nullable=False),
    )

    op.create_table(
        "quizzes",
        _uuid("id", primary_key=True),
        _uuid("course_id", sa.ForeignKey("courses.id", ondelete="CASCADE"), nullable=False),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("passing_score", sa.Integer(), nullable=False, server_default="70"),
        sa.Column("time_limit", sa.Integer(), nullable=True),
        sa.Column("allowed_attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("shuffle_questions", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            "show_correct_answers", sa.Boolean(), nullable=False, server_default=sa.true()
        ),
        sa.Column("start_date", sa.Integer(), nullable=True),
        sa.Column("due_date", sa.Integer(), nullable=True),
        sa.Column("is_published", sa.Boolean(), nullable=False, server_default=sa.false()),
        _uuid("created_by", sa.ForeignKey("users.id"), nullable=True),
    )
    op.create_index("ix_quizzes_course_id", "quizzes", ["course_id"])
    op.create_table(
        "quiz_questions",
        _uuid("id", primary_key=True),
        _uuid("quiz_id", sa.ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("type", sa.String(length=32), nullable=False),
        sa.Column("prompt", sa.Text(), nullable=False),
        sa.Column(
            "options", postgresql.ARRAY(sa.String()), nullable=False, server_default="{}"
        ),
        sa.Column("correct_answer_json", sa.Text(), nullable=False),
        sa.Column("explanation", sa.Text(), nullable=False, server_default=""),
        sa.Column("points", sa.Integer(), nullable=False, server_default="1"),
    )
    op.create_index("ix_quiz_questions_quiz_id", "quiz_questions", ["quiz_id"])
    op.create_table(
        "quiz_attempts",
        _uuid("id", primary_key=True),
        _uuid("user_id", sa.ForeignKey("users.id"), nullable=False),
        _uuid("quiz_id", sa.ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False),
        sa.Column("attempt_number", sa.Integer(), nullable=False),
        sa.Column(
            "status", sa.String(length=16), nullable=False, server_default="in_progress"
        ),
        sa.Column("answers_json", sa.Text(), nullable=False, server_default="{}"),
        sa.Column("results_json", sa.Text(), nullable=False, server_default="[]"),
        sa.Column("score", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_points", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("percentage", sa.Float(), nullable=False, server_default="0"),
        sa.Column("passed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_auto_submitted", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("started_at", sa.Integer(), nullable=False),
        sa.Column("submitted_at", sa.Integer(), nullable=True),
        sa.Column("time_taken_seconds", sa.Integer(), nullable=True),
        sa.UniqueConstraint("user_id", "quiz_id", "attempt_number"),
    )

    op.create_table(
        "live_sessions",
        _uuid("id", primary_key=True),
        _uuid("course_id", sa.ForeignKey("courses.id", ondelete="CASCADE"), nullable=False),
        _uuid("host_user_id", sa.ForeignKey("users.id"), nullable=False),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("starts_at", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="scheduled"),
        sa.Column("started_at", sa.Integer(), nullable=True),
        sa.Column("ended_at", sa.Integer(), nullable=True),
    )


def downgrade() -> None:
    for table in (
        "live_sessions",
        "quiz_attempts",
        "quiz_questions",
        "quizzes",
        "activity_completions",
        "activities",
        "lesson_progress",
        "enrollments",
        "lessons",
        "chapters",
        "courses",
        "users",
    ):
        op.drop_table(table)
