"""peer review and dashboards

Revision ID: 8e4f2a61c5d7
Revises: 3b1d0e7a9c42
Create Date: 2026-10-19 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "8e4f2a61c5d7"
down_revision: str | Sequence[str] | None = "3b1d0e7a9c42"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _uuid(name: str, *args, **kwargs) -> sa.Column:
    return sa.Column(name, postgresql.UUID(as_uuid=True), *args, **kwargs)


def upgrade() -> None:
    op.add_column(
        "users",
        sa.Column("created_at", sa.Integer(), nullable=False, server_default="0"),
    )
    op.add_column(
        "courses",
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
    )
    op.add_column(
        "courses",
        sa.Column("created_at", sa.Integer(), nullable=False, server_default="0"),
    )
    op.add_column(
        "lessons",
        sa.Column(
            "lesson_type", sa.String(length=16), nullable=False, server_default="video"
        ),
    )
    op.add_column(
        "lessons",
        sa.Column(
            "min_reviews_required", sa.Integer(), nullable=False, server_default="2"
        ),
    )

    op.create_table(
        "assignment_submissions",
        _uuid("id", primary_key=True),
        _uuid("user_id", sa.ForeignKey("users.id"), nullable=False),
        _uuid(
            "lesson_id", sa.ForeignKey("lessons.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column(
            "status", sa.String(length=16), nullable=False, server_default="submitted"
        ),
        sa.Column("created_at", sa.Integer(), nullable=False),
        sa.Column("updated_at", sa.Integer(), nullable=False),
        sa.UniqueConstraint("user_id", "lesson_id"),
    )
    op.create_index(
        "ix_assignment_submissions_lesson_status",
        "assignment_submissions",
        ["lesson_id", "status"],
    )

    op.create_table(
        "peer_reviews",
        _uuid("id", primary_key=True),
        _uuid(
            "submission_id",
            sa.ForeignKey("assignment_submissions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        _uuid("reviewer_id", sa.ForeignKey("users.id"), nullable=False),
        sa.Column("score", sa.Integer(), nullable=False),
        sa.Column("feedback", sa.Text(), nullable=False),
        sa.Column("created_at", sa.Integer(), nullable=False),
        sa.UniqueConstraint("submission_id", "reviewer_id"),
    )


def downgrade() -> None:
    op.drop_table("peer_reviews")
    op.drop_index(
        "ix_assignment_submissions_lesson_status", table_name="assignment_submissions"
    )
    op.drop_table("assignment_submissions")
    op.drop_column("lessons", "min_reviews_required")
    op.drop_column("lessons", "lesson_type")
    op.drop_column("courses", "created_at")
    op.drop_column("courses", "description")
    op.drop_column("users", "created_at")
