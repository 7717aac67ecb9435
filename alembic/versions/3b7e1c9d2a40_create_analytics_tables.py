"""create analytics tables

Revision ID: 3b7e1c9d2a40
Revises:
Create Date: 2026-10-17 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3b7e1c9d2a40"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _published_at() -> sa.Column:
    return sa.Column("published_at", sa.DateTime(timezone=True), nullable=True)


def upgrade() -> None:
    op.create_table(
        "departments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
    )
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(length=320), nullable=False, unique=True),
        sa.Column("username", sa.String(length=255), nullable=False, server_default=""),
        sa.Column(
            "employee_name", sa.String(length=255), nullable=False, server_default=""
        ),
        sa.Column("company", sa.String(length=32), nullable=True),
        sa.Column(
            "department_id",
            sa.Integer(),
            sa.ForeignKey("departments.id"),
            nullable=True,
        ),
        sa.Column("blocked", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
    )
    op.create_index("ix_users_department_id", "users", ["department_id"])

    op.create_table(
        "course_categories",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
    )
    op.create_table(
        "courses",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column(
            "category_id",
            sa.Integer(),
            sa.ForeignKey("course_categories.id"),
            nullable=True,
        ),
    )
    op.create_table(
        "user_progress",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("course_id", sa.Integer(), sa.ForeignKey("courses.id"), nullable=False),
        sa.Column(
            "progress_status",
            sa.String(length=32),
            nullable=False,
            server_default="Not_started",
        ),
        sa.Column("progress_percentage", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("time_spent_minutes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("completed_modules", sa.JSON(), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_accessed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "certificate_issued", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
    )
    op.create_index("ix_user_progress_user_id", "user_progress", ["user_id"])
    op.create_index(
        "ix_user_progress_last_accessed_at", "user_progress", ["last_accessed_at"]
    )

    op.create_table(
        "quiz_submissions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "submitted_by_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False
        ),
        sa.Column("quiz_id", sa.Integer(), nullable=False),
        sa.Column("score", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("passed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("attempt_number", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index(
        "ix_quiz_submissions_submitted_by_id", "quiz_submissions", ["submitted_by_id"]
    )
    op.create_index(
        "ix_quiz_submissions_submitted_at", "quiz_submissions", ["submitted_at"]
    )

    op.create_table(
        "holidays",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("date", sa.Date(), nullable=True),
        sa.Column("company", sa.String(length=255), nullable=True),
        _published_at(),
    )
    op.create_table(
        "news_categories",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
    )
    op.create_table(
        "news",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column(
            "news_category_id",
            sa.Integer(),
            sa.ForeignKey("news_categories.id"),
            nullable=True,
        ),
        sa.Column("company", sa.String(length=255), nullable=True),
        _published_at(),
    )
    op.create_table(
        "events",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("event_type", sa.String(length=64), nullable=True),
        sa.Column("company", sa.String(length=255), nullable=True),
        _published_at(),
    )
    op.create_table(
        "townhalls",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("meeting_content_type", sa.String(length=32), nullable=True),
        _published_at(),
    )


def downgrade() -> None:
    op.drop_table("townhalls")
    op.drop_table("events")
    op.drop_table("news")
    op.drop_table("news_categories")
    op.drop_table("holidays")
    op.drop_index("ix_quiz_submissions_submitted_at", table_name="quiz_submissions")
    op.drop_index("ix_quiz_submissions_submitted_by_id", table_name="quiz_submissions")
    op.drop_table("quiz_submissions")
    op.drop_index("ix_user_progress_last_accessed_at", table_name="user_progress")
    op.drop_index("ix_user_progress_user_id", table_name="user_progress")
    op.drop_table("user_progress")
    op.drop_table("courses")
    op.drop_table("course_categories")
    op.drop_index("ix_users_department_id", table_name="users")
    op.drop_table("users")
    op.drop_table("departments")
