"""create settlement ledger

Revision ID: 3b9e2c71d4a0
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3b9e2c71d4a0"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _uuid(name: str, *fks: sa.ForeignKey, **kw) -> sa.Column:
    return sa.Column(name, postgresql.UUID(as_uuid=True), *fks, **kw)


def upgrade() -> None:
    op.create_table(
        "users",
        _uuid("id", primary_key=True),
        sa.Column("email", sa.String(length=320), nullable=False, unique=True),
        sa.Column("password_hash", sa.Text(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False, server_default=""),
        sa.Column(
            "roles",
            postgresql.ARRAY(sa.String()),
            nullable=False,
            server_default="{}",
        ),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column(
            "email_verified", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
    )
    op.create_table(
        "organizations",
        _uuid("id", primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("slug", sa.String(length=255), nullable=False, unique=True),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="active"),
    )
    op.create_table(
        "org_memberships",
        _uuid("org_id", sa.ForeignKey("organizations.id"), primary_key=True),
        _uuid("user_id", sa.ForeignKey("users.id"), primary_key=True),
        sa.Column("org_role", sa.String(length=32), nullable=False),
    )
    op.create_table(
        "groups",
        _uuid("id", primary_key=True),
        _uuid("org_id", sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
    )
    op.create_table(
        "group_members",
        _uuid("group_id", sa.ForeignKey("groups.id"), primary_key=True),
        _uuid("user_id", sa.ForeignKey("users.id"), primary_key=True),
    )
    op.create_table(
        "single_use_tokens",
        _uuid("id", primary_key=True),
        _uuid("subject_id", sa.ForeignKey("users.id"), nullable=False),
        sa.Column("purpose", sa.String(length=32), nullable=False),
        sa.Column("token_hash", sa.String(length=128), nullable=False, unique=True),
        sa.Column("expires_at", sa.BigInteger(), nullable=False),
        sa.Column("used_at", sa.BigInteger(), nullable=True),
    )
    op.create_index(
        "ix_single_use_tokens_subject", "single_use_tokens", ["subject_id", "purpose"]
    )

    op.create_table(
        "courses",
        _uuid("id", primary_key=True),
        sa.Column("slug", sa.String(length=255), nullable=False, unique=True),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("price", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("currency", sa.String(length=3), nullable=False, server_default="NGN"),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="draft"),
        _uuid("created_by", sa.ForeignKey("users.id"), nullable=True),
        _uuid("org_id", sa.ForeignKey("organizations.id"), nullable=True),
    )
    op.create_table(
        "lessons",
        _uuid("id", primary_key=True),
        _uuid("course_id", sa.ForeignKey("courses.id"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("content", sa.Text(), nullable=False, server_default=""),
    )
    op.create_table(
        "quizzes",
        _uuid("id", primary_key=True),
        _uuid("course_id", sa.ForeignKey("courses.id"), nullable=False),
        _uuid("lesson_id", sa.ForeignKey("lessons.id"), nullable=True),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("passing_score", sa.Integer(), nullable=False),
        sa.Column(
            "questions",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
    )

    op.create_table(
        "lesson_completions",
        _uuid("user_id", sa.ForeignKey("users.id"), primary_key=True),
        _uuid("lesson_id", sa.ForeignKey("lessons.id"), primary_key=True),
        _uuid("course_id", sa.ForeignKey("courses.id"), nullable=False),
        sa.Column("completed_at", sa.BigInteger(), nullable=False),
    )
    op.create_table(
        "quiz_attempts",
        _uuid("id", primary_key=True),
        _uuid("user_id", sa.ForeignKey("users.id"), nullable=False),
        _uuid("quiz_id", sa.ForeignKey("quizzes.id"), nullable=False),
        _uuid("course_id", sa.ForeignKey("courses.id"), nullable=False),
        sa.Column("answers", postgresql.JSONB(), nullable=False),
        sa.Column("score", sa.Integer(), nullable=False),
        sa.Column("passed", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.BigInteger(), nullable=False),
    )
    op.create_index(
        "ix_quiz_attempts_user_course", "quiz_attempts", ["user_id", "course_id"]
    )
    op.create_table(
        "enrollments",
        _uuid("user_id", sa.ForeignKey("users.id"), primary_key=True),
        _uuid("course_id", sa.ForeignKey("courses.id"), primary_key=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="active"),
        sa.Column("created_at", sa.BigInteger(), nullable=False),
    )
    op.create_table(
        "progress",
        _uuid("user_id", sa.ForeignKey("users.id"), primary_key=True),
        _uuid("course_id", sa.ForeignKey("courses.id"), primary_key=True),
        sa.Column("enrolled", sa.Boolean(), nullable=False),
        sa.Column("completed_lessons", sa.Integer(), nullable=False),
        sa.Column("total_lessons", sa.Integer(), nullable=False),
        sa.Column("total_quizzes", sa.Integer(), nullable=False),
        sa.Column("attempted_quizzes", sa.Integer(), nullable=False),
        sa.Column("quiz_percent", sa.Integer(), nullable=False),
        sa.Column("last_quiz_score", sa.Integer(), nullable=True),
        sa.Column("last_quiz_passed", sa.Boolean(), nullable=True),
        sa.Column("percentage", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("last_activity_at", sa.BigInteger(), nullable=True),
    )

    op.create_table(
        "payments",
        _uuid("id", primary_key=True),
        _uuid("payer_id", sa.ForeignKey("users.id"), nullable=False),
        sa.Column("amount", sa.BigInteger(), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("reference", sa.String(length=64), nullable=False, unique=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="pending"),
        sa.Column("intent", postgresql.JSONB(), nullable=False),
        sa.Column("access_code", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("authorization_url", sa.Text(), nullable=False, server_default=""),
        sa.Column("gateway_status", sa.String(length=32), nullable=True),
        sa.Column("created_at", sa.BigInteger(), nullable=False),
        sa.Column("settled_at", sa.BigInteger(), nullable=True),
    )
    op.create_table(
        "subscriptions",
        _uuid("id", primary_key=True),
        _uuid("organization_id", sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("plan", sa.String(length=32), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("current_period_start", sa.BigInteger(), nullable=False),
        sa.Column("current_period_end", sa.BigInteger(), nullable=False),
        sa.Column("created_at", sa.BigInteger(), nullable=False),
        sa.Column("payment_reference", sa.String(length=64), nullable=True),
    )
    op.create_index(
        "ix_subscriptions_org_created", "subscriptions", ["organization_id", "created_at"]
    )


def downgrade() -> None:
    op.drop_index("ix_subscriptions_org_created", table_name="subscriptions")
    op.drop_table("subscriptions")
    op.drop_table("payments")
    op.drop_table("progress")
    op.drop_table("enrollments")
    op.drop_index("ix_quiz_attempts_user_course", table_name="quiz_attempts")
    op.drop_table("quiz_attempts")
    op.drop_table("lesson_completions")
    op.drop_table("quizzes")
    op.drop_table("lessons")
    op.drop_table("courses")
    op.drop_index("ix_single_use_tokens_subject", table_name="single_use_tokens")
    op.drop_table("single_use_tokens")
    op.drop_table("group_members")
    op.drop_table("groups")
    op.drop_table("org_memberships")
    op.drop_table("organizations")
    op.drop_table("users")
