"""create learning tables

Revision ID: 3b7e1c9a2d40
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3b7e1c9a2d40"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("address", sa.String(length=64), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("avatar_url", sa.Text(), nullable=True),
        sa.Column("is_creator", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("bio", sa.Text(), nullable=True),
        sa.Column("website", sa.Text(), nullable=True),
        sa.Column("twitter", sa.String(length=255), nullable=True),
        sa.Column("linkedin", sa.String(length=255), nullable=True),
        sa.Column(
            "specialties",
            postgresql.ARRAY(sa.String()),
            nullable=False,
            server_default="{}",
        ),
        sa.Column("experience_years", sa.Integer(), nullable=True),
        sa.Column("is_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.Integer(), nullable=False),
        sa.Column("updated_at", sa.Integer(), nullable=True),
    )

    op.create_table(
        "courses",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column(
            "owner_address",
            sa.String(length=64),
            sa.ForeignKey("users.address"),
            nullable=False,
        ),
        sa.Column("price", sa.Numeric(36, 18), nullable=False),
        sa.Column("category", sa.String(length=128), nullable=False, server_default=""),
        sa.Column("level", sa.String(length=32), nullable=False, server_default="Beginner"),
        sa.Column("thumbnail_url", sa.Text(), nullable=False, server_default=""),
        sa.Column("duration", sa.String(length=64), nullable=False, server_default=""),
        sa.Column("rating", sa.Numeric(3, 2), nullable=False, server_default="0"),
        sa.Column("total_students", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("certificate_json", sa.Text(), nullable=False),
    )

    op.create_table(
        "modules",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column(
            "course_id", sa.String(length=64), sa.ForeignKey("courses.id"), nullable=False
        ),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("type", sa.String(length=16), nullable=False),
        sa.Column("content_json", sa.Text(), nullable=False),
        sa.Column("quiz_json", sa.Text(), nullable=True),
        sa.Column("duration", sa.String(length=64), nullable=False, server_default=""),
    )
    op.create_index("ix_modules_course_id", "modules", ["course_id"])

    op.create_table(
        "enrollments",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "learner", sa.String(length=64), sa.ForeignKey("users.address"), nullable=False
        ),
        sa.Column(
            "course_id", sa.String(length=64), sa.ForeignKey("courses.id"), nullable=False
        ),
        sa.Column("owner_address", sa.String(length=64), nullable=False),
        sa.Column("progress", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "completed_modules",
            postgresql.ARRAY(sa.String()),
            nullable=False,
            server_default="{}",
        ),
        sa.Column("current_module", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "certificate_minted", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column("certificate_token_id", sa.String(length=128), nullable=True),
        sa.Column("enrolled_at", sa.Integer(), nullable=False),
        sa.Column("last_accessed_at", sa.Integer(), nullable=False),
        sa.UniqueConstraint("learner", "course_id", name="uq_enrollments_learner_course"),
    )

    op.create_table(
        "transactions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("from_user_id", sa.String(length=64), nullable=True),
        sa.Column("type", sa.String(length=16), nullable=False),
        sa.Column("amount", sa.Numeric(36, 18), nullable=False),
        sa.Column("currency", sa.String(length=16), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="pending"),
        sa.Column("tx_hash", sa.String(length=128), nullable=True),
        sa.Column(
            "course_id", sa.String(length=64), sa.ForeignKey("courses.id"), nullable=True
        ),
        sa.Column("created_at", sa.Integer(), nullable=False),
    )
    op.create_index("ix_transactions_user_id", "transactions", ["user_id"])

    op.create_table(
        "course_ratings",
        sa.Column(
            "learner", sa.String(length=64), sa.ForeignKey("users.address"), primary_key=True
        ),
        sa.Column(
            "course_id", sa.String(length=64), sa.ForeignKey("courses.id"), primary_key=True
        ),
        sa.Column("instructor", sa.String(length=64), nullable=False),
        sa.Column("stars", sa.Integer(), nullable=False),
        sa.Column("review", sa.Text(), nullable=True),
        sa.Column("created_at", sa.Integer(), nullable=False),
        sa.Column("updated_at", sa.Integer(), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("course_ratings")
    op.drop_index("ix_transactions_user_id", table_name="transactions")
    op.drop_table("transactions")
    op.drop_table("enrollments")
    op.drop_index("ix_modules_course_id", table_name="modules")
    op.drop_table("modules")
    op.drop_table("courses")
    op.drop_table("users")
