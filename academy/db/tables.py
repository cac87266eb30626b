"""SQLAlchemy table definitions.

Rows map onto the frozen dataclasses in academy.models; the PostgreSQL
store converts between the two.  Module content and quizzes are kept as
JSON text and validated into typed shapes on the way out.
"""

from __future__ import annotations

import uuid
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import ARRAY, UUID
from sqlalchemy.orm import Mapped, mapped_column

from academy.db.engine import Base


class UserRow(Base):
    __tablename__ = "users"

    address: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    avatar_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_creator: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    bio: Mapped[str | None] = mapped_column(Text, nullable=True)
    website: Mapped[str | None] = mapped_column(Text, nullable=True)
    twitter: Mapped[str | None] = mapped_column(String(255), nullable=True)
    linkedin: Mapped[str | None] = mapped_column(String(255), nullable=True)
    specialties: Mapped[list[str]] = mapped_column(
        ARRAY(String), nullable=False, default=[]
    )
    experience_years: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[int] = mapped_column(Integer, nullable=False)
    updated_at: Mapped[int | None] = mapped_column(Integer, nullable=True)


class CourseRow(Base):
    __tablename__ = "courses"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    owner_address: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.address"), nullable=False
    )
    price: Mapped[Decimal] = mapped_column(Numeric(36, 18), nullable=False)
    category: Mapped[str] = mapped_column(String(128), nullable=False, default="")
    level: Mapped[str] = mapped_column(String(32), nullable=False, default="Beginner")
    thumbnail_url: Mapped[str] = mapped_column(Text, nullable=False, default="")
    duration: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    rating: Mapped[float] = mapped_column(
        Numeric(3, 2, asdecimal=False), nullable=False, default=0
    )
    total_students: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    certificate_json: Mapped[str] = mapped_column(Text, nullable=False)


class ModuleRow(Base):
    __tablename__ = "modules"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    course_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("courses.id"), nullable=False, index=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    type: Mapped[str] = mapped_column(String(16), nullable=False)  # video|text|image
    content_json: Mapped[str] = mapped_column(Text, nullable=False)
    quiz_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    duration: Mapped[str] = mapped_column(String(64), nullable=False, default="")


class EnrollmentRow(Base):
    __tablename__ = "enrollments"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    learner: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.address"), nullable=False
    )
    course_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("courses.id"), nullable=False
    )
    owner_address: Mapped[str] = mapped_column(String(64), nullable=False)
    progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completed_modules: Mapped[list[str]] = mapped_column(
        ARRAY(String), nullable=False, default=[]
    )
    current_module: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    certificate_minted: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    certificate_token_id: Mapped[str | None] = mapped_column(
        String(128), nullable=True
    )
    enrolled_at: Mapped[int] = mapped_column(Integer, nullable=False)
    last_accessed_at: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        UniqueConstraint("learner", "course_id", name="uq_enrollments_learner_course"),
    )


class TransactionRow(Base):
    __tablename__ = "transactions"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    from_user_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    type: Mapped[str] = mapped_column(
        String(16), nullable=False
    )  # earning|withdrawal|deposit|fee
    amount: Mapped[Decimal] = mapped_column(Numeric(36, 18), nullable=False)
    currency: Mapped[str] = mapped_column(String(16), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default="pending"
    )  # completed|pending|failed
    tx_hash: Mapped[str | None] = mapped_column(String(128), nullable=True)
    course_id: Mapped[str | None] = mapped_column(
        String(64), ForeignKey("courses.id"), nullable=True
    )
    created_at: Mapped[int] = mapped_column(Integer, nullable=False)


class CourseRatingRow(Base):
    __tablename__ = "course_ratings"

    learner: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.address"), primary_key=True
    )
    course_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("courses.id"), primary_key=True
    )
    instructor: Mapped[str] = mapped_column(String(64), nullable=False)
    stars: Mapped[int] = mapped_column(Integer, nullable=False)
    review: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[int] = mapped_column(Integer, nullable=False)
    updated_at: Mapped[int] = mapped_column(Integer, nullable=False)
