"""PostgreSQL implementation of LearningStore."""

from __future__ import annotations

import json
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from decimal import Decimal

from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from academy.db.tables import (
    CourseRatingRow,
    CourseRow,
    EnrollmentRow,
    ModuleRow,
    TransactionRow,
    UserRow,
)
from academy.models.course import (
    CertificateMetadata,
    Course,
    Module,
    content_from_dict,
    quiz_from_dict,
)
from academy.models.enrollment import Enrollment
from academy.models.ledger import TransactionRecord
from academy.models.rating import Rating
from academy.models.user import User
from academy.repos.store import DuplicateEnrollmentError, PersistenceError


class PgLearningStore:
    """Satisfies the LearningStore Protocol using PostgreSQL via SQLAlchemy.

    Each call runs in its own transaction; SQLAlchemy errors surface as
    PersistenceError so the workflow sees one failure type per seam.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._sessions = session_factory

    @asynccontextmanager
    async def _tx(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self._sessions() as session, session.begin():
                yield session
        except IntegrityError as e:
            if "uq_enrollments_learner_course" in str(e.orig):
                raise DuplicateEnrollmentError(str(e.orig)) from e
            raise PersistenceError(str(e)) from e
        except SQLAlchemyError as e:
            raise PersistenceError(str(e)) from e

    # --- users ---

    async def get_user(self, address: str) -> User | None:
        async with self._tx() as session:
            row = await session.get(UserRow, address)
            return _row_to_user(row) if row is not None else None

    async def upsert_user(self, user: User) -> User:
        values = {
            "address": user.address,
            "name": user.name,
            "avatar_url": user.avatar_url,
            "is_creator": user.is_creator,
            "bio": user.bio,
            "website": user.website,
            "twitter": user.twitter,
            "linkedin": user.linkedin,
            "specialties": list(user.specialties),
            "experience_years": user.experience_years,
            "is_verified": user.is_verified,
            "created_at": user.created_at,
            "updated_at": user.updated_at,
        }
        stmt = insert(UserRow).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[UserRow.address],
            set_={k: v for k, v in values.items() if k not in ("address", "created_at")},
        ).returning(UserRow)
        async with self._tx() as session:
            row = (await session.execute(stmt)).scalar_one()
            return _row_to_user(row)

    # --- courses ---

    async def list_courses(self) -> list[Course]:
        async with self._tx() as session:
            rows = (await session.execute(select(CourseRow))).scalars().all()
            return [await self._load_course(session, row) for row in rows]

    async def get_course(self, course_id: str) -> Course | None:
        async with self._tx() as session:
            row = await session.get(CourseRow, course_id)
            if row is None:
                return None
            return await self._load_course(session, row)

    async def _load_course(self, session: AsyncSession, row: CourseRow) -> Course:
        stmt = (
            select(ModuleRow)
            .where(ModuleRow.course_id == row.id)
            .order_by(ModuleRow.position)
        )
        modules = (await session.execute(stmt)).scalars().all()
        # Rating is derived from submitted ratings; the column is the fallback.
        average, reviews = (
            await session.execute(
                select(func.avg(CourseRatingRow.stars), func.count()).where(
                    CourseRatingRow.course_id == row.id
                )
            )
        ).one()
        cert = json.loads(row.certificate_json)
        return Course(
            id=row.id,
            title=row.title,
            owner_address=row.owner_address,
            price=Decimal(row.price),
            modules=tuple(_row_to_module(m) for m in modules),
            certificate=CertificateMetadata(
                title=cert.get("title", row.title),
                issuer=cert.get("issuer", ""),
                description=cert.get("description", ""),
                image_url=cert.get("imageUrl", ""),
                attributes=tuple(cert.get("attributes") or ()),
            ),
            description=row.description,
            category=row.category,
            level=row.level,
            thumbnail_url=row.thumbnail_url,
            duration=row.duration,
            rating=float(average) if reviews else float(row.rating or 0),
            total_reviews=reviews,
            total_students=row.total_students,
        )

    # --- enrollments ---

    def _enrollment_query(self):
        module_count = (
            select(func.count(ModuleRow.id))
            .where(ModuleRow.course_id == EnrollmentRow.course_id)
            .scalar_subquery()
        )
        return select(EnrollmentRow, module_count)

    async def get_enrollment(self, learner: str, course_id: str) -> Enrollment | None:
        stmt = self._enrollment_query().where(
            EnrollmentRow.learner == learner, EnrollmentRow.course_id == course_id
        )
        async with self._tx() as session:
            result = (await session.execute(stmt)).one_or_none()
            if result is None:
                return None
            row, total = result
            return _row_to_enrollment(row, total)

    async def create_enrollment(
        self, learner: str, course_id: str, owner_address: str, *, enrolled_at: int
    ) -> Enrollment:
        row = EnrollmentRow(
            learner=learner,
            course_id=course_id,
            owner_address=owner_address,
            progress=0,
            completed_modules=[],
            current_module=0,
            certificate_minted=False,
            enrolled_at=enrolled_at,
            last_accessed_at=enrolled_at,
        )
        async with self._tx() as session:
            session.add(row)
            await session.flush()
        enrollment = await self.get_enrollment(learner, course_id)
        if enrollment is None:
            raise PersistenceError(f"enrollment {learner}/{course_id} vanished after insert")
        return enrollment

    async def update_enrollment_progress(
        self,
        learner: str,
        course_id: str,
        completed_module_ids: frozenset[str],
        progress: int,
        *,
        current_module_index: int,
        last_accessed_at: int,
    ) -> None:
        stmt = (
            update(EnrollmentRow)
            .where(
                EnrollmentRow.learner == learner, EnrollmentRow.course_id == course_id
            )
            .values(
                completed_modules=sorted(completed_module_ids),
                progress=progress,
                current_module=current_module_index,
                last_accessed_at=last_accessed_at,
            )
        )
        async with self._tx() as session:
            result = await session.execute(stmt)
            if result.rowcount == 0:
                raise PersistenceError(f"no enrollment for {learner} in {course_id}")

    async def set_current_module(self, learner: str, course_id: str, index: int) -> None:
        stmt = (
            update(EnrollmentRow)
            .where(
                EnrollmentRow.learner == learner, EnrollmentRow.course_id == course_id
            )
            .values(current_module=index)
        )
        async with self._tx() as session:
            result = await session.execute(stmt)
            if result.rowcount == 0:
                raise PersistenceError(f"no enrollment for {learner} in {course_id}")

    async def list_enrollments(self, learner: str) -> list[Enrollment]:
        stmt = self._enrollment_query().where(EnrollmentRow.learner == learner)
        async with self._tx() as session:
            rows = (await session.execute(stmt)).all()
            return [_row_to_enrollment(row, total) for row, total in rows]

    async def upsert_certificate_flag(
        self, learner: str, course_id: str, token_id: str
    ) -> None:
        stmt = (
            update(EnrollmentRow)
            .where(
                EnrollmentRow.learner == learner, EnrollmentRow.course_id == course_id
            )
            .values(certificate_minted=True, certificate_token_id=token_id)
        )
        async with self._tx() as session:
            result = await session.execute(stmt)
            if result.rowcount == 0:
                raise PersistenceError(f"no enrollment for {learner} in {course_id}")

    # --- transactions ---

    async def create_transaction(self, record: TransactionRecord) -> None:
        async with self._tx() as session:
            session.add(
                TransactionRow(
                    id=record.id,
                    user_id=record.user_id,
                    from_user_id=record.from_user_id,
                    type=record.type,
                    amount=record.amount,
                    currency=record.currency,
                    description=record.description,
                    status=record.status,
                    tx_hash=record.tx_hash,
                    course_id=record.course_id,
                    created_at=record.created_at,
                )
            )

    async def list_transactions(
        self, user_id: str, *, page: int = 1, limit: int = 20
    ) -> list[TransactionRecord]:
        stmt = (
            select(TransactionRow)
            .where(
                (TransactionRow.user_id == user_id)
                | (TransactionRow.from_user_id == user_id)
            )
            .order_by(TransactionRow.created_at.desc())
            .offset((max(page, 1) - 1) * limit)
            .limit(limit)
        )
        async with self._tx() as session:
            rows = (await session.execute(stmt)).scalars().all()
            return [_row_to_transaction(r) for r in rows]

    async def find_purchase(
        self, learner: str, course_id: str
    ) -> TransactionRecord | None:
        stmt = (
            select(TransactionRow)
            .where(
                TransactionRow.from_user_id == learner,
                TransactionRow.course_id == course_id,
            )
            .limit(1)
        )
        async with self._tx() as session:
            row = (await session.execute(stmt)).scalar_one_or_none()
            return _row_to_transaction(row) if row is not None else None

    # --- ratings ---

    async def upsert_rating(self, rating: Rating) -> None:
        stmt = insert(CourseRatingRow).values(
            learner=rating.learner,
            course_id=rating.course_id,
            instructor=rating.instructor,
            stars=rating.stars,
            review=rating.review,
            created_at=rating.created_at,
            updated_at=rating.updated_at,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[CourseRatingRow.learner, CourseRatingRow.course_id],
            set_={
                "stars": rating.stars,
                "review": rating.review,
                "updated_at": rating.updated_at,
            },
        )
        async with self._tx() as session:
            await session.execute(stmt)

    async def get_rating(self, learner: str, course_id: str) -> Rating | None:
        async with self._tx() as session:
            row = await session.get(CourseRatingRow, (learner, course_id))
            return _row_to_rating(row) if row is not None else None

    async def list_ratings(
        self, course_id: str, *, page: int = 1, limit: int = 10
    ) -> list[Rating]:
        stmt = (
            select(CourseRatingRow)
            .where(CourseRatingRow.course_id == course_id)
            .order_by(CourseRatingRow.created_at.desc())
            .offset((max(page, 1) - 1) * limit)
            .limit(limit)
        )
        async with self._tx() as session:
            rows = (await session.execute(stmt)).scalars().all()
            return [_row_to_rating(r) for r in rows]


def _row_to_user(row: UserRow) -> User:
    return User(
        address=row.address,
        name=row.name,
        avatar_url=row.avatar_url,
        is_creator=row.is_creator,
        bio=row.bio,
        website=row.website,
        twitter=row.twitter,
        linkedin=row.linkedin,
        specialties=tuple(row.specialties or ()),
        experience_years=row.experience_years,
        is_verified=row.is_verified,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_module(row: ModuleRow) -> Module:
    quiz = quiz_from_dict(json.loads(row.quiz_json)) if row.quiz_json else None
    return Module(
        id=row.id,
        title=row.title,
        type=row.type,  # type: ignore[arg-type]
        content=content_from_dict(row.type, json.loads(row.content_json)),
        position=row.position,
        duration=row.duration,
        quiz=quiz,
    )


def _row_to_enrollment(row: EnrollmentRow, total_modules: int) -> Enrollment:
    return Enrollment(
        learner=row.learner,
        course_id=row.course_id,
        owner_address=row.owner_address,
        total_modules=int(total_modules or 0),
        completed_module_ids=frozenset(row.completed_modules or ()),
        current_module_index=row.current_module,
        certificate_minted=row.certificate_minted,
        certificate_token_id=row.certificate_token_id,
        enrolled_at=row.enrolled_at,
        last_accessed_at=row.last_accessed_at,
    )


def _row_to_transaction(row: TransactionRow) -> TransactionRecord:
    return TransactionRecord(
        id=row.id,
        user_id=row.user_id,
        from_user_id=row.from_user_id,
        type=row.type,
        amount=Decimal(row.amount),
        currency=row.currency,
        description=row.description,
        status=row.status,
        created_at=row.created_at,
        tx_hash=row.tx_hash,
        course_id=row.course_id,
    )


def _row_to_rating(row: CourseRatingRow) -> Rating:
    return Rating(
        learner=row.learner,
        course_id=row.course_id,
        instructor=row.instructor,
        stars=row.stars,
        review=row.review,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
