from __future__ import annotations

from collections.abc import Iterable
from dataclasses import replace
from typing import Protocol

from academy.models.course import Course
from academy.models.enrollment import Enrollment
from academy.models.ledger import TransactionRecord
from academy.models.rating import Rating
from academy.models.user import User


class PersistenceError(Exception):
    """A read or write against the learning store did not complete."""


class DuplicateEnrollmentError(PersistenceError):
    """(learner, course) already has an enrollment row."""


class LearningStore(Protocol):
    async def get_user(self, address: str) -> User | None: ...
    async def upsert_user(self, user: User) -> User: ...

    async def list_courses(self) -> list[Course]: ...
    async def get_course(self, course_id: str) -> Course | None: ...

    async def get_enrollment(
        self, learner: str, course_id: str
    ) -> Enrollment | None: ...
    async def create_enrollment(
        self, learner: str, course_id: str, owner_address: str, *, enrolled_at: int
    ) -> Enrollment: ...
    async def update_enrollment_progress(
        self,
        learner: str,
        course_id: str,
        completed_module_ids: frozenset[str],
        progress: int,
        *,
        current_module_index: int,
        last_accessed_at: int,
    ) -> None: ...
    async def set_current_module(
        self, learner: str, course_id: str, index: int
    ) -> None: ...
    async def list_enrollments(self, learner: str) -> list[Enrollment]: ...
    async def upsert_certificate_flag(
        self, learner: str, course_id: str, token_id: str
    ) -> None: ...

    async def create_transaction(self, record: TransactionRecord) -> None: ...
    async def list_transactions(
        self, user_id: str, *, page: int = 1, limit: int = 20
    ) -> list[TransactionRecord]: ...
    async def find_purchase(
        self, learner: str, course_id: str
    ) -> TransactionRecord | None: ...

    async def upsert_rating(self, rating: Rating) -> None: ...
    async def get_rating(self, learner: str, course_id: str) -> Rating | None: ...
    async def list_ratings(
        self, course_id: str, *, page: int = 1, limit: int = 10
    ) -> list[Rating]: ...


def _page(items: list, page: int, limit: int) -> list:
    start = (max(page, 1) - 1) * limit
    return items[start : start + limit]


class InMemoryLearningStore:
    """Dict-backed store for local dev and tests.

    Enforces the same (learner, course) uniqueness the database enforces
    with ``uq_enrollments_learner_course``.  The module count of an
    enrollment is taken from the course at read time, as the SQL join does.
    """

    def __init__(self, courses: Iterable[Course] = ()) -> None:
        self._users: dict[str, User] = {}
        self._courses: dict[str, Course] = {c.id: c for c in courses}
        self._enrollments: dict[tuple[str, str], Enrollment] = {}
        self._transactions: list[TransactionRecord] = []
        self._ratings: dict[tuple[str, str], Rating] = {}

    def add_course(self, course: Course) -> None:
        self._courses[course.id] = course

    # --- users ---

    async def get_user(self, address: str) -> User | None:
        return self._users.get(address)

    async def upsert_user(self, user: User) -> User:
        existing = self._users.get(user.address)
        if existing is not None:
            user = replace(user, created_at=existing.created_at)
        self._users[user.address] = user
        return user

    # --- courses ---

    def _with_rating_totals(self, course: Course) -> Course:
        stars = [r.stars for r in self._ratings.values() if r.course_id == course.id]
        if not stars:
            return course
        return replace(course, rating=sum(stars) / len(stars), total_reviews=len(stars))

    async def list_courses(self) -> list[Course]:
        return [self._with_rating_totals(c) for c in self._courses.values()]

    async def get_course(self, course_id: str) -> Course | None:
        course = self._courses.get(course_id)
        return self._with_rating_totals(course) if course is not None else None

    # --- enrollments ---

    def _with_course_totals(self, enrollment: Enrollment) -> Enrollment:
        course = self._courses.get(enrollment.course_id)
        total = course.total_modules if course is not None else 0
        if total == enrollment.total_modules:
            return enrollment
        return replace(enrollment, total_modules=total)

    async def get_enrollment(self, learner: str, course_id: str) -> Enrollment | None:
        enrollment = self._enrollments.get((learner, course_id))
        if enrollment is None:
            return None
        return self._with_course_totals(enrollment)

    async def create_enrollment(
        self, learner: str, course_id: str, owner_address: str, *, enrolled_at: int
    ) -> Enrollment:
        key = (learner, course_id)
        if key in self._enrollments:
            raise DuplicateEnrollmentError(f"{learner} already enrolled in {course_id}")
        course = self._courses.get(course_id)
        enrollment = Enrollment.new(
            learner=learner,
            course_id=course_id,
            owner_address=owner_address,
            total_modules=course.total_modules if course is not None else 0,
            enrolled_at=enrolled_at,
        )
        self._enrollments[key] = enrollment
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
        key = (learner, course_id)
        current = self._enrollments.get(key)
        if current is None:
            raise PersistenceError(f"no enrollment for {learner} in {course_id}")
        # One assignment: the module set, index and timestamp land together.
        self._enrollments[key] = replace(
            current,
            completed_module_ids=frozenset(completed_module_ids),
            current_module_index=current_module_index,
            last_accessed_at=last_accessed_at,
        )

    async def set_current_module(self, learner: str, course_id: str, index: int) -> None:
        key = (learner, course_id)
        current = self._enrollments.get(key)
        if current is None:
            raise PersistenceError(f"no enrollment for {learner} in {course_id}")
        self._enrollments[key] = replace(current, current_module_index=index)

    async def list_enrollments(self, learner: str) -> list[Enrollment]:
        return [
            self._with_course_totals(e)
            for (owner, _), e in self._enrollments.items()
            if owner == learner
        ]

    async def upsert_certificate_flag(
        self, learner: str, course_id: str, token_id: str
    ) -> None:
        key = (learner, course_id)
        current = self._enrollments.get(key)
        if current is None:
            raise PersistenceError(f"no enrollment for {learner} in {course_id}")
        self._enrollments[key] = replace(
            current, certificate_minted=True, certificate_token_id=token_id
        )

    # --- transactions ---

    async def create_transaction(self, record: TransactionRecord) -> None:
        self._transactions.append(record)

    async def list_transactions(
        self, user_id: str, *, page: int = 1, limit: int = 20
    ) -> list[TransactionRecord]:
        mine = [
            t
            for t in self._transactions
            if t.user_id == user_id or t.from_user_id == user_id
        ]
        mine.sort(key=lambda t: t.created_at, reverse=True)
        return _page(mine, page, limit)

    async def find_purchase(
        self, learner: str, course_id: str
    ) -> TransactionRecord | None:
        for t in self._transactions:
            if t.from_user_id == learner and t.course_id == course_id:
                return t
        return None

    # --- ratings ---

    async def upsert_rating(self, rating: Rating) -> None:
        key = (rating.learner, rating.course_id)
        existing = self._ratings.get(key)
        if existing is not None:
            rating = replace(rating, created_at=existing.created_at)
        self._ratings[key] = rating

    async def get_rating(self, learner: str, course_id: str) -> Rating | None:
        return self._ratings.get((learner, course_id))

    async def list_ratings(
        self, course_id: str, *, page: int = 1, limit: int = 10
    ) -> list[Rating]:
        ratings = [r for r in self._ratings.values() if r.course_id == course_id]
        ratings.sort(key=lambda r: r.created_at, reverse=True)
        return _page(ratings, page, limit)
