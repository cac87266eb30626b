"""Per-learner enrollment snapshot.

The workflows call ``refresh`` after every successful mutation; readers
get the last snapshot without touching the store.  A refresh replaces the
learner's list wholesale, it is never patched in place, so a reader sees
either the old list or the new one.
"""

from __future__ import annotations

import logging

from academy.models.course import Course
from academy.models.enrollment import Enrollment
from academy.repos.store import LearningStore
from academy.services import transitions

logger = logging.getLogger(__name__)


class SessionState:
    def __init__(self, store: LearningStore) -> None:
        self._store = store
        self._enrollments: dict[str, tuple[Enrollment, ...]] = {}

    async def refresh(self, learner: str) -> tuple[Enrollment, ...]:
        snapshot = tuple(await self._store.list_enrollments(learner))
        self._enrollments[learner] = snapshot
        logger.debug("Session refreshed for %s (%d enrollments)", learner, len(snapshot))
        return snapshot

    def enrollments(self, learner: str) -> tuple[Enrollment, ...]:
        return self._enrollments.get(learner, ())

    def get(self, learner: str, course_id: str) -> Enrollment | None:
        for enrollment in self.enrollments(learner):
            if enrollment.course_id == course_id:
                return enrollment
        return None

    def progress(self, learner: str, course_id: str) -> int:
        enrollment = self.get(learner, course_id)
        return enrollment.progress if enrollment is not None else 0

    def is_locked(self, learner: str, course: Course, index: int) -> bool:
        return transitions.is_locked(self.get(learner, course.id), course, index)

    def forget(self, learner: str) -> None:
        self._enrollments.pop(learner, None)
