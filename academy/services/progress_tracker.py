"""Module completion and navigation.

``complete_module`` always starts from the stored enrollment, applies the
pure transition, and writes the module set, derived progress, resume
index and access time in one update.  Nothing is cached as updated until
that write returns, so a PROGRESS_WRITE_FAILED leaves every reader on the
previous state and the same call can simply be repeated.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass

from academy.core.metrics import MODULE_COMPLETIONS
from academy.models.course import Course
from academy.models.enrollment import Enrollment
from academy.models.user import normalize_address
from academy.repos.store import LearningStore, PersistenceError
from academy.services import transitions
from academy.services.cache import CourseCatalog
from academy.services.errors import ErrorKind, WorkflowError
from academy.services.quiz import QuizGate, QuizResult, grade_quiz
from academy.services.session_state import SessionState

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CompletionOutcome:
    enrollment: Enrollment
    course_completed: bool
    # True only on the call that took the course to 100%.
    first_completion: bool = False
    recorded: bool = True


def _epoch() -> int:
    return int(time.time())


class ProgressTracker:
    def __init__(
        self,
        *,
        store: LearningStore,
        catalog: CourseCatalog,
        quiz_gate: QuizGate,
        session: SessionState,
        clock: Callable[[], int] = _epoch,
    ) -> None:
        self._store = store
        self._catalog = catalog
        self._quiz_gate = quiz_gate
        self._session = session
        self._clock = clock

    async def _load(self, learner: str, course_id: str) -> tuple[Course, Enrollment]:
        learner = normalize_address(learner)
        course = await self._catalog.get(course_id)
        if course is None:
            raise WorkflowError(ErrorKind.COURSE_NOT_FOUND, f"course {course_id!r} not found")
        enrollment = await self._store.get_enrollment(learner, course_id)
        if enrollment is None:
            raise WorkflowError(
                ErrorKind.NOT_ENROLLED, f"not enrolled in course {course_id!r}"
            )
        return course, enrollment

    async def submit_quiz(
        self,
        learner: str,
        course_id: str,
        module_id: str,
        answers: Mapping[str, int],
    ) -> QuizResult:
        """Grade an attempt and remember the result for ``complete_module``."""
        course, enrollment = await self._load(learner, course_id)
        index = course.module_index(module_id)
        if index is None:
            raise WorkflowError(ErrorKind.MODULE_NOT_FOUND, f"module {module_id!r} not found")
        if transitions.is_locked(enrollment, course, index):
            raise WorkflowError(ErrorKind.MODULE_LOCKED, f"module {module_id!r} is locked")
        quiz = course.modules[index].quiz
        if quiz is None:
            raise WorkflowError(
                ErrorKind.INVALID_REQUEST, f"module {module_id!r} has no quiz"
            )

        result = grade_quiz(quiz, answers)
        await self._quiz_gate.record(enrollment.learner, course.id, module_id, result)
        logger.info(
            "Quiz graded learner=%s course=%s module=%s score=%d passed=%s",
            enrollment.learner,
            course.id,
            module_id,
            result.score,
            result.passed,
        )
        return result

    async def complete_module(
        self, learner: str, course_id: str, module_id: str
    ) -> CompletionOutcome:
        course, enrollment = await self._load(learner, course_id)
        quiz_passed = await self._quiz_gate.has_passed(
            enrollment.learner, course.id, module_id
        )
        step = transitions.apply(
            enrollment,
            transitions.CompleteModule(
                course=course, module_id=module_id, at=self._clock(), quiz_passed=quiz_passed
            ),
        )
        if step.error is not None:
            MODULE_COMPLETIONS.labels(result=step.error.value).inc()
            logger.info(
                "Completion refused learner=%s course=%s module=%s: %s",
                enrollment.learner,
                course.id,
                module_id,
                step.error.value,
            )
            raise WorkflowError(step.error, f"cannot complete module {module_id!r}")

        if not step.changed:
            MODULE_COMPLETIONS.labels(result="duplicate").inc()
            return CompletionOutcome(
                enrollment, course_completed=enrollment.is_complete, recorded=False
            )

        updated = step.require_enrollment()
        try:
            await self._store.update_enrollment_progress(
                updated.learner,
                updated.course_id,
                updated.completed_module_ids,
                updated.progress,
                current_module_index=updated.current_module_index,
                last_accessed_at=updated.last_accessed_at,
            )
        except PersistenceError as exc:
            MODULE_COMPLETIONS.labels(result=ErrorKind.PROGRESS_WRITE_FAILED.value).inc()
            logger.error(
                "Progress write failed learner=%s course=%s module=%s: %s",
                updated.learner,
                course.id,
                module_id,
                exc,
            )
            raise WorkflowError(
                ErrorKind.PROGRESS_WRITE_FAILED,
                f"completion of {module_id!r} was not saved; retry",
            ) from exc

        MODULE_COMPLETIONS.labels(result="recorded").inc()
        await self._session.refresh(updated.learner)
        first = updated.is_complete and not enrollment.is_complete
        if first:
            logger.info(
                "Course completed learner=%s course=%s", updated.learner, course.id
            )
        return CompletionOutcome(
            updated, course_completed=updated.is_complete, first_completion=first
        )

    async def navigate(self, learner: str, course_id: str, index: int) -> Enrollment:
        """Move the resume position to an unlocked module."""
        course, enrollment = await self._load(learner, course_id)
        step = transitions.apply(enrollment, transitions.Navigate(course=course, index=index))
        if step.error is not None:
            raise WorkflowError(step.error, f"cannot open module {index}")
        if not step.changed:
            return enrollment

        updated = step.require_enrollment()
        try:
            await self._store.set_current_module(
                updated.learner, updated.course_id, updated.current_module_index
            )
        except PersistenceError as exc:
            raise WorkflowError(
                ErrorKind.PROGRESS_WRITE_FAILED, "resume position was not saved"
            ) from exc
        await self._session.refresh(updated.learner)
        return updated
