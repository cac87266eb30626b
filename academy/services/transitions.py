"""Pure state transitions for an Enrollment.

Each command object is applied with ``apply`` and yields a
``Transition``: the resulting enrollment (possibly the same object) and
an error kind when the command was refused.  Nothing here performs I/O,
so the ordering and monotonicity rules live in one place:

- a module unlocks only once the module before it is completed
- the completed set only grows and never contains foreign module ids
- ``progress`` is derived, never assigned
- ``certificate_minted`` moves false -> true only
"""

from __future__ import annotations

from dataclasses import dataclass, replace

from academy.models.course import Course, Module
from academy.models.enrollment import Enrollment
from academy.services.errors import ErrorKind


def is_locked(enrollment: Enrollment | None, course: Course, index: int) -> bool:
    """Position 0 is always open; position i needs module i-1 completed."""
    if index <= 0:
        return False
    if index >= course.total_modules:
        return True
    if enrollment is None:
        return True
    return not enrollment.has_completed(course.modules[index - 1].id)


def can_rate(enrollment: Enrollment | None) -> bool:
    return enrollment is not None and enrollment.progress == 100


def can_mint_certificate(enrollment: Enrollment | None) -> bool:
    return (
        enrollment is not None
        and enrollment.progress == 100
        and not enrollment.certificate_minted
    )


@dataclass(frozen=True, slots=True)
class Transition:
    enrollment: Enrollment | None
    error: ErrorKind | None = None
    changed: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None

    def require_enrollment(self) -> Enrollment:
        """The resulting enrollment, for steps that cannot be refused."""
        if self.enrollment is None:
            raise ValueError(f"transition produced no enrollment (error={self.error})")
        return self.enrollment


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Enroll:
    learner: str
    course: Course
    at: int


@dataclass(frozen=True, slots=True)
class CompleteModule:
    course: Course
    module_id: str
    at: int
    quiz_passed: bool = False


@dataclass(frozen=True, slots=True)
class Navigate:
    course: Course
    index: int


@dataclass(frozen=True, slots=True)
class MintCertificate:
    token_id: str


Command = Enroll | CompleteModule | Navigate | MintCertificate


def apply(enrollment: Enrollment | None, command: Command) -> Transition:
    if isinstance(command, Enroll):
        return _enroll(enrollment, command)
    if enrollment is None:
        return Transition(None, ErrorKind.NOT_ENROLLED)
    if isinstance(command, CompleteModule):
        return _complete(enrollment, command)
    if isinstance(command, Navigate):
        return _navigate(enrollment, command)
    return _mint(enrollment, command)


def _enroll(enrollment: Enrollment | None, cmd: Enroll) -> Transition:
    if enrollment is not None:
        return Transition(enrollment, ErrorKind.ALREADY_ENROLLED)
    created = Enrollment.new(
        learner=cmd.learner,
        course_id=cmd.course.id,
        owner_address=cmd.course.owner_address,
        total_modules=cmd.course.total_modules,
        enrolled_at=cmd.at,
    )
    return Transition(created, changed=True)


def _needs_quiz(module: Module) -> bool:
    return module.quiz is not None and len(module.quiz.questions) > 0


def _complete(enrollment: Enrollment, cmd: CompleteModule) -> Transition:
    course = cmd.course
    index = course.module_index(cmd.module_id)
    if index is None:
        return Transition(enrollment, ErrorKind.MODULE_NOT_FOUND)

    # Already recorded: no-op, the stored state is the answer.
    if enrollment.has_completed(cmd.module_id):
        return Transition(enrollment)

    if is_locked(enrollment, course, index):
        return Transition(enrollment, ErrorKind.MODULE_LOCKED)
    if _needs_quiz(course.modules[index]) and not cmd.quiz_passed:
        return Transition(enrollment, ErrorKind.QUIZ_NOT_PASSED)

    completed = (enrollment.completed_module_ids | {cmd.module_id}) & course.module_ids()
    current = enrollment.current_module_index
    if index == current and index + 1 < course.total_modules:
        current += 1

    updated = replace(
        enrollment,
        total_modules=course.total_modules,
        completed_module_ids=completed,
        current_module_index=current,
        last_accessed_at=cmd.at,
    )
    return Transition(updated, changed=True)


def _navigate(enrollment: Enrollment, cmd: Navigate) -> Transition:
    if not 0 <= cmd.index < cmd.course.total_modules:
        return Transition(enrollment, ErrorKind.MODULE_NOT_FOUND)
    if is_locked(enrollment, cmd.course, cmd.index):
        return Transition(enrollment, ErrorKind.MODULE_LOCKED)
    if cmd.index == enrollment.current_module_index:
        return Transition(enrollment)
    return Transition(
        replace(enrollment, current_module_index=cmd.index), changed=True
    )


def _mint(enrollment: Enrollment, cmd: MintCertificate) -> Transition:
    if enrollment.certificate_minted:
        return Transition(enrollment)
    if enrollment.progress != 100:
        return Transition(enrollment, ErrorKind.NOT_ELIGIBLE)
    return Transition(
        replace(enrollment, certificate_minted=True, certificate_token_id=cmd.token_id),
        changed=True,
    )
