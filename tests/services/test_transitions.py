from __future__ import annotations

import pytest

from academy.models.course import course_from_dict
from academy.models.enrollment import Enrollment, derive_progress
from academy.services import transitions
from academy.services.errors import ErrorKind

_COURSE = course_from_dict(
    {
        "id": "c1",
        "title": "Three Steps",
        "ownerAddress": "0xowner",
        "price": "0",
        "certificate": {"title": "T", "issuer": "I", "description": "D"},
        "modules": [
            {"id": "m1", "title": "One", "type": "text", "content": {"text": "a"}},
            {
                "id": "m2",
                "title": "Two",
                "type": "text",
                "content": {"text": "b"},
                "quiz": {
                    "id": "qz",
                    "passingScore": 50,
                    "questions": [
                        {
                            "id": "q1",
                            "question": "?",
                            "options": ["x", "y"],
                            "correctAnswer": 0,
                        }
                    ],
                },
            },
            {"id": "m3", "title": "Three", "type": "text", "content": {"text": "c"}},
        ],
    }
)


def _enrolled(*completed: str, current: int = 0) -> Enrollment:
    return Enrollment(
        learner="0xlearner",
        course_id="c1",
        owner_address="0xowner",
        total_modules=3,
        completed_module_ids=frozenset(completed),
        current_module_index=current,
    )


def _complete(enrollment, module_id: str, *, quiz_passed: bool = False):
    return transitions.apply(
        enrollment,
        transitions.CompleteModule(
            course=_COURSE, module_id=module_id, at=50, quiz_passed=quiz_passed
        ),
    )


# ---- progress derivation ----


def test_progress_rounds_half_up() -> None:
    assert derive_progress(1, 8) == 13
    assert derive_progress(1, 3) == 33
    assert derive_progress(2, 3) == 67
    assert derive_progress(3, 3) == 100


def test_progress_of_course_without_modules_is_zero() -> None:
    assert derive_progress(0, 0) == 0


def test_progress_never_exceeds_100() -> None:
    assert derive_progress(5, 3) == 100


# ---- locking ----


def test_first_module_is_never_locked() -> None:
    assert transitions.is_locked(None, _COURSE, 0) is False
    assert transitions.is_locked(_enrolled(), _COURSE, 0) is False


def test_later_modules_locked_without_enrollment() -> None:
    assert transitions.is_locked(None, _COURSE, 1) is True


def test_module_unlocks_when_previous_completed() -> None:
    enrollment = _enrolled("m1")
    assert transitions.is_locked(enrollment, _COURSE, 1) is False
    assert transitions.is_locked(enrollment, _COURSE, 2) is True


def test_out_of_range_index_is_locked() -> None:
    assert transitions.is_locked(_enrolled("m1", "m2", "m3"), _COURSE, 3) is True


# ---- enroll ----


def test_enroll_creates_empty_enrollment() -> None:
    step = transitions.apply(
        None, transitions.Enroll(learner="0xlearner", course=_COURSE, at=10)
    )
    assert step.ok and step.changed
    assert step.enrollment is not None
    assert step.enrollment.progress == 0
    assert step.enrollment.current_module_index == 0
    assert step.enrollment.enrolled_at == 10


def test_enroll_twice_reports_already_enrolled() -> None:
    existing = _enrolled("m1")
    step = transitions.apply(
        existing, transitions.Enroll(learner="0xlearner", course=_COURSE, at=10)
    )
    assert step.error is ErrorKind.ALREADY_ENROLLED
    assert step.enrollment is existing


def test_commands_without_enrollment_report_not_enrolled() -> None:
    step = _complete(None, "m1")
    assert step.error is ErrorKind.NOT_ENROLLED


def test_require_enrollment_refuses_empty_result() -> None:
    with pytest.raises(ValueError):
        _complete(None, "m1").require_enrollment()

    step = _complete(_enrolled(), "m1")
    assert step.require_enrollment() is step.enrollment


# ---- complete module ----


def test_complete_first_module_advances_current() -> None:
    step = _complete(_enrolled(), "m1")
    assert step.ok and step.changed
    assert step.enrollment.completed_module_ids == {"m1"}
    assert step.enrollment.current_module_index == 1
    assert step.enrollment.progress == 33
    assert step.enrollment.last_accessed_at == 50


def test_complete_locked_module_is_refused() -> None:
    step = _complete(_enrolled(), "m3")
    assert step.error is ErrorKind.MODULE_LOCKED


def test_complete_unknown_module_is_refused() -> None:
    step = _complete(_enrolled(), "nope")
    assert step.error is ErrorKind.MODULE_NOT_FOUND


def test_complete_quiz_module_requires_pass() -> None:
    step = _complete(_enrolled("m1", current=1), "m2")
    assert step.error is ErrorKind.QUIZ_NOT_PASSED

    step = _complete(_enrolled("m1", current=1), "m2", quiz_passed=True)
    assert step.ok
    assert step.enrollment.progress == 67


def test_complete_again_is_a_no_op() -> None:
    enrollment = _enrolled("m1", current=1)
    step = _complete(enrollment, "m1")
    assert step.ok
    assert step.changed is False
    assert step.enrollment is enrollment


def test_completing_last_module_keeps_current_in_range() -> None:
    step = _complete(_enrolled("m1", "m2", current=2), "m3")
    assert step.enrollment.current_module_index == 2
    assert step.enrollment.progress == 100


def test_completing_earlier_module_leaves_current_alone() -> None:
    # Learner navigated back to m1; finishing m3 from a deep link keeps that position.
    enrollment = _enrolled("m1", "m2", current=0)
    step = _complete(enrollment, "m3")
    assert step.enrollment.current_module_index == 0


def test_foreign_module_ids_are_dropped() -> None:
    enrollment = _enrolled("m1", "retired-module", current=1)
    step = _complete(enrollment, "m2", quiz_passed=True)
    assert step.enrollment.completed_module_ids == {"m1", "m2"}


# ---- navigate ----


def test_navigate_to_unlocked_module() -> None:
    step = transitions.apply(
        _enrolled("m1", current=1), transitions.Navigate(course=_COURSE, index=0)
    )
    assert step.ok and step.changed
    assert step.enrollment.current_module_index == 0


def test_navigate_to_locked_module_is_refused() -> None:
    step = transitions.apply(_enrolled(), transitions.Navigate(course=_COURSE, index=2))
    assert step.error is ErrorKind.MODULE_LOCKED


def test_navigate_out_of_range_is_refused() -> None:
    step = transitions.apply(_enrolled(), transitions.Navigate(course=_COURSE, index=7))
    assert step.error is ErrorKind.MODULE_NOT_FOUND


# ---- certificate ----


def test_mint_requires_full_progress() -> None:
    step = transitions.apply(_enrolled("m1"), transitions.MintCertificate("1"))
    assert step.error is ErrorKind.NOT_ELIGIBLE
    assert transitions.can_mint_certificate(_enrolled("m1")) is False
    assert transitions.can_rate(_enrolled("m1")) is False


def test_mint_sets_flag_once() -> None:
    done = _enrolled("m1", "m2", "m3", current=2)
    assert transitions.can_mint_certificate(done) is True
    assert transitions.can_rate(done) is True

    step = transitions.apply(done, transitions.MintCertificate("7"))
    minted = step.enrollment
    assert minted.certificate_minted is True
    assert minted.certificate_token_id == "7"
    assert transitions.can_mint_certificate(minted) is False
    assert transitions.can_rate(minted) is True

    again = transitions.apply(minted, transitions.MintCertificate("8"))
    assert again.changed is False
    assert again.enrollment.certificate_token_id == "7"
