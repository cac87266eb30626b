"""Enrollment and course-player endpoints.

  POST /v1/courses/{id}/enroll                       -> 201 new, 200 already enrolled
  POST /v1/courses/{id}/enroll/resume                -> finish a paid enrollment
  POST /v1/courses/{id}/modules/{mid}/quiz           -> grade an attempt
  POST /v1/courses/{id}/modules/{mid}/complete       -> record completion
  PUT  /v1/courses/{id}/current-module               -> resume position

Failures come back through the WorkflowError handler in api/errors.py.
"""

from __future__ import annotations

from fastapi import APIRouter, Response, status
from pydantic import BaseModel, Field

from academy.api.dependencies import LearnerDep, PlatformDep
from academy.api.schemas import EnrollmentOut
from academy.services import transitions
from academy.services.enrollment_manager import EnrollOutcome

router = APIRouter(prefix="/v1/courses", tags=["learning"])


class EnrollOut(BaseModel):
    enrollment: EnrollmentOut
    already_enrolled: bool
    tx_hash: str | None


class QuizAttemptIn(BaseModel):
    answers: dict[str, int] = Field(
        description="question id -> index of the chosen option"
    )


class QuizResultOut(BaseModel):
    score: int
    passed: bool
    correct: int
    total: int


class CompletionOut(BaseModel):
    enrollment: EnrollmentOut
    course_completed: bool
    first_completion: bool
    recorded: bool
    can_rate: bool
    can_mint_certificate: bool


class NavigateIn(BaseModel):
    index: int = Field(ge=0)


def _enroll_out(outcome: EnrollOutcome, response: Response) -> EnrollOut:
    response.status_code = (
        status.HTTP_200_OK if outcome.already_enrolled else status.HTTP_201_CREATED
    )
    return EnrollOut(
        enrollment=EnrollmentOut.from_domain(outcome.enrollment),
        already_enrolled=outcome.already_enrolled,
        tx_hash=outcome.tx_hash,
    )


@router.post(
    "/{course_id}/enroll",
    response_model=EnrollOut,
    status_code=status.HTTP_201_CREATED,
)
async def enroll(
    course_id: str, learner: LearnerDep, platform: PlatformDep, response: Response
) -> EnrollOut:
    outcome = await platform.enrollments.enroll(learner, course_id)
    return _enroll_out(outcome, response)


@router.post(
    "/{course_id}/enroll/resume",
    response_model=EnrollOut,
    status_code=status.HTTP_201_CREATED,
)
async def resume_enrollment(
    course_id: str, learner: LearnerDep, platform: PlatformDep, response: Response
) -> EnrollOut:
    outcome = await platform.enrollments.resume(learner, course_id)
    return _enroll_out(outcome, response)


@router.post("/{course_id}/modules/{module_id}/quiz", response_model=QuizResultOut)
async def submit_quiz(
    course_id: str,
    module_id: str,
    body: QuizAttemptIn,
    learner: LearnerDep,
    platform: PlatformDep,
) -> QuizResultOut:
    result = await platform.progress.submit_quiz(
        learner, course_id, module_id, body.answers
    )
    return QuizResultOut(
        score=result.score,
        passed=result.passed,
        correct=result.correct,
        total=result.total,
    )


@router.post("/{course_id}/modules/{module_id}/complete", response_model=CompletionOut)
async def complete_module(
    course_id: str, module_id: str, learner: LearnerDep, platform: PlatformDep
) -> CompletionOut:
    outcome = await platform.progress.complete_module(learner, course_id, module_id)
    return CompletionOut(
        enrollment=EnrollmentOut.from_domain(outcome.enrollment),
        course_completed=outcome.course_completed,
        first_completion=outcome.first_completion,
        recorded=outcome.recorded,
        can_rate=transitions.can_rate(outcome.enrollment),
        can_mint_certificate=transitions.can_mint_certificate(outcome.enrollment),
    )


@router.put("/{course_id}/current-module", response_model=EnrollmentOut)
async def navigate(
    course_id: str, body: NavigateIn, learner: LearnerDep, platform: PlatformDep
) -> EnrollmentOut:
    enrollment = await platform.progress.navigate(learner, course_id, body.index)
    return EnrollmentOut.from_domain(enrollment)
