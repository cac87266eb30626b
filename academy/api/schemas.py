"""Response models shared by several routers."""

from __future__ import annotations

from pydantic import BaseModel

from academy.models.enrollment import Enrollment


class EnrollmentOut(BaseModel):
    learner: str
    course_id: str
    progress: int
    total_modules: int
    completed_module_ids: list[str]
    current_module_index: int
    certificate_minted: bool
    certificate_token_id: str | None
    enrolled_at: int
    last_accessed_at: int

    @classmethod
    def from_domain(cls, enrollment: Enrollment) -> EnrollmentOut:
        return cls(
            learner=enrollment.learner,
            course_id=enrollment.course_id,
            progress=enrollment.progress,
            total_modules=enrollment.total_modules,
            completed_module_ids=sorted(enrollment.completed_module_ids),
            current_module_index=enrollment.current_module_index,
            certificate_minted=enrollment.certificate_minted,
            certificate_token_id=enrollment.certificate_token_id,
            enrolled_at=enrollment.enrolled_at,
            last_accessed_at=enrollment.last_accessed_at,
        )
