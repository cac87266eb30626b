from __future__ import annotations

from dataclasses import dataclass


def derive_progress(completed_count: int, total_modules: int) -> int:
    """Percentage of modules completed, rounded half up.

    ``(200c + t) // 2t`` is ``floor(100c/t + 0.5)`` in integer arithmetic,
    so 1 of 8 modules reads 13, not the 12 that ``round()`` would give.
    A course without modules reports 0.
    """
    if total_modules <= 0:
        return 0
    completed_count = min(completed_count, total_modules)
    return (200 * completed_count + total_modules) // (2 * total_modules)


@dataclass(frozen=True, slots=True)
class Enrollment:
    """One learner's standing in one course.

    ``progress`` is not stored on the instance: it is always recomputed
    from ``completed_module_ids`` and ``total_modules`` (the module count
    of the course at read time).
    """

    learner: str
    course_id: str
    owner_address: str
    total_modules: int
    completed_module_ids: frozenset[str] = frozenset()
    current_module_index: int = 0
    certificate_minted: bool = False
    certificate_token_id: str | None = None
    enrolled_at: int = 0
    last_accessed_at: int = 0

    @property
    def progress(self) -> int:
        return derive_progress(len(self.completed_module_ids), self.total_modules)

    @property
    def is_complete(self) -> bool:
        return (
            self.total_modules > 0
            and len(self.completed_module_ids) >= self.total_modules
        )

    def has_completed(self, module_id: str) -> bool:
        return module_id in self.completed_module_ids

    @staticmethod
    def new(
        *,
        learner: str,
        course_id: str,
        owner_address: str,
        total_modules: int,
        enrolled_at: int,
    ) -> Enrollment:
        return Enrollment(
            learner=learner,
            course_id=course_id,
            owner_address=owner_address,
            total_modules=total_modules,
            enrolled_at=enrolled_at,
            last_accessed_at=enrolled_at,
        )
