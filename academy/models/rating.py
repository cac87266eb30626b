from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Rating:
    """At most one per (learner, course); resubmission overwrites."""

    learner: str
    course_id: str
    instructor: str
    stars: int  # 1-5
    review: str | None
    created_at: int
    updated_at: int
