"""Quiz grading and the pass record that gates module completion.

A module with a quiz can only be completed after the learner has passed
that quiz.  The latest graded attempt is kept in the cache under
``quiz:{learner}:{course}:{module}`` for a day; completing the module
checks it.
"""

from __future__ import annotations

import json
import math
from collections.abc import Mapping
from dataclasses import dataclass

from academy.models.course import Quiz
from academy.services.cache import CacheService
from academy.services.errors import ErrorKind, WorkflowError

QUIZ_RESULT_TTL_SECONDS = 24 * 3600


@dataclass(frozen=True, slots=True)
class QuizResult:
    score: int  # 0-100
    passed: bool
    correct: int
    total: int
    answers: dict[str, int]


def grade_quiz(quiz: Quiz, answers: Mapping[str, int]) -> QuizResult:
    """Score is the rounded percentage of correct answers.

    Unanswered questions count as wrong.  A quiz without questions is
    trivially passed with 100.
    """
    total = len(quiz.questions)
    known = {q.id for q in quiz.questions}
    unknown = set(answers) - known
    if unknown:
        raise WorkflowError(
            ErrorKind.INVALID_REQUEST,
            f"answers reference unknown questions: {sorted(unknown)}",
        )

    if total == 0:
        return QuizResult(score=100, passed=True, correct=0, total=0, answers={})

    correct = sum(1 for q in quiz.questions if answers.get(q.id) == q.correct_answer)
    score = math.floor(correct * 100 / total + 0.5)
    return QuizResult(
        score=score,
        passed=score >= quiz.passing_score,
        correct=correct,
        total=total,
        answers=dict(answers),
    )


def _key(learner: str, course_id: str, module_id: str) -> str:
    return f"quiz:{learner}:{course_id}:{module_id}"


class QuizGate:
    def __init__(self, cache: CacheService) -> None:
        self._cache = cache

    async def record(
        self, learner: str, course_id: str, module_id: str, result: QuizResult
    ) -> None:
        payload = {"score": result.score, "passed": result.passed}
        await self._cache.set(
            _key(learner, course_id, module_id),
            json.dumps(payload),
            QUIZ_RESULT_TTL_SECONDS,
        )

    async def has_passed(self, learner: str, course_id: str, module_id: str) -> bool:
        raw = await self._cache.get(_key(learner, course_id, module_id))
        if raw is None:
            return False
        return bool(json.loads(raw).get("passed"))
