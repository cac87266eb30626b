"""Course catalog and the learner's module view."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel

from academy.api.dependencies import LearnerDep, PlatformDep
from academy.models.course import Course, Module, content_to_dict

router = APIRouter(prefix="/v1/courses", tags=["courses"])


class CourseOut(BaseModel):
    id: str
    title: str
    description: str
    owner_address: str
    price: str
    category: str
    level: str
    thumbnail_url: str
    duration: str
    rating: float
    total_reviews: int
    total_students: int
    total_modules: int

    @classmethod
    def from_domain(cls, course: Course) -> CourseOut:
        return cls(
            id=course.id,
            title=course.title,
            description=course.description,
            owner_address=course.owner_address,
            price=str(course.price),
            category=course.category,
            level=course.level,
            thumbnail_url=course.thumbnail_url,
            duration=course.duration,
            rating=course.rating,
            total_reviews=course.total_reviews,
            total_students=course.total_students,
            total_modules=course.total_modules,
        )


class ModuleSummaryOut(BaseModel):
    id: str
    title: str
    type: str
    position: int
    duration: str
    has_quiz: bool


class CertificateInfoOut(BaseModel):
    title: str
    issuer: str
    description: str
    image_url: str
    attributes: list[str]


class CourseDetailOut(CourseOut):
    modules: list[ModuleSummaryOut]
    certificate: CertificateInfoOut


class QuestionOut(BaseModel):
    id: str
    question: str
    options: list[str]


class QuizOut(BaseModel):
    id: str
    passing_score: int
    questions: list[QuestionOut]


class ModuleViewOut(BaseModel):
    index: int
    id: str
    title: str
    type: str
    duration: str
    completed: bool
    locked: bool
    current: bool
    content: dict[str, Any] | None
    quiz: QuizOut | None


def _quiz_out(module: Module) -> QuizOut | None:
    # Correct answers and explanations stay server-side.
    if module.quiz is None:
        return None
    return QuizOut(
        id=module.quiz.id,
        passing_score=module.quiz.passing_score,
        questions=[
            QuestionOut(id=q.id, question=q.question, options=list(q.options))
            for q in module.quiz.questions
        ],
    )


async def _course_or_404(platform: PlatformDep, course_id: str) -> Course:
    course = await platform.catalog.get(course_id)
    if course is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="course not found")
    return course


@router.get("", response_model=list[CourseOut])
async def list_courses(platform: PlatformDep) -> list[CourseOut]:
    return [CourseOut.from_domain(c) for c in await platform.catalog.list()]


@router.get("/{course_id}", response_model=CourseDetailOut)
async def get_course(course_id: str, platform: PlatformDep) -> CourseDetailOut:
    course = await _course_or_404(platform, course_id)
    cert = course.certificate
    return CourseDetailOut(
        **CourseOut.from_domain(course).model_dump(),
        modules=[
            ModuleSummaryOut(
                id=m.id,
                title=m.title,
                type=m.type,
                position=i,
                duration=m.duration,
                has_quiz=m.quiz is not None,
            )
            for i, m in enumerate(course.modules)
        ],
        certificate=CertificateInfoOut(
            title=cert.title,
            issuer=cert.issuer,
            description=cert.description,
            image_url=cert.image_url,
            attributes=list(cert.attributes),
        ),
    )


@router.get("/{course_id}/modules", response_model=list[ModuleViewOut])
async def list_modules(
    course_id: str, learner: LearnerDep, platform: PlatformDep
) -> list[ModuleViewOut]:
    """Modules with the learner's lock state; locked content is withheld."""
    course = await _course_or_404(platform, course_id)
    if platform.session.get(learner, course.id) is None:
        await platform.session.refresh(learner)
    enrollment = platform.session.get(learner, course.id)

    views = []
    for index, module in enumerate(course.modules):
        locked = platform.session.is_locked(learner, course, index)
        views.append(
            ModuleViewOut(
                index=index,
                id=module.id,
                title=module.title,
                type=module.type,
                duration=module.duration,
                completed=enrollment is not None and enrollment.has_completed(module.id),
                locked=locked,
                current=enrollment is not None
                and enrollment.current_module_index == index,
                content=None if locked else content_to_dict(module.content),
                quiz=None if locked else _quiz_out(module),
            )
        )
    return views
