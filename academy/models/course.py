"""Course catalog types.

Courses are read-only here: authoring happens elsewhere and this service
only consumes the published structure.  Module content and quizzes are
stored as JSON blobs; ``content_from_dict`` / ``quiz_from_dict`` turn
them into the typed shapes below and reject anything malformed.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Literal

ModuleType = Literal["video", "text", "image"]


class ContentValidationError(ValueError):
    pass


@dataclass(frozen=True, slots=True)
class VideoContent:
    video_url: str
    text: str | None = None
    kind: Literal["video"] = "video"


@dataclass(frozen=True, slots=True)
class TextContent:
    text: str
    rich_text: str | None = None
    kind: Literal["text"] = "text"


@dataclass(frozen=True, slots=True)
class ImageContent:
    image_url: str
    text: str | None = None
    kind: Literal["image"] = "image"


ModuleContent = VideoContent | TextContent | ImageContent


@dataclass(frozen=True, slots=True)
class Question:
    id: str
    question: str
    options: tuple[str, ...]
    correct_answer: int
    explanation: str | None = None


@dataclass(frozen=True, slots=True)
class Quiz:
    id: str
    questions: tuple[Question, ...]
    passing_score: int  # 0-100


@dataclass(frozen=True, slots=True)
class Module:
    id: str
    title: str
    type: ModuleType
    content: ModuleContent
    position: int
    duration: str = ""
    quiz: Quiz | None = None


@dataclass(frozen=True, slots=True)
class CertificateMetadata:
    title: str
    issuer: str
    description: str
    image_url: str = ""
    attributes: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class Course:
    id: str
    title: str
    owner_address: str
    price: Decimal
    modules: tuple[Module, ...]
    certificate: CertificateMetadata
    description: str = ""
    category: str = ""
    level: str = "Beginner"
    thumbnail_url: str = ""
    duration: str = ""
    rating: float = 0.0
    total_reviews: int = 0
    total_students: int = 0

    @property
    def total_modules(self) -> int:
        return len(self.modules)

    @property
    def is_free(self) -> bool:
        return self.price <= 0

    def module_index(self, module_id: str) -> int | None:
        for index, module in enumerate(self.modules):
            if module.id == module_id:
                return index
        return None

    def module_ids(self) -> frozenset[str]:
        return frozenset(m.id for m in self.modules)


# ---------------------------------------------------------------------------
# JSON boundary
# ---------------------------------------------------------------------------


def _require_str(raw: dict[str, Any], key: str, where: str) -> str:
    value = raw.get(key)
    if not isinstance(value, str) or not value:
        raise ContentValidationError(f"{where}: {key!r} must be a non-empty string")
    return value


def content_from_dict(module_type: str, raw: dict[str, Any]) -> ModuleContent:
    if module_type == "video":
        return VideoContent(
            video_url=_require_str(raw, "videoUrl", "video content"),
            text=raw.get("text"),
        )
    if module_type == "text":
        return TextContent(
            text=_require_str(raw, "text", "text content"),
            rich_text=raw.get("richText"),
        )
    if module_type == "image":
        return ImageContent(
            image_url=_require_str(raw, "imageUrl", "image content"),
            text=raw.get("text"),
        )
    raise ContentValidationError(f"unknown module type {module_type!r}")


def content_to_dict(content: ModuleContent) -> dict[str, Any]:
    if isinstance(content, VideoContent):
        return {"videoUrl": content.video_url, "text": content.text}
    if isinstance(content, TextContent):
        return {"text": content.text, "richText": content.rich_text}
    return {"imageUrl": content.image_url, "text": content.text}


def quiz_from_dict(raw: dict[str, Any]) -> Quiz:
    passing = raw.get("passingScore", 70)
    if not isinstance(passing, int) or not 0 <= passing <= 100:
        raise ContentValidationError("quiz: passingScore must be an int in 0..100")

    questions = []
    for i, q in enumerate(raw.get("questions") or []):
        options = q.get("options") or []
        if len(options) < 2 or not all(isinstance(o, str) for o in options):
            raise ContentValidationError(f"quiz question {i}: needs 2+ string options")
        answer = q.get("correctAnswer")
        if not isinstance(answer, int) or not 0 <= answer < len(options):
            raise ContentValidationError(
                f"quiz question {i}: correctAnswer out of range"
            )
        questions.append(
            Question(
                id=_require_str(q, "id", f"quiz question {i}"),
                question=_require_str(q, "question", f"quiz question {i}"),
                options=tuple(options),
                correct_answer=answer,
                explanation=q.get("explanation"),
            )
        )

    return Quiz(
        id=_require_str(raw, "id", "quiz"),
        questions=tuple(questions),
        passing_score=passing,
    )


def quiz_to_dict(quiz: Quiz) -> dict[str, Any]:
    return {
        "id": quiz.id,
        "passingScore": quiz.passing_score,
        "questions": [
            {
                "id": q.id,
                "question": q.question,
                "options": list(q.options),
                "correctAnswer": q.correct_answer,
                "explanation": q.explanation,
            }
            for q in quiz.questions
        ],
    }


def module_from_dict(raw: dict[str, Any], position: int) -> Module:
    module_type = raw.get("type")
    if module_type not in ("video", "text", "image"):
        raise ContentValidationError(f"module {position}: unknown type {module_type!r}")
    quiz_raw = raw.get("quiz")
    return Module(
        id=_require_str(raw, "id", f"module {position}"),
        title=_require_str(raw, "title", f"module {position}"),
        type=module_type,
        content=content_from_dict(module_type, raw.get("content") or {}),
        position=position,
        duration=raw.get("duration") or "",
        quiz=quiz_from_dict(quiz_raw) if quiz_raw else None,
    )


def course_from_dict(raw: dict[str, Any]) -> Course:
    cert = raw.get("certificate") or {}
    return Course(
        id=_require_str(raw, "id", "course"),
        title=_require_str(raw, "title", "course"),
        owner_address=_require_str(raw, "ownerAddress", "course"),
        price=Decimal(str(raw.get("price", "0"))),
        modules=tuple(
            module_from_dict(m, i) for i, m in enumerate(raw.get("modules") or [])
        ),
        certificate=CertificateMetadata(
            title=cert.get("title") or raw["title"],
            issuer=cert.get("issuer") or "",
            description=cert.get("description") or "",
            image_url=cert.get("imageUrl") or "",
            attributes=tuple(cert.get("attributes") or ()),
        ),
        description=raw.get("description") or "",
        category=raw.get("category") or "",
        level=raw.get("level") or "Beginner",
        thumbnail_url=raw.get("thumbnailUrl") or "",
        duration=raw.get("duration") or "",
        rating=float(raw.get("rating") or 0),
        total_reviews=int(raw.get("totalReviews") or 0),
        total_students=int(raw.get("totalStudents") or 0),
    )


def course_to_dict(course: Course) -> dict[str, Any]:
    return {
        "id": course.id,
        "title": course.title,
        "ownerAddress": course.owner_address,
        "price": str(course.price),
        "description": course.description,
        "category": course.category,
        "level": course.level,
        "thumbnailUrl": course.thumbnail_url,
        "duration": course.duration,
        "rating": course.rating,
        "totalReviews": course.total_reviews,
        "totalStudents": course.total_students,
        "certificate": {
            "title": course.certificate.title,
            "issuer": course.certificate.issuer,
            "description": course.certificate.description,
            "imageUrl": course.certificate.image_url,
            "attributes": list(course.certificate.attributes),
        },
        "modules": [
            {
                "id": m.id,
                "title": m.title,
                "type": m.type,
                "duration": m.duration,
                "content": content_to_dict(m.content),
                "quiz": quiz_to_dict(m.quiz) if m.quiz is not None else None,
            }
            for m in course.modules
        ],
    }
