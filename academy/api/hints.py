from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from academy.api.dependencies import LearnerDep, PlatformDep
from academy.models.course import Course, Module
from academy.services.hints import HintMessage

router = APIRouter(prefix="/v1/hints", tags=["hints"])


class HistoryItem(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class ChatIn(BaseModel):
    course_id: str
    module_id: str
    message: str = Field(min_length=1, max_length=2000)
    history: list[HistoryItem] = Field(default_factory=list)


class HintIn(BaseModel):
    course_id: str
    module_id: str
    question: str = Field(min_length=1, max_length=2000)


class ChatOut(BaseModel):
    reply: str


class HintOut(BaseModel):
    hint: str


async def _locate(platform: PlatformDep, course_id: str, module_id: str) -> tuple[Course, Module]:
    course = await platform.catalog.get(course_id)
    if course is None:
        raise HTTPException(status_code=404, detail="course not found")
    index = course.module_index(module_id)
    if index is None:
        raise HTTPException(status_code=404, detail="module not found")
    return course, course.modules[index]


@router.post("/chat", response_model=ChatOut)
async def chat(body: ChatIn, _learner: LearnerDep, platform: PlatformDep) -> ChatOut:
    course, module = await _locate(platform, body.course_id, body.module_id)
    history = [HintMessage(role=h.role, content=h.content) for h in body.history]
    reply = await platform.hints.reply(course, module, body.message, history)
    return ChatOut(reply=reply)


@router.post("/hint", response_model=HintOut)
async def hint(body: HintIn, _learner: LearnerDep, platform: PlatformDep) -> HintOut:
    course, module = await _locate(platform, body.course_id, body.module_id)
    return HintOut(hint=await platform.hints.hint(course, module, body.question))
