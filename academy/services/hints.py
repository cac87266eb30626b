"""AI hint assistant for the course player.

The assistant nudges rather than answers: the system prompt carries the
module's content and asks for short, leading guidance.  The completion
backend sits behind ``HintService`` so the player keeps working without
an API key (OfflineHintService) and tests never reach the network.

A failing backend never fails the request.  The assistant logs the
error, counts it as a fallback and returns a canned reply, since a hint
is a convenience and the learner can carry on without it.
"""

from __future__ import annotations

import json
import logging
import random
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal, Protocol, runtime_checkable

from openai import AsyncOpenAI, OpenAIError

from academy.core.metrics import HINT_REQUESTS
from academy.models.course import Course, Module, content_to_dict

logger = logging.getLogger(__name__)

HISTORY_TURNS = 6

CHAT_FALLBACK = (
    "I'm experiencing some technical difficulties. In the meantime, try reviewing "
    "the module content and think about how the key concepts connect to your "
    "question. What specific part would you like to explore further?"
)
EMPTY_CHAT_REPLY = (
    "I'm having trouble processing your question right now. "
    "Could you try rephrasing it?"
)
EMPTY_HINT_REPLY = (
    "Think about the main concepts covered in this module and how they might "
    "apply to your question."
)
FALLBACK_HINTS = (
    "Think about the fundamental principles we discussed earlier.",
    "Consider how this relates to the main topic of this module.",
    "Remember the key characteristics we highlighted.",
    "This concept builds on what you learned in the previous section.",
    "Focus on the practical applications we mentioned.",
)


@dataclass(frozen=True, slots=True)
class HintMessage:
    role: Literal["user", "assistant"]
    content: str


class HintServiceError(Exception):
    """The completion backend did not produce an answer."""


@runtime_checkable
class HintService(Protocol):
    async def complete(
        self,
        system_prompt: str,
        history: Sequence[HintMessage],
        user_message: str,
        *,
        max_tokens: int,
        temperature: float,
    ) -> str:
        """Return the model's reply, or "" when it produced none."""
        ...


class OpenAIHintService:
    def __init__(
        self, api_key: str, *, model: str, client: AsyncOpenAI | None = None
    ) -> None:
        self._model = model
        self._client = client or AsyncOpenAI(api_key=api_key)

    async def complete(
        self,
        system_prompt: str,
        history: Sequence[HintMessage],
        user_message: str,
        *,
        max_tokens: int,
        temperature: float,
    ) -> str:
        messages = [{"role": "system", "content": system_prompt}]
        messages += [{"role": m.role, "content": m.content} for m in history]
        messages.append({"role": "user", "content": user_message})
        try:
            completion = await self._client.chat.completions.create(
                model=self._model,
                messages=messages,
                max_tokens=max_tokens,
                temperature=temperature,
                presence_penalty=0.1,
                frequency_penalty=0.1,
            )
        except OpenAIError as exc:
            raise HintServiceError(str(exc)) from exc
        if not completion.choices:
            return ""
        return completion.choices[0].message.content or ""


class OfflineHintService:
    """Used when no OPENAI_API_KEY is configured."""

    async def complete(
        self,
        system_prompt: str,
        history: Sequence[HintMessage],
        user_message: str,
        *,
        max_tokens: int,
        temperature: float,
    ) -> str:
        return (
            "Hints are offline right now. Re-read the module and try to restate "
            "the question in your own words: which idea from this module does it use?"
        )


def module_context(module: Module) -> str:
    return json.dumps(
        {
            "title": module.title,
            "type": module.type,
            "duration": module.duration,
            "content": content_to_dict(module.content),
        }
    )


def chat_prompt(course: Course, module: Module) -> str:
    return f"""You are an AI learning assistant for the course "{course.title}".
Your role is to provide helpful hints and guidance to students, NOT direct answers.

Current Module Context:
- Title: {module.title}
- Type: {module.type}
- Duration: {module.duration}
- Content: {module_context(module)}

Guidelines:
1. Provide hints and guidance, not direct answers
2. Ask leading questions to help students think critically
3. Break down complex concepts into smaller parts
4. Encourage exploration and discovery
5. Reference the module content when relevant
6. Be encouraging and supportive
7. If students are stuck, provide progressively more specific hints
8. Keep responses concise but helpful (2-3 sentences max)

Remember: Your goal is to facilitate learning, not to give away answers."""


def hint_prompt(course: Course, module: Module) -> str:
    return f"""You are providing a learning hint for the course "{course.title}".

Module Context:
- Title: {module.title}
- Content: {module_context(module)}

Provide a subtle hint that guides the student toward the answer without giving it away directly.
Focus on helping them think about the right concepts or approach."""


class HintAssistant:
    def __init__(self, service: HintService) -> None:
        self._service = service

    async def reply(
        self,
        course: Course,
        module: Module,
        message: str,
        history: Sequence[HintMessage] = (),
    ) -> str:
        try:
            text = await self._service.complete(
                chat_prompt(course, module),
                list(history)[-HISTORY_TURNS:],
                message,
                max_tokens=200,
                temperature=0.7,
            )
        except HintServiceError:
            logger.exception("Hint chat failed course=%s module=%s", course.id, module.id)
            HINT_REQUESTS.labels(result="fallback").inc()
            return CHAT_FALLBACK
        HINT_REQUESTS.labels(result="ok").inc()
        return text or EMPTY_CHAT_REPLY

    async def hint(self, course: Course, module: Module, question: str) -> str:
        try:
            text = await self._service.complete(
                hint_prompt(course, module),
                (),
                f"I need a hint for this question: {question}",
                max_tokens=100,
                temperature=0.6,
            )
        except HintServiceError:
            logger.exception("Hint failed course=%s module=%s", course.id, module.id)
            HINT_REQUESTS.labels(result="fallback").inc()
            return random.choice(FALLBACK_HINTS)
        HINT_REQUESTS.labels(result="ok").inc()
        return text or EMPTY_HINT_REPLY
