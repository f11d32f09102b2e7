"""OpenAI backed generation of session titles and interview questions."""

from __future__ import annotations

import json
import re
import uuid
from datetime import date
from typing import Any, Dict, List, Optional, Sequence

from ..config import get_settings
from ..data.models import QuestionStub
from ..logging import get_logger
from . import clients

LOGGER = get_logger(__name__)

TITLE_SYSTEM_PROMPT = (
    "You are a helpful assistant that generates concise and descriptive titles. "
    "Your response must be a valid JSON object with a 'title' field. "
    "Do not include any markdown formatting or code blocks. "
    'Example: {"title": "Daily Reflection Session"}'
)
QUESTIONS_SYSTEM_PROMPT = (
    "You are a helpful assistant that generates interview questions. "
    "Your response must be a valid JSON object with a 'questions' array containing 5-10 questions. "
    "Each question should be a string. Do not include any markdown formatting or code blocks. "
    'Example: {"questions": ["What are your goals for today?", "How do you feel about your progress?"]}'
)
TITLE_MAX_LENGTH = 50

_FENCE_PATTERN = re.compile(r"```json\n?|\n?```")


class QuestionGenerationError(RuntimeError):
    """Raised when the model output cannot be turned into a title or questions."""


def title_prompt(questions: Sequence[str]) -> str:
    return (
        "Based on these questions, generate a concise and descriptive title (max 50 characters) "
        'for this recording session. Format the response as JSON with a "title" field. '
        f"Questions: {', '.join(questions)}"
    )


def fallback_title(today: Optional[date] = None) -> str:
    return (today or date.today()).strftime("%x")


def is_title_request(prompt: str) -> bool:
    return "title" in prompt.lower()


def parse_json_payload(raw: Optional[str]) -> Dict[str, Any]:
    """Parse a JSON object, tolerating markdown code fences around it."""

    if not raw:
        raise QuestionGenerationError("No content generated")
    cleaned = _FENCE_PATTERN.sub("", raw).strip()
    try:
        payload = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise QuestionGenerationError("Invalid response format from OpenAI") from exc
    if not isinstance(payload, dict):
        raise QuestionGenerationError("Invalid response format from OpenAI")
    return payload


class QuestionGenerator:
    def __init__(self, model: Optional[str] = None) -> None:
        self.model = model or get_settings().title_model

    def _complete(self, system_prompt: str, prompt: str, api_key: str) -> Dict[str, Any]:
        client = clients.make_openai_client(api_key)
        completion = client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": prompt},
            ],
            temperature=0.7,
            response_format={"type": "json_object"},
        )
        choices = getattr(completion, "choices", None) or []
        content = choices[0].message.content if choices else None
        return parse_json_payload(content)

    def request_title(self, prompt: str, api_key: str) -> str:
        payload = self._complete(TITLE_SYSTEM_PROMPT, prompt, api_key)
        title = payload.get("title")
        if not isinstance(title, str) or not title.strip():
            raise QuestionGenerationError("Response missing title field")
        return title.strip()

    def generate_title(self, questions: Sequence[str], api_key: Optional[str]) -> str:
        """Return a short session title, or today's date when generation fails."""

        if not api_key:
            return fallback_title()
        try:
            title = self.request_title(title_prompt(questions), api_key)
        except Exception as exc:
            LOGGER.warning("Title generation failed (%s); using the date", type(exc).__name__)
            return fallback_title()
        return title[:TITLE_MAX_LENGTH]

    def generate_questions(self, prompt: str, api_key: str) -> List[QuestionStub]:
        payload = self._complete(QUESTIONS_SYSTEM_PROMPT, prompt, api_key)
        raw_questions = payload.get("questions")
        if not isinstance(raw_questions, list):
            raise QuestionGenerationError("Response missing questions array")

        stubs: List[QuestionStub] = []
        for index, text in enumerate(raw_questions):
            if not isinstance(text, str) or not text.strip():
                raise QuestionGenerationError(f"Invalid question format at index {index}")
            stubs.append(QuestionStub(id=str(uuid.uuid4()), text=text.strip(), order=index))
        LOGGER.info("Generated %d question(s)", len(stubs))
        return stubs


__all__ = [
    "QuestionGenerationError",
    "QuestionGenerator",
    "fallback_title",
    "is_title_request",
    "parse_json_payload",
    "title_prompt",
]
