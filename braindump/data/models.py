"""Data models used by braindump."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class ContentFormat(str, enum.Enum):
    ACADEMIC = "academic"
    BLOG = "blog"
    PERSONAL = "personal"
    CUSTOM = "custom"


class LLMProvider(str, enum.Enum):
    CLAUDE = "claude"
    GEMINI = "gemini"


class Response(BaseModel):
    id: str
    transcription: str
    created_at: datetime


class Question(BaseModel):
    id: str
    text: str
    order: int
    responses: List[Response] = Field(default_factory=list)

    @property
    def latest_response(self) -> Optional[Response]:
        """Most recently created response; ``responses`` is kept newest first."""

        return self.responses[0] if self.responses else None


class Session(BaseModel):
    id: str
    user_id: str
    title: str
    created_at: datetime
    updated_at: datetime
    questions: List[Question] = Field(default_factory=list)


class SessionSummary(BaseModel):
    id: str
    title: str
    created_at: datetime
    updated_at: datetime


class QuestionStub(BaseModel):
    """Question text and position used by templates and new sessions."""

    text: str
    order: int = 0
    id: Optional[str] = None


class Template(BaseModel):
    id: str
    user_id: str
    name: str
    description: str = ""
    is_public: bool = False
    questions: List[QuestionStub] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class AdvancedSettings(BaseModel):
    length: Optional[int] = None
    tone: Optional[str] = None
    audience: Optional[str] = None
    custom_instructions: Optional[str] = Field(default=None, alias="customInstructions")

    model_config = {"populate_by_name": True}


class QuestionResponse(BaseModel):
    """A question paired with the transcription used for drafting."""

    question_text: str = Field(alias="questionText")
    transcription: str

    model_config = {"populate_by_name": True}


class Draft(BaseModel):
    id: str
    user_id: str
    session_id: str
    provider: LLMProvider
    format: ContentFormat
    custom_format: Optional[str] = None
    settings: AdvancedSettings = Field(default_factory=AdvancedSettings)
    content: str
    prompt: str
    created_at: datetime
    updated_at: datetime


@dataclass
class AudioClip:
    """A finished recording ready for transcription."""

    data: bytes
    mime_type: str = "audio/wav"
    duration: float = 0.0

    @property
    def filename(self) -> str:
        base = self.mime_type.split(";", 1)[0]
        extension = base.split("/", 1)[-1] or "wav"
        return f"audio.{extension}"

    @property
    def is_empty(self) -> bool:
        return not self.data


__all__ = [
    "AdvancedSettings",
    "AudioClip",
    "ContentFormat",
    "Draft",
    "LLMProvider",
    "Question",
    "QuestionResponse",
    "QuestionStub",
    "Response",
    "Session",
    "SessionSummary",
    "Template",
]
