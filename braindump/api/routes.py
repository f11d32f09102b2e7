"""HTTP relay between the local client and the hosted AI providers.

Credentials arrive in each request body, are handed to the provider SDK for
that one call, and are never stored or logged.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from fastapi import APIRouter, File, Form, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .. import __version__
from ..data.models import AdvancedSettings, AudioClip, ContentFormat, LLMProvider, QuestionResponse
from ..logging import get_logger
from ..services.drafts.base import DraftGenerationError
from ..services.drafts.generator import DraftGenerator
from ..services.keys import DEFAULT_VALIDATORS, KeyFormatError, Provider
from ..services.questions import QuestionGenerationError, QuestionGenerator, is_title_request
from ..services.transcription.base import MissingInput, TranscriptionError
from ..services.transcription.dispatcher import TranscriptionDispatcher

LOGGER = get_logger(__name__)

router = APIRouter(prefix="/api")


@dataclass
class ApiServices:
    dispatcher: TranscriptionDispatcher
    drafts: DraftGenerator
    questions: QuestionGenerator
    validators: Dict[Provider, Callable[[str], bool]] = field(default_factory=lambda: dict(DEFAULT_VALIDATORS))


class GenerateDraftBody(BaseModel):
    api_key: Optional[str] = Field(default=None, alias="apiKey")
    model: Optional[LLMProvider] = None
    responses: Optional[List[QuestionResponse]] = None
    format: Optional[ContentFormat] = None
    custom_format: Optional[str] = Field(default=None, alias="customFormat")
    settings: AdvancedSettings = Field(default_factory=AdvancedSettings)

    model_config = {"populate_by_name": True}


class GenerateQuestionsBody(BaseModel):
    prompt: Optional[str] = None
    api_key: Optional[str] = Field(default=None, alias="apiKey")

    model_config = {"populate_by_name": True}


class KeyBody(BaseModel):
    api_key: Optional[str] = Field(default=None, alias="apiKey")

    model_config = {"populate_by_name": True}


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _services(request: Request) -> ApiServices:
    return request.app.state.services


@router.get("/v1/")
def status() -> dict:
    return {"status": "ok", "version": __version__}


@router.post("/transcribe")
async def transcribe(
    request: Request,
    audio: Optional[UploadFile] = File(default=None),
    api_key: Optional[str] = Form(default=None, alias="apiKey"),
):
    clip: Optional[AudioClip] = None
    if audio is not None:
        clip = AudioClip(data=await audio.read(), mime_type=audio.content_type or "audio/wav")
    try:
        transcript = await run_in_threadpool(_services(request).dispatcher.dispatch, clip, api_key)
    except MissingInput as exc:
        return _error(400, str(exc))
    except TranscriptionError as exc:
        return _error(500, str(exc))
    return {"transcript": transcript}


@router.post("/generate-draft")
def generate_draft(body: GenerateDraftBody, request: Request):
    if not body.api_key or not body.model or not body.responses or not body.format:
        return _error(400, "Missing required fields")
    try:
        draft = _services(request).drafts.generate(
            body.model,
            body.api_key,
            body.responses,
            body.format,
            custom_format=body.custom_format,
            settings=body.settings,
        )
    except DraftGenerationError as exc:
        return _error(exc.status_code, str(exc))
    return {"content": draft.content, "prompt": draft.prompt}


@router.post("/generate-questions")
def generate_questions(body: GenerateQuestionsBody, request: Request):
    if not body.prompt or not body.api_key:
        return _error(400, "Missing required fields")
    generator = _services(request).questions
    try:
        if is_title_request(body.prompt):
            return {"title": generator.request_title(body.prompt, body.api_key)}
        questions = generator.generate_questions(body.prompt, body.api_key)
    except QuestionGenerationError as exc:
        LOGGER.error("Question generation failed: %s", exc)
        return _error(500, "Failed to generate content")
    except Exception as exc:  # provider SDK errors may echo request details
        LOGGER.error("Question generation failed: %s", type(exc).__name__)
        return _error(500, "Failed to generate content")
    return {"questions": [stub.model_dump() for stub in questions]}


def _test_key(request: Request, provider: Provider, api_key: Optional[str]):
    validator = _services(request).validators[provider]
    try:
        accepted = validator(api_key or "")
    except KeyFormatError as exc:
        return _error(400, str(exc))
    if not accepted:
        return _error(401, "Invalid API key")
    return {"success": True}


@router.post("/test-openai-key")
def test_openai_key(body: KeyBody, request: Request):
    return _test_key(request, Provider.OPENAI, body.api_key)


@router.post("/test-anthropic-key")
def test_anthropic_key(body: KeyBody, request: Request):
    return _test_key(request, Provider.ANTHROPIC, body.api_key)


@router.post("/test-gemini-key")
def test_gemini_key(body: KeyBody, request: Request):
    return _test_key(request, Provider.GEMINI, body.api_key)


__all__ = ["ApiServices", "router"]
