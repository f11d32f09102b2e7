"""FastAPI application factory."""

from __future__ import annotations

from typing import Optional

from fastapi import FastAPI

from .. import __version__
from ..config import get_settings
from ..services.drafts.generator import DraftGenerator
from ..services.factory import resolve_draft_providers, resolve_transcription_backend
from ..services.questions import QuestionGenerator
from ..services.transcription.dispatcher import TranscriptionDispatcher
from .routes import ApiServices, router


def default_services() -> ApiServices:
    settings = get_settings()
    return ApiServices(
        dispatcher=TranscriptionDispatcher(resolve_transcription_backend(settings.transcription_backend)),
        drafts=DraftGenerator(resolve_draft_providers(settings.draft_backend)),
        questions=QuestionGenerator(),
    )


def create_app(services: Optional[ApiServices] = None) -> FastAPI:
    app = FastAPI(title="braindump", version=__version__)
    app.state.services = services or default_services()
    app.include_router(router)
    return app


__all__ = ["create_app", "default_services"]
