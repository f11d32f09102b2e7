"""Factories for runtime service selection."""

from __future__ import annotations

from typing import Dict, Optional

from ..data.models import LLMProvider
from .drafts.base import DraftProvider
from .drafts.dummy import DummyDraftProvider
from .drafts.generator import default_providers
from .transcription.base import TranscriptionService
from .transcription.dummy import DummyTranscriptionService
from .transcription.openai_client import OpenAITranscriptionService


class ServiceConfigurationError(ValueError):
    """Raised when an unknown backend is requested."""


def _normalise(name: Optional[str]) -> str:
    if not name:
        return "openai"
    return name.strip().lower()


def resolve_transcription_backend(name: Optional[str]) -> TranscriptionService:
    backend = _normalise(name)
    if backend == "dummy":
        return DummyTranscriptionService()
    if backend == "openai":
        return OpenAITranscriptionService()
    raise ServiceConfigurationError(f"Unknown transcription backend: {name}")


def resolve_draft_providers(name: Optional[str]) -> Dict[LLMProvider, DraftProvider]:
    """Return one draft provider per :class:`LLMProvider` for the named backend."""

    backend = (name or "hosted").strip().lower()
    if backend == "dummy":
        return {provider: DummyDraftProvider(provider) for provider in LLMProvider}
    if backend == "hosted":
        return default_providers()
    raise ServiceConfigurationError(f"Unknown draft backend: {name}")


__all__ = [
    "ServiceConfigurationError",
    "resolve_draft_providers",
    "resolve_transcription_backend",
]
