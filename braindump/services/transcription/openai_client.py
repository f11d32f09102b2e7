"""OpenAI powered transcription service."""

from __future__ import annotations

from typing import Any, Dict, Optional

from ...config import get_settings
from ...data.models import AudioClip
from ...logging import get_logger
from .. import clients
from .base import TranscriptionError, TranscriptionService

LOGGER = get_logger(__name__)


class OpenAITranscriptionService(TranscriptionService):
    def __init__(self, model: Optional[str] = None, language: Optional[str] = None) -> None:
        settings = get_settings()
        self.model = model or settings.transcription_model
        self.language = language or settings.transcription_language

    def transcribe(self, clip: AudioClip, api_key: str) -> str:
        LOGGER.info(
            "Requesting OpenAI transcription for %d byte %s clip",
            len(clip.data),
            clip.mime_type,
        )
        client = clients.make_openai_client(api_key)
        try:
            response = client.audio.transcriptions.create(
                model=self.model,
                file=(clip.filename, clip.data, clip.mime_type.split(";", 1)[0]),
                language=self.language,
                response_format="json",
            )
        except Exception as exc:
            LOGGER.error("OpenAI transcription failed: %s", type(exc).__name__)
            raise TranscriptionError("Failed to transcribe audio") from exc

        return self._parse_transcription_response(response)

    def _parse_transcription_response(self, response: Any) -> str:
        if response is None:
            return ""
        if isinstance(response, str):
            return response

        data: Optional[Dict[str, Any]] = None
        if isinstance(response, dict):
            data = response
        elif hasattr(response, "model_dump"):
            data = response.model_dump()
        if data is not None:
            return str(data.get("text", "") or "")
        return str(getattr(response, "text", "") or "")


__all__ = ["OpenAITranscriptionService"]
