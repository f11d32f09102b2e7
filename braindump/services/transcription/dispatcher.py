"""Single-attempt dispatch of finished clips to a transcription service."""

from __future__ import annotations

from typing import Optional

from ...data.models import AudioClip
from ...logging import get_logger
from .base import MissingInput, TranscriptionError, TranscriptionService

LOGGER = get_logger(__name__)


class TranscriptionDispatcher:
    """Validate input, call the service once, and normalise failures.

    Input checks happen before any network traffic. There are no retries;
    the caller decides whether to ask the user to record again.
    """

    def __init__(self, service: TranscriptionService) -> None:
        self.service = service

    def dispatch(self, clip: Optional[AudioClip], api_key: Optional[str]) -> str:
        if clip is None or clip.is_empty:
            raise MissingInput("No audio file provided")
        if not api_key:
            raise MissingInput("OpenAI API key not provided")

        try:
            transcript = self.service.transcribe(clip, api_key)
        except TranscriptionError:
            raise
        except Exception as exc:
            LOGGER.error("Transcription service raised %s", type(exc).__name__)
            raise TranscriptionError("Failed to transcribe audio") from exc

        LOGGER.info("Transcribed clip into %d word(s)", len(transcript.split()))
        return transcript


__all__ = ["TranscriptionDispatcher"]
