"""Transcription service abstractions."""

from __future__ import annotations

import abc

from ...data.models import AudioClip


class TranscriptionError(RuntimeError):
    """Raised when the speech-to-text provider call fails."""


class MissingInput(ValueError):
    """Raised when a required clip or credential is absent."""


class TranscriptionService(abc.ABC):
    """Convert a finished audio clip into transcript text."""

    @abc.abstractmethod
    def transcribe(self, clip: AudioClip, api_key: str) -> str:
        raise NotImplementedError


__all__ = ["MissingInput", "TranscriptionError", "TranscriptionService"]
