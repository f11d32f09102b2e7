"""Dummy transcription service for testing or offline usage."""

from __future__ import annotations

from ...data.models import AudioClip
from .base import TranscriptionService


class DummyTranscriptionService(TranscriptionService):
    def __init__(self, text: str = "") -> None:
        self.text = text

    def transcribe(self, clip: AudioClip, api_key: str) -> str:
        if self.text:
            return self.text
        return (
            f"Dummy transcript of a {clip.duration:.1f}s {clip.mime_type} clip. "
            "Replace with a real transcription backend."
        )


__all__ = ["DummyTranscriptionService"]
