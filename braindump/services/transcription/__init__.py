"""Transcription services."""

from .base import MissingInput, TranscriptionError, TranscriptionService
from .dispatcher import TranscriptionDispatcher
from .dummy import DummyTranscriptionService

__all__ = [
    "DummyTranscriptionService",
    "MissingInput",
    "TranscriptionDispatcher",
    "TranscriptionError",
    "TranscriptionService",
]
