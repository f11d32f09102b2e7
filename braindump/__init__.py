"""braindump: voice journaling with transcription and draft generation."""

__version__ = "0.1.0"
