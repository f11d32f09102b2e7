"""HTTP API for transcription, drafting and key checks."""

from .app import create_app

__all__ = ["create_app"]
