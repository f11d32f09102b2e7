"""Dummy draft provider for offline usage."""

from __future__ import annotations

from typing import Optional

from ...data.models import LLMProvider
from .base import DraftProvider


class DummyDraftProvider(DraftProvider):
    def __init__(self, provider: LLMProvider = LLMProvider.CLAUDE) -> None:
        self.provider = provider

    def generate(self, prompt: str, api_key: str, max_tokens: Optional[int] = None) -> str:
        responses = [line[len("Response: ") :] for line in prompt.splitlines() if line.startswith("Response: ")]
        combined = " ".join(responses)
        summary = combined[:280] + ("..." if len(combined) > 280 else "")
        return summary or "No responses available."


__all__ = ["DummyDraftProvider"]
