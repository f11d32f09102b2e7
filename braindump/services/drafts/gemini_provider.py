"""Gemini powered draft generation."""

from __future__ import annotations

from typing import Optional

from ...config import get_settings
from ...data.models import LLMProvider
from ...logging import get_logger
from .. import clients
from .base import DraftProvider

LOGGER = get_logger(__name__)


class GeminiDraftProvider(DraftProvider):
    """Gemini runs with the provider's default output limit."""

    provider = LLMProvider.GEMINI

    def __init__(self, model: Optional[str] = None) -> None:
        self.model = model or get_settings().gemini_model

    def generate(self, prompt: str, api_key: str, max_tokens: Optional[int] = None) -> str:
        LOGGER.info("Requesting Gemini draft (%s)", self.model)
        model = clients.make_gemini_model(api_key, self.model)
        result = model.generate_content(prompt)
        return getattr(result, "text", "") or ""


__all__ = ["GeminiDraftProvider"]
