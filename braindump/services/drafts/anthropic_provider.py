"""Claude powered draft generation."""

from __future__ import annotations

from typing import Optional

from ...config import get_settings
from ...data.models import LLMProvider
from ...logging import get_logger
from .. import clients
from .base import DraftProvider
from .prompt import MAX_OUTPUT_TOKENS

LOGGER = get_logger(__name__)

TEMPERATURE = 0.7


class AnthropicDraftProvider(DraftProvider):
    provider = LLMProvider.CLAUDE
    applies_token_budget = True

    def __init__(self, model: Optional[str] = None) -> None:
        self.model = model or get_settings().anthropic_model

    def generate(self, prompt: str, api_key: str, max_tokens: Optional[int] = None) -> str:
        budget = max_tokens or MAX_OUTPUT_TOKENS
        LOGGER.info("Requesting Claude draft (%s, max_tokens=%d)", self.model, budget)
        client = clients.make_anthropic_client(api_key)
        completion = client.messages.create(
            model=self.model,
            max_tokens=budget,
            temperature=TEMPERATURE,
            messages=[{"role": "user", "content": prompt}],
        )
        if not completion.content:
            return ""
        block = completion.content[0]
        if getattr(block, "type", None) != "text":
            return ""
        return block.text or ""


__all__ = ["AnthropicDraftProvider", "TEMPERATURE"]
