"""Dispatch of draft prompts to exactly one generation provider."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Sequence

from ...data.models import AdvancedSettings, ContentFormat, LLMProvider, QuestionResponse
from ...logging import get_logger
from .anthropic_provider import AnthropicDraftProvider
from .base import (
    CustomFormatRequired,
    DraftGenerationError,
    DraftProvider,
    EmptyGeneration,
    PROVIDER_NAMES,
    classify_provider_error,
)
from .gemini_provider import GeminiDraftProvider
from .prompt import build_prompt, token_budget

LOGGER = get_logger(__name__)


@dataclass
class GeneratedDraft:
    content: str
    prompt: str
    provider: LLMProvider


def require_custom_format(format: ContentFormat, custom_format: Optional[str]) -> None:
    """Reject the custom format when no description was given."""

    if ContentFormat(format) == ContentFormat.CUSTOM and not (custom_format or "").strip():
        raise CustomFormatRequired("Please specify the custom format.")


def default_providers() -> Dict[LLMProvider, DraftProvider]:
    return {
        LLMProvider.CLAUDE: AnthropicDraftProvider(),
        LLMProvider.GEMINI: GeminiDraftProvider(),
    }


class DraftGenerator:
    """Build a prompt and send it to the selected provider.

    There is no failover: a failure from the selected provider is translated
    through that provider's error table and raised to the caller.
    """

    def __init__(self, providers: Optional[Mapping[LLMProvider, DraftProvider]] = None) -> None:
        self._providers: Dict[LLMProvider, DraftProvider] = dict(providers or default_providers())

    def generate(
        self,
        provider: LLMProvider,
        api_key: str,
        responses: Sequence[QuestionResponse],
        format: ContentFormat,
        custom_format: Optional[str] = None,
        settings: Optional[AdvancedSettings] = None,
    ) -> GeneratedDraft:
        provider = LLMProvider(provider)
        backend = self._providers[provider]
        prompt = build_prompt(responses, ContentFormat(format), custom_format, settings)
        max_tokens = token_budget(settings) if backend.applies_token_budget else None
        name = PROVIDER_NAMES[provider]

        try:
            content = backend.generate(prompt, api_key, max_tokens)
        except DraftGenerationError:
            raise
        except Exception as exc:
            error = classify_provider_error(provider, exc)
            LOGGER.error("Draft generation with %s failed: %s", name, type(exc).__name__)
            raise error from exc

        if not content or not content.strip():
            raise EmptyGeneration(provider=provider)

        LOGGER.info("Generated %d characters with %s", len(content), name)
        return GeneratedDraft(content=content, prompt=prompt, provider=provider)


__all__ = ["DraftGenerator", "GeneratedDraft", "default_providers", "require_custom_format"]
