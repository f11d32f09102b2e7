"""Draft generation abstractions and the provider error taxonomy."""

from __future__ import annotations

import abc
from typing import Dict, Optional, Sequence, Tuple, Type

from ...data.models import LLMProvider

PROVIDER_NAMES: Dict[LLMProvider, str] = {
    LLMProvider.CLAUDE: "claude",
    LLMProvider.GEMINI: "gemini",
}


class DraftGenerationError(RuntimeError):
    """Base class for draft failures; ``status_code`` is the suggested HTTP status."""

    status_code = 500
    default_message = "Failed to generate draft. Please try again."

    def __init__(self, message: Optional[str] = None, provider: Optional[LLMProvider] = None) -> None:
        self.provider = provider
        super().__init__(message or self.default_message)


class InvalidModelConfig(DraftGenerationError):
    status_code = 400
    default_message = "Invalid model name or API configuration. Please check your API key and try again."


class InvalidCredential(DraftGenerationError):
    status_code = 401
    default_message = "Invalid API key. Please check your API key and try again."


class RateLimited(DraftGenerationError):
    status_code = 429
    default_message = "Rate limit exceeded. Please try again later."


class GenerationFailed(DraftGenerationError):
    status_code = 500

    def __init__(self, message: Optional[str] = None, provider: Optional[LLMProvider] = None) -> None:
        if message is None and provider is not None:
            message = f"Failed to generate draft with {PROVIDER_NAMES[provider]}. Please try again."
        super().__init__(message, provider)


class EmptyGeneration(DraftGenerationError):
    status_code = 500
    default_message = "No content generated"


class CustomFormatRequired(ValueError):
    """Raised when the custom format is chosen without a description."""


ErrorRule = Tuple[str, Type[DraftGenerationError]]

# Case-sensitive substring rules per provider; the first match wins.
ERROR_TRANSLATIONS: Dict[LLMProvider, Sequence[ErrorRule]] = {
    LLMProvider.CLAUDE: (
        ("not_found_error", InvalidModelConfig),
        ("invalid_api_key", InvalidCredential),
        ("rate_limit", RateLimited),
    ),
    LLMProvider.GEMINI: (
        ("is not found", InvalidModelConfig),
        ("API_KEY_INVALID", InvalidCredential),
        ("API key not valid", InvalidCredential),
        ("RESOURCE_EXHAUSTED", RateLimited),
        ("Resource has been exhausted", RateLimited),
    ),
}


def classify_provider_error(provider: LLMProvider, error: BaseException) -> DraftGenerationError:
    """Translate a raw provider exception into the draft error taxonomy."""

    message = str(error)
    for pattern, error_cls in ERROR_TRANSLATIONS.get(provider, ()):
        if pattern in message:
            return error_cls(provider=provider)
    return GenerationFailed(provider=provider)


class DraftProvider(abc.ABC):
    """A text generation backend that turns one prompt into prose."""

    provider: LLMProvider
    applies_token_budget: bool = False

    @abc.abstractmethod
    def generate(self, prompt: str, api_key: str, max_tokens: Optional[int] = None) -> str:
        raise NotImplementedError


__all__ = [
    "CustomFormatRequired",
    "DraftGenerationError",
    "DraftProvider",
    "ERROR_TRANSLATIONS",
    "EmptyGeneration",
    "GenerationFailed",
    "InvalidCredential",
    "InvalidModelConfig",
    "PROVIDER_NAMES",
    "RateLimited",
    "classify_provider_error",
]
