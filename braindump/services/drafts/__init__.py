"""Draft generation providers."""

from .base import (
    CustomFormatRequired,
    DraftGenerationError,
    DraftProvider,
    EmptyGeneration,
    GenerationFailed,
    InvalidCredential,
    InvalidModelConfig,
    RateLimited,
    classify_provider_error,
)
from .dummy import DummyDraftProvider
from .generator import DraftGenerator, GeneratedDraft, require_custom_format
from .prompt import build_prompt, token_budget

__all__ = [
    "CustomFormatRequired",
    "DraftGenerationError",
    "DraftGenerator",
    "DraftProvider",
    "DummyDraftProvider",
    "EmptyGeneration",
    "GeneratedDraft",
    "GenerationFailed",
    "InvalidCredential",
    "InvalidModelConfig",
    "RateLimited",
    "build_prompt",
    "classify_provider_error",
    "require_custom_format",
    "token_budget",
]
