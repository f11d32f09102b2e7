"""Construction of provider SDK clients from per-call credentials.

Credentials are passed in by the caller for every request and never read
from settings or the environment, so a key only lives as long as the client
built for it.
"""

from __future__ import annotations

from typing import Any


def make_openai_client(api_key: str) -> Any:
    try:
        from openai import OpenAI  # type: ignore
    except ImportError as exc:  # pragma: no cover - runtime dependency guard
        raise RuntimeError("openai package is required for speech-to-text and titles") from exc
    return OpenAI(api_key=api_key)


def make_anthropic_client(api_key: str) -> Any:
    try:
        import anthropic  # type: ignore
    except ImportError as exc:  # pragma: no cover - runtime dependency guard
        raise RuntimeError("anthropic package is required for Claude drafts") from exc
    return anthropic.Anthropic(api_key=api_key)


def make_gemini_model(api_key: str, model: str) -> Any:
    try:
        import google.generativeai as genai  # type: ignore
    except ImportError as exc:  # pragma: no cover - runtime dependency guard
        raise RuntimeError("google-generativeai package is required for Gemini drafts") from exc
    genai.configure(api_key=api_key)
    return genai.GenerativeModel(model)


__all__ = ["make_anthropic_client", "make_gemini_model", "make_openai_client"]
