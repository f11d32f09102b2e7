"""Prompt construction for draft generation.

Everything here is a pure function of its inputs: identical responses,
format and settings always produce byte-identical prompts.
"""

from __future__ import annotations

from typing import Dict, Optional, Sequence

from ...data.models import AdvancedSettings, ContentFormat, QuestionResponse

MAX_OUTPUT_TOKENS = 4000
TOKENS_PER_WORD = 2

FORMAT_DESCRIPTIONS: Dict[ContentFormat, str] = {
    ContentFormat.ACADEMIC: "an academic essay with proper citations and formal language",
    ContentFormat.BLOG: "a blog post with engaging, conversational tone and clear sections",
    ContentFormat.PERSONAL: "a personal reflection that maintains an introspective and authentic voice",
}

GUIDELINES = (
    "Guidelines:\n"
    "1. Organize the content logically and maintain a coherent narrative\n"
    "2. Preserve the personal voice and key insights from the responses\n"
    "3. Expand on important points while maintaining clarity"
)


def describe_format(format: ContentFormat, custom_format: Optional[str] = None) -> str:
    if format == ContentFormat.CUSTOM:
        return custom_format or "a well-structured piece"
    return FORMAT_DESCRIPTIONS[format]


def format_responses(responses: Sequence[QuestionResponse]) -> str:
    return "\n\n".join(
        f"Question: {item.question_text}\nResponse: {item.transcription}" for item in responses
    )


def build_prompt(
    responses: Sequence[QuestionResponse],
    format: ContentFormat,
    custom_format: Optional[str] = None,
    settings: Optional[AdvancedSettings] = None,
) -> str:
    settings = settings or AdvancedSettings()
    prompt = (
        f"Based on the following responses to questions, create {describe_format(format, custom_format)}. "
        "Maintain the original ideas and insights while improving the structure and flow.\n\n"
        f"{format_responses(responses)}\n\n"
        f"{GUIDELINES}"
    )

    if settings.length:
        prompt += f"\n4. Target length: approximately {settings.length} words"
    if settings.tone:
        prompt += f"\n5. Maintain a {settings.tone} tone throughout"
    if settings.audience:
        prompt += f"\n6. Write for {settings.audience}"
    if settings.custom_instructions:
        prompt += f"\n\nAdditional Instructions:\n{settings.custom_instructions}"

    return prompt


def token_budget(settings: Optional[AdvancedSettings] = None) -> int:
    """Output token cap: twice the requested word count, never above 4000."""

    if settings is not None and settings.length:
        return min(MAX_OUTPUT_TOKENS, settings.length * TOKENS_PER_WORD)
    return MAX_OUTPUT_TOKENS


__all__ = [
    "FORMAT_DESCRIPTIONS",
    "GUIDELINES",
    "MAX_OUTPUT_TOKENS",
    "build_prompt",
    "describe_format",
    "format_responses",
    "token_budget",
]
