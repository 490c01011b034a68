"""Compose the text of a share post from aggregated usage."""
from __future__ import annotations

from typing import List

from src.core.config import settings
from src.schemas.usage import UsageData

TEMPLATES = (
    "I used {tokens} tokens with Claude in {year}! #ClaudeAI #AI{year}",
    "My {year} AI journey: {tokens} tokens with @AnthropicAI's Claude! #YearInAI",
    "{tokens} tokens later... Thanks Claude for being my AI companion in {year}! #ClaudeAI",
    "{year} wrapped: {tokens} tokens of conversations with Claude! #AIStats",
)

_UNITS = ((1_000_000_000, "B"), (1_000_000, "M"), (1_000, "K"))


def format_tokens(count: int) -> str:
    """``1234567`` -> ``"1.2M"``; counts under a thousand are returned as-is."""

    for size, suffix in _UNITS:
        if count >= size:
            value = f"{count / size:.1f}".rstrip("0").rstrip(".")
            return f"{value}{suffix}"
    return str(count)


def render_messages(usage: UsageData) -> List[str]:
    """All templates rendered for ``usage`` that fit in one post."""

    tokens = format_tokens(usage.total_tokens)
    rendered = (template.format(tokens=tokens, year=usage.year) for template in TEMPLATES)
    return [message for message in rendered if len(message) <= settings.POST_MAX_CHARS]
