"""Normalization and tokenization of spoken-answer text."""

from __future__ import annotations

import unicodedata

# ASR tends to spell single letters and short function words as their homophones.
HOMOPHONE_TO_CANON: dict[str, str] = {
    "aye": "i",
    "eye": "i",
    "ai": "i",
    "ay": "i",
    "by": "bye",
    "buy": "bye",
    "bye": "bye",
    "eh": "a",
}

_KEPT_PUNCTUATION = frozenset("'-")


def _as_text(value: object) -> str:
    """Coerce any input to a string; `None` becomes empty."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return str(value)


def _is_kept(char: str) -> bool:
    if char.isspace() or char in _KEPT_PUNCTUATION:
        return True
    category = unicodedata.category(char)
    return category.startswith("L") or category.startswith("N")


def normalize(text: object) -> str:
    """Lowercase, blank out everything but letters/numbers/apostrophes/hyphens, and squeeze spaces."""
    lowered = _as_text(text).lower()
    cleaned = "".join(char if _is_kept(char) else " " for char in lowered)
    return " ".join(cleaned.split())


def tokenize(text: object) -> list[str]:
    """Split normalized text into words with homophones canonicalized."""
    normalized = normalize(text)
    if not normalized:
        return []
    return [HOMOPHONE_TO_CANON.get(token, token) for token in normalized.split(" ") if token]
