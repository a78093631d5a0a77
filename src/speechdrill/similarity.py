"""String and token similarity signals used by the pronunciation scorer."""

from __future__ import annotations

from collections.abc import Sequence

from rapidfuzz.distance import Levenshtein

from .phonetics import VOWELS, phonetic_encode
from .text import tokenize

# Expected tokens at least this long may be matched approximately.
NEAR_TOKEN_MIN_LENGTH = 4
NEAR_TOKEN_SIMILARITY = 0.75


def levenshtein(a: str, b: str) -> int:
    """Edit distance with unit insert/delete/substitute costs."""
    return Levenshtein.distance(a, b)


def similarity_score(a: str, b: str) -> float:
    """Edit-distance similarity normalized to [0, 1]; two empty strings are identical."""
    if not a and not b:
        return 1.0
    return 1.0 - levenshtein(a, b) / max(len(a), len(b), 1)


def _empty_overlap(expected_tokens: Sequence[str], heard_tokens: Sequence[str]) -> float | None:
    """Shared rules for empty input and single very short expected tokens."""
    if not expected_tokens:
        return 0.5 if heard_tokens else 1.0
    if not heard_tokens:
        return 0.0
    if len(expected_tokens) == 1 and len(expected_tokens[0]) <= 2:
        return 1.0 if expected_tokens[0] in heard_tokens else 0.0
    return None


def token_overlap_score(expected_tokens: Sequence[str], heard_tokens: Sequence[str]) -> float:
    """Share of expected tokens present in the heard tokens, ignoring order and repeats."""
    special = _empty_overlap(expected_tokens, heard_tokens)
    if special is not None:
        return special
    heard = set(heard_tokens)
    hits = sum(1 for token in expected_tokens if token in heard)
    return hits / len(expected_tokens)


def _is_near_token(expected: str, heard: str) -> bool:
    if expected == heard:
        return True
    if len(expected) < NEAR_TOKEN_MIN_LENGTH:
        return False
    if similarity_score(expected, heard) >= NEAR_TOKEN_SIMILARITY:
        return True
    code = phonetic_encode(expected)
    return bool(code) and code == phonetic_encode(heard)


def near_token_overlap_score(expected_tokens: Sequence[str], heard_tokens: Sequence[str]) -> float:
    """Like `token_overlap_score`, but longer words also count when heard approximately.

    "studen" counts for "student" (one clipped consonant); "stop" does not count
    for "student".
    """
    special = _empty_overlap(expected_tokens, heard_tokens)
    if special is not None:
        return special
    heard = set(heard_tokens)
    hits = 0
    for token in expected_tokens:
        if token in heard or any(_is_near_token(token, candidate) for candidate in heard):
            hits += 1
    return hits / len(expected_tokens)


def consonant_skeleton(text: object) -> list[str]:
    """Per-token consonant skeletons: vowels dropped, doubled consonants squeezed."""
    skeletons: list[str] = []
    for token in tokenize(text):
        chars: list[str] = []
        for char in token:
            if char in VOWELS or (chars and chars[-1] == char):
                continue
            chars.append(char)
        if chars:
            skeletons.append("".join(chars))
    return skeletons
