"""Accept/reject decisions for a learner's transcribed speech.

Every signal below covers one way a speech recognizer garbles a correct
answer: literal noise (edit distance), misheard vowels (consonant classes and
skeletons), and spelling-level confusions (coarse phones). Each is a pure
function returning a score in [0, 1]; the combined score is their maximum.
"""

from __future__ import annotations

import logging

from .phonetics import phones_from_text, phonetic_tokens
from .similarity import (
    consonant_skeleton,
    near_token_overlap_score,
    similarity_score,
    token_overlap_score,
)
from .text import tokenize

logger = logging.getLogger(__name__)

WORD_MIN_SCORE = 0.3
PHRASE_MIN_SCORE = 0.45
SINGLE_TOKEN_EXAMPLE_MIN_SCORE = 0.35
SHORT_WORD_MAX_LENGTH = 3
SHORT_WORD_BONUS = 0.2


def text_score(expected: object, heard: object) -> float:
    """Literal signal over normalized tokens."""
    expected_tokens = tokenize(expected)
    heard_tokens = tokenize(heard)
    if not expected_tokens:
        return 0.5 if heard_tokens else 1.0
    if not heard_tokens:
        return 0.0

    expected_text = " ".join(expected_tokens)
    heard_text = " ".join(heard_tokens)
    if expected_text in heard_text:
        return 1.0
    if len(expected_tokens) == 1 and expected_tokens[0] in heard_tokens:
        return 0.9
    return max(token_overlap_score(expected_tokens, heard_tokens), similarity_score(expected_text, heard_text))


def phonetic_score(expected: object, heard: object) -> float:
    """Consonant-class signal; zero when either side has no encodable word."""
    expected_codes = phonetic_tokens(expected)
    heard_codes = phonetic_tokens(heard)
    if not expected_codes or not heard_codes:
        return 0.0
    return max(
        token_overlap_score(expected_codes, heard_codes),
        similarity_score(" ".join(expected_codes), " ".join(heard_codes)),
    )


def skeleton_score(expected: object, heard: object) -> float:
    """Vowel-insensitive signal over consonant skeletons."""
    return similarity_score(" ".join(consonant_skeleton(expected)), " ".join(consonant_skeleton(heard)))


def phone_score(expected: object, heard: object) -> float:
    """Coarse-phone signal: share of expected phones heard, or phone-string similarity."""
    expected_phones = phones_from_text(expected)
    heard_phones = phones_from_text(heard)
    if not expected_phones:
        return 0.4 if heard_phones else 1.0
    if not heard_phones:
        return 0.0

    heard_set = set(heard_phones)
    hits = sum(1 for phone in expected_phones if phone in heard_set)
    return max(hits / len(expected_phones), similarity_score(" ".join(expected_phones), " ".join(heard_phones)))


def score_pronunciation(expected: object, heard: object) -> float:
    """Confidence in [0, 1] that `heard` is an acceptable rendition of `expected`.

    Very short expected words (one token, at most three letters) carry little
    literal evidence in a transcript, so their score leans on the sound-based
    signals, halves the literal one, and adds a flat bonus.
    """
    base_text = text_score(expected, heard)
    base_phonetic = phonetic_score(expected, heard)
    base_skeleton = skeleton_score(expected, heard)
    base_phones = phone_score(expected, heard)

    expected_tokens = tokenize(expected)
    if len(expected_tokens) == 1 and len(expected_tokens[0]) <= SHORT_WORD_MAX_LENGTH:
        voice = max(base_phonetic, base_skeleton, base_phones)
        return min(1.0, max(voice, base_text * 0.5) + SHORT_WORD_BONUS)

    return max(base_text, base_phonetic, base_skeleton, base_phones)


def is_match_word(expected: object, heard: object) -> bool:
    """Decide whether a single vocabulary word was said.

    One- and two-letter words are accepted as soon as anything was heard:
    recognizers rarely transcribe lone letters reliably.
    """
    expected_tokens = tokenize(expected)
    if len(expected_tokens) == 1 and len(expected_tokens[0]) <= 2:
        return bool(tokenize(heard))
    score = score_pronunciation(expected, heard)
    logger.debug("word match %r vs %r: score=%.3f", expected, heard, score)
    return score >= WORD_MIN_SCORE


def _required_overlap(token_count: int) -> float:
    if token_count >= 4:
        return 0.85
    if token_count == 3:
        return 0.75
    if token_count == 2:
        return 0.6
    return 0.35


def _required_length_ratio(token_count: int) -> float:
    if token_count >= 4:
        return 0.8
    if token_count == 3:
        return 0.67
    return 0.0


def is_match_example(expected: object, heard: object) -> bool:
    """Decide whether a whole example phrase was said.

    Longer phrases need proportionally more of their words heard, so that one
    recognized word cannot earn credit for the sentence.
    """
    expected_tokens = tokenize(expected)
    heard_tokens = tokenize(heard)
    token_count = len(expected_tokens)

    score = score_pronunciation(expected, heard)
    if token_count <= 1:
        logger.debug("example match %r vs %r: score=%.3f", expected, heard, score)
        return score >= SINGLE_TOKEN_EXAMPLE_MIN_SCORE

    overlap = max(
        token_overlap_score(expected_tokens, heard_tokens),
        near_token_overlap_score(expected_tokens, heard_tokens),
    )
    length_ratio = len(heard_tokens) / token_count
    logger.debug(
        "example match %r vs %r: score=%.3f overlap=%.3f length_ratio=%.3f",
        expected,
        heard,
        score,
        overlap,
        length_ratio,
    )
    return (
        score >= PHRASE_MIN_SCORE
        and overlap >= _required_overlap(token_count)
        and length_ratio >= _required_length_ratio(token_count)
    )
