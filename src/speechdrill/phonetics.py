"""Crude, rule-based English phonetic encodings for transcript matching.

Two complementary abstractions are produced per word:

- a Soundex-like consonant-class code (`phonetic_encode`): vowels dropped
  except at the start, consonants bucketed into digit classes;
- a coarse grapheme-to-phone transcription (`phones_from_word`): common
  spelling clusters rewritten to phone labels, every vowel reduced to `V`.

Neither is a real pronunciation model. They only need to make words that an
ASR engine garbles in typical ways land close to each other.
"""

from __future__ import annotations

import re

from .text import tokenize

Phone = str

VOWELS = frozenset("aeiouy")

_NON_ALPHA = re.compile(r"[^a-z]")

_INITIAL_CLUSTERS: tuple[tuple[str, str], ...] = (
    ("kn", "n"),
    ("wr", "r"),
    ("ps", "s"),
    ("wh", "w"),
)

# Order matters: `ght` must be rewritten before `gh`, `dge` before `ge`.
_CODE_REWRITES: tuple[tuple[str, str], ...] = (
    ("ph", "f"),
    ("ght", "t"),
    ("gh", "g"),
    ("qu", "k"),
    ("ck", "k"),
    ("tion", "shun"),
    ("cia", "sha"),
    ("dge", "j"),
    ("ge", "j"),
)

_CONSONANT_CLASSES: dict[str, str] = {
    **dict.fromkeys("bfpv", "1"),
    **dict.fromkeys("cgjkqsxz", "2"),
    **dict.fromkeys("dt", "3"),
    "l": "4",
    **dict.fromkeys("mn", "5"),
    "r": "6",
}

_FINAL_PHONE_CLUSTERS: tuple[tuple[str, tuple[Phone, ...]], ...] = (
    ("tion", ("SH", "V", "N")),
    ("sion", ("Z", "V", "N")),
)

# Longest clusters first so the scan is greedy.
_PHONE_CLUSTERS: tuple[tuple[str, tuple[Phone, ...]], ...] = (
    ("tch", ("CH",)),
    ("dge", ("J",)),
    ("cia", ("SH", "V")),
    ("ch", ("CH",)),
    ("sh", ("SH",)),
    ("th", ("TH",)),
    ("ph", ("F",)),
    ("gh", ("G",)),
    ("qu", ("K", "W")),
    ("ck", ("K",)),
    ("ge", ("J",)),
)

_CONSONANT_PHONES: dict[str, Phone] = {
    "b": "B",
    **dict.fromkeys("cskqg", "K"),
    "j": "J",
    "x": "KS",
    "z": "Z",
    **dict.fromkeys("fv", "F"),
    "p": "P",
    "m": "M",
    "n": "N",
    "l": "L",
    "r": "R",
    "h": "H",
    **dict.fromkeys("dt", "T"),
}


def _letters_only(word: object) -> str:
    return _NON_ALPHA.sub("", str(word or "").lower())


def _strip_initial_cluster(word: str) -> str:
    for cluster, replacement in _INITIAL_CLUSTERS:
        if word.startswith(cluster):
            return replacement + word[len(cluster) :]
    return word


def phonetic_encode(word: object) -> str:
    """Return the consonant-class code of one word, e.g. `"phone"` -> `"15"`."""
    letters = _letters_only(word)
    if not letters:
        return ""

    letters = _strip_initial_cluster(letters)
    for pattern, replacement in _CODE_REWRITES:
        letters = letters.replace(pattern, replacement)

    result: list[str] = []
    for index, char in enumerate(letters):
        if char in VOWELS:
            mapped = char if index == 0 else ""
        else:
            mapped = _CONSONANT_CLASSES.get(char, char)
        if mapped and (not result or result[-1] != mapped):
            result.append(mapped)
    return "".join(result)


def phonetic_tokens(text: object) -> list[str]:
    """Consonant-class codes for every token of a text, empty codes dropped."""
    codes = (phonetic_encode(token) for token in tokenize(text))
    return [code for code in codes if code]


def phones_from_word(word: object) -> list[Phone]:
    """Return the coarse phone sequence of one word, e.g. `"watch"` -> `["W", "V", "CH"]`."""
    letters = _letters_only(word)
    if not letters:
        return []

    letters = _strip_initial_cluster(letters)
    suffix: tuple[Phone, ...] = ()
    for ending, ending_phones in _FINAL_PHONE_CLUSTERS:
        if letters.endswith(ending):
            letters = letters[: -len(ending)]
            suffix = ending_phones
            break

    phones: list[Phone] = []
    index = 0
    while index < len(letters):
        for cluster, cluster_phones in _PHONE_CLUSTERS:
            if letters.startswith(cluster, index):
                phones.extend(cluster_phones)
                index += len(cluster)
                break
        else:
            char = letters[index]
            if char in VOWELS:
                phones.append("V")
            else:
                phones.append(_CONSONANT_PHONES.get(char, char.upper()))
            index += 1
    phones.extend(suffix)

    collapsed: list[Phone] = []
    for phone in phones:
        if collapsed and collapsed[-1] == phone:
            continue
        collapsed.append(phone)
    return collapsed


def phones_from_text(text: object) -> list[Phone]:
    """Flattened phone sequence of every token in a text."""
    return [phone for token in tokenize(text) for phone in phones_from_word(token)]
