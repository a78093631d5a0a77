"""Spoken-answer matching and review decks for beginner language lessons."""

from __future__ import annotations

import tomllib
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

from .matching import is_match_example, is_match_word, score_pronunciation
from .review import ReviewDeckService

__all__ = [
    "ReviewDeckService",
    "__version__",
    "is_match_example",
    "is_match_word",
    "score_pronunciation",
]


def _checkout_version() -> str | None:
    """Version declared by the nearest pyproject.toml above this package, if any."""
    for base in Path(__file__).resolve().parents:
        pyproject = base / "pyproject.toml"
        if not pyproject.is_file():
            continue
        try:
            data = tomllib.loads(pyproject.read_text(encoding="utf-8"))
        except (OSError, tomllib.TOMLDecodeError):
            return None
        project = data.get("project", {})
        if project.get("name") != "speechdrill":
            return None
        declared = project.get("version")
        return declared if isinstance(declared, str) else None
    return None


def _resolve_version() -> str:
    declared = _checkout_version()
    if declared is not None:
        return declared
    try:
        return version("speechdrill")
    except PackageNotFoundError:
        return "0+unknown"


__version__ = _resolve_version()
