"""Runtime settings read from the environment."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from .review import DEFAULT_MAX_DECK_SIZE, DEFAULT_NAMESPACE, DEFAULT_PER_LESSON_LIMIT

logger = logging.getLogger(__name__)

ENV_PREFIX = "SPEECHDRILL_"
DEFAULT_DB_PATH = Path(".speechdrill") / "decks.db"
DEFAULT_LOG_LEVEL = "WARNING"


@dataclass(frozen=True)
class Settings:
    """Application settings."""

    db_path: Path = DEFAULT_DB_PATH
    namespace: str = DEFAULT_NAMESPACE
    per_lesson_limit: int = DEFAULT_PER_LESSON_LIMIT
    max_deck_size: int = DEFAULT_MAX_DECK_SIZE
    log_level: str = DEFAULT_LOG_LEVEL


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """Build settings from `SPEECHDRILL_*` variables, falling back to defaults."""
    env = os.environ if environ is None else environ
    db_path = env.get(f"{ENV_PREFIX}DB_PATH", "").strip()
    namespace = env.get(f"{ENV_PREFIX}NAMESPACE", "").strip()
    log_level = env.get(f"{ENV_PREFIX}LOG_LEVEL", "").strip().upper()
    if log_level and not isinstance(logging.getLevelName(log_level), int):
        logger.warning("Unknown log level %r; using %s", log_level, DEFAULT_LOG_LEVEL)
        log_level = ""
    return Settings(
        db_path=Path(db_path) if db_path else DEFAULT_DB_PATH,
        namespace=namespace or DEFAULT_NAMESPACE,
        per_lesson_limit=_env_int(env, "PER_LESSON_LIMIT", DEFAULT_PER_LESSON_LIMIT),
        max_deck_size=_env_int(env, "MAX_DECK_SIZE", DEFAULT_MAX_DECK_SIZE),
        log_level=log_level or DEFAULT_LOG_LEVEL,
    )


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(f"{ENV_PREFIX}{name}", "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring %s%s=%r: not an integer", ENV_PREFIX, name, raw)
        return default
