"""SQLite persistence for review decks.

Each deck is one row keyed by its structured identity (namespace, kind, user,
level, language) whose payload is the JSON array of deck item records. The
store is best-effort: read failures behave as an empty deck and write
failures are dropped, so lesson delivery never depends on it.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import UTC, datetime
from pathlib import Path
from typing import cast

from .models import DeckKey

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

LEGACY_REVIEWED_FIELD = "lastShownAt"


class DeckStore:
    """Key/value access layer for persisted review decks."""

    def __init__(self, db_path: Path | str) -> None:
        """Open (and create if needed) the deck database."""
        if isinstance(db_path, Path):
            db_path.parent.mkdir(parents=True, exist_ok=True)
            target = str(db_path)
        else:
            target = db_path
        self._conn = sqlite3.connect(target)
        self._conn.row_factory = sqlite3.Row
        self._apply_migrations()

    def _apply_migrations(self) -> None:
        """Apply forward-only schema migrations to latest version."""
        current = int(self._conn.execute("PRAGMA user_version").fetchone()[0])
        if current > SCHEMA_VERSION:
            raise RuntimeError(f"Database schema version {current} is newer than supported {SCHEMA_VERSION}.")

        with self._conn:
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS schema_migrations (
                    version INTEGER PRIMARY KEY,
                    applied_at TEXT NOT NULL
                )
                """)

        for version in range(current + 1, SCHEMA_VERSION + 1):
            if version == 1:
                self._migrate_to_v1()
            with self._conn:
                self._conn.execute(f"PRAGMA user_version = {version}")
                self._conn.execute(
                    "INSERT OR REPLACE INTO schema_migrations (version, applied_at) VALUES (?, ?)",
                    (version, datetime.now(UTC).isoformat()),
                )

    def _migrate_to_v1(self) -> None:
        """Create the decks table."""
        with self._conn:
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS decks (
                    namespace TEXT NOT NULL,
                    kind TEXT NOT NULL,
                    user_id TEXT NOT NULL,
                    level TEXT NOT NULL,
                    lang TEXT NOT NULL,
                    payload TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    PRIMARY KEY (namespace, kind, user_id, level, lang)
                )
                """)

    def load_deck(self, key: DeckKey) -> list[dict[str, object]]:
        """Return the deck's item records, or an empty list when it is missing or unreadable."""
        try:
            row = self._conn.execute(
                """
                SELECT payload FROM decks
                WHERE namespace = ? AND kind = ? AND user_id = ? AND level = ? AND lang = ?
                """,
                _key_params(key),
            ).fetchone()
            if row is None:
                return []
            raw: object = json.loads(str(row["payload"]))
        except (sqlite3.Error, ValueError, TypeError) as exc:
            logger.warning("Could not load deck %s: %s", key.storage_key, exc)
            return []
        if not isinstance(raw, list):
            logger.warning("Ignoring deck %s: payload is not a list", key.storage_key)
            return []

        records = [cast(dict[str, object], item) for item in cast(list[object], raw) if isinstance(item, dict)]
        records, migrated = migrate_legacy_records(records)
        if migrated:
            logger.info("Migrated %s legacy records in deck %s", migrated, key.storage_key)
            self.save_deck(key, records)
        return records

    def save_deck(self, key: DeckKey, records: list[dict[str, object]]) -> None:
        """Persist the deck's item records; failures are logged and dropped."""
        try:
            payload = json.dumps(records, ensure_ascii=False)
            with self._conn:
                self._conn.execute(
                    """
                    INSERT INTO decks (namespace, kind, user_id, level, lang, payload, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(namespace, kind, user_id, level, lang) DO UPDATE SET
                        payload = excluded.payload,
                        updated_at = excluded.updated_at
                    """,
                    (*_key_params(key), payload, datetime.now(UTC).isoformat()),
                )
        except (sqlite3.Error, ValueError, TypeError) as exc:
            logger.warning("Could not save deck %s: %s", key.storage_key, exc)

    def list_deck_keys(self, namespace: str, user_id: str | None = None) -> list[DeckKey]:
        """Return stored deck keys in a namespace, optionally for one user."""
        query = "SELECT namespace, kind, user_id, level, lang FROM decks WHERE namespace = ?"
        params: tuple[str, ...] = (namespace,)
        if user_id is not None:
            query += " AND user_id = ?"
            params += (user_id,)
        rows = self._conn.execute(query + " ORDER BY user_id, level, lang, kind", params).fetchall()
        return [
            DeckKey(
                namespace=str(row["namespace"]),
                kind=str(row["kind"]),
                user_id=str(row["user_id"]),
                level=str(row["level"]),
                lang=str(row["lang"]),
            )
            for row in rows
        ]

    def delete_decks(self, namespace: str, user_id: str) -> int:
        """Delete every deck of a user; return the number of decks removed."""
        with self._conn:
            cursor = self._conn.execute(
                "DELETE FROM decks WHERE namespace = ? AND user_id = ?",
                (namespace, user_id),
            )
        return cursor.rowcount

    def close(self) -> None:
        """Close db connection."""
        self._conn.close()

    def __del__(self) -> None:  # pragma: no cover
        """Best-effort connection cleanup."""
        try:
            self.close()
        except Exception:
            pass


def migrate_legacy_records(records: list[dict[str, object]]) -> tuple[list[dict[str, object]], int]:
    """Rename the legacy `lastShownAt` field to `lastReviewedAt`.

    Returns the migrated records and how many of them changed.
    """
    migrated: list[dict[str, object]] = []
    changed = 0
    for record in records:
        if LEGACY_REVIEWED_FIELD not in record and _is_number(record.get("lastReviewedAt")):
            migrated.append(record)
            continue
        reviewed = record.get("lastReviewedAt")
        if not _is_number(reviewed):
            legacy = record.get(LEGACY_REVIEWED_FIELD)
            reviewed = legacy if _is_number(legacy) else 0
        updated = {name: value for name, value in record.items() if name != LEGACY_REVIEWED_FIELD}
        updated["lastReviewedAt"] = reviewed
        migrated.append(updated)
        changed += 1
    return migrated, changed


def _is_number(value: object) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)


def _key_params(key: DeckKey) -> tuple[str, str, str, str, str]:
    return (key.namespace, key.kind, key.user_id, key.level, key.lang)
