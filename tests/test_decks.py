import json
import sqlite3
from pathlib import Path

import pytest

from speechdrill.decks import DeckStore, migrate_legacy_records
from speechdrill.models import DeckKey

KEY = DeckKey(namespace="speechdrill", kind="constructor", user_id="u1", level="A1", lang="en")


def _raw_payload(store: DeckStore, key: DeckKey) -> object:
    row = store._conn.execute(  # noqa: SLF001
        "SELECT payload FROM decks WHERE namespace = ? AND kind = ? AND user_id = ? AND level = ? AND lang = ?",
        (key.namespace, key.kind, key.user_id, key.level, key.lang),
    ).fetchone()
    return json.loads(row["payload"])


def _write_payload(store: DeckStore, key: DeckKey, payload: str) -> None:
    with store._conn:  # noqa: SLF001
        store._conn.execute(  # noqa: SLF001
            "INSERT INTO decks (namespace, kind, user_id, level, lang, payload, updated_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?)",
            (key.namespace, key.kind, key.user_id, key.level, key.lang, payload, "2024-01-01T00:00:00+00:00"),
        )


def test_migration_sets_user_version_and_schema_history(store: DeckStore) -> None:
    version = int(store._conn.execute("PRAGMA user_version").fetchone()[0])  # noqa: SLF001
    assert version == 1
    rows = store._conn.execute("SELECT version FROM schema_migrations ORDER BY version").fetchall()  # noqa: SLF001
    assert [int(row["version"]) for row in rows] == [1]


def test_newer_schema_is_rejected(tmp_path: Path) -> None:
    db_path = tmp_path / "decks.db"
    conn = sqlite3.connect(db_path)
    conn.execute("PRAGMA user_version = 7")
    conn.commit()
    conn.close()

    with pytest.raises(RuntimeError, match="newer than supported"):
        DeckStore(str(db_path))


def test_path_database_creates_parent_directories(tmp_path: Path) -> None:
    db_path = tmp_path / "nested" / "dir" / "decks.db"
    deck_store = DeckStore(db_path)
    deck_store.save_deck(KEY, [{"id": "x", "words": ["hi"], "correct": "hi"}])
    deck_store.close()

    assert db_path.exists()
    reopened = DeckStore(db_path)
    assert reopened.load_deck(KEY) == [{"id": "x", "words": ["hi"], "correct": "hi", "lastReviewedAt": 0}]
    reopened.close()


def test_missing_deck_is_empty(store: DeckStore) -> None:
    assert store.load_deck(KEY) == []


def test_save_and_load_round_trip(store: DeckStore) -> None:
    records: list[dict[str, object]] = [
        {"id": "a", "words": ["Hola"], "correct": "Hola", "lastSeenAt": 10, "lastReviewedAt": 5},
        {"id": "b", "words": ["Adiós"], "correct": "Adiós", "lastSeenAt": 20, "lastReviewedAt": 0},
    ]
    store.save_deck(KEY, records)
    assert store.load_deck(KEY) == records

    store.save_deck(KEY, records[:1])
    assert store.load_deck(KEY) == records[:1]


def test_decks_are_isolated_by_key(store: DeckStore) -> None:
    record = {"id": "a", "words": ["hi"], "correct": "hi", "lastSeenAt": 1, "lastReviewedAt": 0}
    store.save_deck(KEY, [record])

    assert store.load_deck(DeckKey("speechdrill", "findMistake", "u1", "A1", "en")) == []
    assert store.load_deck(DeckKey("speechdrill", "constructor", "u2", "A1", "en")) == []
    assert store.load_deck(DeckKey("speechdrill", "constructor", "u1", "A2", "en")) == []
    assert store.load_deck(DeckKey("speechdrill", "constructor", "u1", "A1", "es")) == []
    assert store.load_deck(DeckKey("other", "constructor", "u1", "A1", "en")) == []


def test_corrupt_payload_behaves_as_empty_deck(store: DeckStore) -> None:
    _write_payload(store, KEY, "{not json")
    assert store.load_deck(KEY) == []


def test_non_list_payload_behaves_as_empty_deck(store: DeckStore) -> None:
    _write_payload(store, KEY, '{"id": "a"}')
    assert store.load_deck(KEY) == []


def test_non_object_entries_are_skipped(store: DeckStore) -> None:
    _write_payload(store, KEY, '[1, "x", null, {"id": "a", "lastReviewedAt": 3}]')
    assert store.load_deck(KEY) == [{"id": "a", "lastReviewedAt": 3}]


def test_legacy_review_field_is_migrated_and_written_back(store: DeckStore) -> None:
    _write_payload(
        store,
        KEY,
        json.dumps(
            [
                {"id": "a", "words": ["hi"], "correct": "hi", "lastSeenAt": 10, "lastShownAt": 7},
                {"id": "b", "words": ["yo"], "correct": "yo", "lastSeenAt": 11, "lastReviewedAt": 9},
            ]
        ),
    )

    records = store.load_deck(KEY)
    assert records[0] == {"id": "a", "words": ["hi"], "correct": "hi", "lastSeenAt": 10, "lastReviewedAt": 7}
    assert records[1]["lastReviewedAt"] == 9

    stored = _raw_payload(store, KEY)
    assert isinstance(stored, list)
    assert all("lastShownAt" not in record for record in stored)
    assert stored[0]["lastReviewedAt"] == 7


def test_migrate_legacy_records_rules() -> None:
    records: list[dict[str, object]] = [
        {"id": "current", "lastReviewedAt": 4},
        {"id": "legacy", "lastShownAt": 6},
        {"id": "both", "lastShownAt": 6, "lastReviewedAt": 8},
        {"id": "neither"},
        {"id": "bad", "lastShownAt": "soon"},
    ]
    migrated, changed = migrate_legacy_records(records)

    assert changed == 4
    assert migrated == [
        {"id": "current", "lastReviewedAt": 4},
        {"id": "legacy", "lastReviewedAt": 6},
        {"id": "both", "lastReviewedAt": 8},
        {"id": "neither", "lastReviewedAt": 0},
        {"id": "bad", "lastReviewedAt": 0},
    ]
    assert records[1] == {"id": "legacy", "lastShownAt": 6}


def test_migrate_legacy_records_leaves_current_records_alone() -> None:
    records: list[dict[str, object]] = [{"id": "a", "lastReviewedAt": 0}, {"id": "b", "lastReviewedAt": 1.5}]
    migrated, changed = migrate_legacy_records(records)
    assert changed == 0
    assert migrated == records


def test_storage_failures_are_swallowed() -> None:
    deck_store = DeckStore(":memory:")
    deck_store.close()

    deck_store.save_deck(KEY, [{"id": "a"}])
    assert deck_store.load_deck(KEY) == []


def test_unserializable_records_are_not_saved(store: DeckStore) -> None:
    store.save_deck(KEY, [{"id": "a", "bad": object()}])
    assert store.load_deck(KEY) == []


def test_list_and_delete_decks(store: DeckStore) -> None:
    record = {"id": "a", "lastReviewedAt": 0}
    store.save_deck(KEY, [record])
    store.save_deck(DeckKey("speechdrill", "findMistake", "u1", "A1", "en"), [record])
    store.save_deck(DeckKey("speechdrill", "constructor", "u2", "B1", "es"), [record])
    store.save_deck(DeckKey("other", "constructor", "u1", "A1", "en"), [record])

    assert [key.kind for key in store.list_deck_keys("speechdrill", "u1")] == ["constructor", "findMistake"]
    assert len(store.list_deck_keys("speechdrill")) == 3

    assert store.delete_decks("speechdrill", "u1") == 2
    assert store.list_deck_keys("speechdrill", "u1") == []
    assert store.load_deck(DeckKey("other", "constructor", "u1", "A1", "en")) == [record]
    assert store.delete_decks("speechdrill", "missing") == 0
