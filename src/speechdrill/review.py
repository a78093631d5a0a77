"""Review decks: carry previously seen exercises into new lessons."""

from __future__ import annotations

import json
import logging
import math
from collections.abc import Callable, Iterable
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from typing import cast

from .decks import DeckStore
from .models import (
    CONSTRUCTOR_KIND,
    FIND_MISTAKE_KIND,
    ConstructorTask,
    DeckItem,
    DeckKey,
    FindMistakeTask,
    Task,
)

logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "speechdrill"
DEFAULT_PER_LESSON_LIMIT = 5
DEFAULT_MAX_DECK_SIZE = 800
MIN_DECK_SIZE = 50

CONSTRUCTOR_SECTION = "constructor"
FIND_MISTAKE_SECTION = "find_the_mistake"

Clock = Callable[[], int]


def now_ms() -> int:
    """Current time in epoch milliseconds."""
    return int(datetime.now(UTC).timestamp() * 1000)


@dataclass(frozen=True)
class AugmentResult:
    """Lesson script after review items were mixed in."""

    script: dict[str, object]
    changed: bool


@dataclass(frozen=True)
class _Section:
    """How one exercise kind is found in a script and kept in a deck."""

    name: str
    kind: str
    normalize: Callable[[object], Task | None]


class ReviewDeckService:
    """Coordinates deck persistence and per-lesson review selection."""

    def __init__(self, store: DeckStore, namespace: str = DEFAULT_NAMESPACE, clock: Clock = now_ms) -> None:
        """Initialize service with a deck store."""
        self.store = store
        self.namespace = namespace
        self._clock = clock
        self._sections = (
            _Section(CONSTRUCTOR_SECTION, CONSTRUCTOR_KIND, normalize_constructor_task),
            _Section(FIND_MISTAKE_SECTION, FIND_MISTAKE_KIND, normalize_find_mistake_task),
        )

    def deck_key(self, kind: str, user_id: str, level: str, lang: str) -> DeckKey:
        """Build the key of one user's deck."""
        return DeckKey(namespace=self.namespace, kind=kind, user_id=str(user_id), level=str(level), lang=str(lang))

    def deck_items(self, kind: str, user_id: str, level: str, lang: str) -> list[DeckItem]:
        """Return the persisted items of one deck, most recently seen first."""
        return self._load_items(self.deck_key(kind, user_id, level, lang))

    def augment_script(
        self,
        script: object,
        user_id: str,
        level: str,
        lang: str,
        per_lesson_limit: int = DEFAULT_PER_LESSON_LIMIT,
        max_deck_size: int = DEFAULT_MAX_DECK_SIZE,
    ) -> AugmentResult:
        """Record a freshly generated lesson's tasks and top each section up with review items.

        Fresh tasks come first (deduplicated), then the least recently reviewed
        deck items, up to `per_lesson_limit` per section. Review timestamps are
        not touched here; only completing an exercise counts as a review.
        """
        base = cast(dict[str, object], script) if isinstance(script, dict) else {}
        now = self._clock()
        next_script = dict(base)
        changed = False

        for section in self._sections:
            raw_section = base.get(section.name)
            section_dict = cast(dict[str, object], raw_section) if isinstance(raw_section, dict) else None
            raw_tasks = section_dict.get("tasks") if section_dict is not None else None
            fresh = _normalize_all(raw_tasks, section.normalize)

            key = self.deck_key(section.kind, user_id, level, lang)
            deck = merge_deck(self._load_items(key), fresh, now, max_deck_size)
            self._save_items(key, deck)

            lesson_tasks = _dedupe(fresh)
            fresh_ids = {task_id for task_id, _ in lesson_tasks}
            fill = pick_review_items(deck, fresh_ids, per_lesson_limit - len(lesson_tasks))
            final = ([task for _, task in lesson_tasks] + [item.task for item in fill])[: max(0, per_lesson_limit)]
            logger.debug(
                "Deck %s: %s fresh, %s review, %s stored",
                key.storage_key,
                len(lesson_tasks),
                len(fill),
                len(deck),
            )

            if section_dict is None or not final:
                continue
            next_tasks = [task.to_dict() for task in final]
            next_script[section.name] = {**section_dict, "tasks": next_tasks}
            if _safe_json_dumps(next_tasks) != _safe_json_dumps(raw_tasks):
                changed = True

        return AugmentResult(script=next_script, changed=changed)

    def record_constructor_review(
        self, user_id: str, level: str, lang: str, task: object, max_deck_size: int = DEFAULT_MAX_DECK_SIZE
    ) -> DeckItem | None:
        """Mark a constructor task as completed by the learner."""
        return self._record_review(
            CONSTRUCTOR_KIND, normalize_constructor_task(task), user_id, level, lang, max_deck_size
        )

    def record_find_mistake_review(
        self, user_id: str, level: str, lang: str, task: object, max_deck_size: int = DEFAULT_MAX_DECK_SIZE
    ) -> DeckItem | None:
        """Mark a find-the-mistake task as completed by the learner."""
        return self._record_review(
            FIND_MISTAKE_KIND, normalize_find_mistake_task(task), user_id, level, lang, max_deck_size
        )

    def clear_decks(self, user_id: str) -> int:
        """Delete every deck of one user."""
        return self.store.delete_decks(self.namespace, str(user_id))

    def close(self) -> None:
        """Close resources."""
        self.store.close()

    def _record_review(
        self, kind: str, task: Task | None, user_id: str, level: str, lang: str, max_deck_size: int
    ) -> DeckItem | None:
        if task is None:
            logger.debug("Ignoring review of an invalid %s task", kind)
            return None
        now = self._clock()
        key = self.deck_key(kind, user_id, level, lang)
        task_id = fingerprint_task(task)

        deck = self._load_items(key)
        updated: DeckItem | None = None
        for index, item in enumerate(deck):
            if item.id == task_id:
                updated = replace(item, task=task, last_seen_at=max(item.last_seen_at, now), last_reviewed_at=now)
                deck[index] = updated
                break
        if updated is None:
            updated = DeckItem(id=task_id, task=task, last_seen_at=now, last_reviewed_at=now)
            deck.append(updated)

        self._save_items(key, cap_deck(deck, max_deck_size))
        return updated

    def _load_items(self, key: DeckKey) -> list[DeckItem]:
        normalize = normalize_constructor_task if key.kind == CONSTRUCTOR_KIND else normalize_find_mistake_task
        items: list[DeckItem] = []
        for record in self.store.load_deck(key):
            item = _item_from_record(record, normalize)
            if item is not None:
                items.append(item)
        return items

    def _save_items(self, key: DeckKey, items: list[DeckItem]) -> None:
        self.store.save_deck(key, [item.to_record() for item in items])


def normalize_constructor_task(raw: object) -> ConstructorTask | None:
    """Clean a constructor task; return None when it has no words or no answer."""
    if not isinstance(raw, dict):
        return None
    task = cast(dict[str, object], raw)
    words = tuple(word for word in (_safe_trim(value) for value in _safe_list(task.get("words"))) if word)
    if not words:
        return None

    correct_raw = task.get("correct")
    correct: str | tuple[str, ...]
    if isinstance(correct_raw, list):
        correct = tuple(part for part in (_safe_trim(value) for value in cast(list[object], correct_raw)) if part)
    else:
        correct = _safe_trim(correct_raw)
    if not correct:
        return None

    return ConstructorTask(
        words=words,
        correct=correct,
        note=_safe_trim(task.get("note")) or None,
        translation=_safe_trim(task.get("translation")) or None,
    )


def normalize_find_mistake_task(raw: object) -> FindMistakeTask | None:
    """Clean a find-the-mistake task; return None without two options and an A/B answer."""
    if not isinstance(raw, dict):
        return None
    task = cast(dict[str, object], raw)
    options = [option for option in (_safe_trim(value) for value in _safe_list(task.get("options"))) if option]
    answer = _safe_trim(task.get("answer")).upper()
    if answer not in ("A", "B") or len(options) < 2:
        return None
    return FindMistakeTask(
        options=(options[0], options[1]),
        answer="A" if answer == "A" else "B",
        explanation=_safe_trim(task.get("explanation")) or None,
    )


def fingerprint_task(task: Task) -> str:
    """Stable identity of a task's content, independent of when it was generated."""
    if isinstance(task, ConstructorTask):
        return _safe_json_dumps(
            {
                "words": list(task.words),
                "correct": list(task.correct) if isinstance(task.correct, tuple) else task.correct,
                "note": task.note or "",
                "translation": task.translation or "",
            }
        )
    return _safe_json_dumps(
        {
            "options": list(task.options),
            "answer": task.answer,
            "explanation": task.explanation or "",
        }
    )


def cap_deck(deck: list[DeckItem], max_deck_size: int) -> list[DeckItem]:
    """Keep the most recently seen items, at most `max(50, max_deck_size)` of them."""
    ordered = sorted(deck, key=lambda item: item.last_seen_at, reverse=True)
    return ordered[: max(MIN_DECK_SIZE, max_deck_size)]


def merge_deck(
    existing: list[DeckItem], incoming: Iterable[tuple[str, Task]], now: int, max_deck_size: int
) -> list[DeckItem]:
    """Fold freshly generated tasks into a deck.

    Known tasks are marked seen at `now` and keep their review time; unknown
    tasks enter unreviewed.
    """
    by_id: dict[str, DeckItem] = {}
    for item in existing:
        by_id[item.id] = item
    for task_id, task in incoming:
        previous = by_id.get(task_id)
        if previous is not None:
            by_id[task_id] = replace(previous, task=task, last_seen_at=max(previous.last_seen_at, now))
        else:
            by_id[task_id] = DeckItem(id=task_id, task=task, last_seen_at=now, last_reviewed_at=0)
    return cap_deck(list(by_id.values()), max_deck_size)


def pick_review_items(deck: list[DeckItem], exclude_ids: set[str], limit: int) -> list[DeckItem]:
    """Least recently reviewed items first, ties broken by least recently seen."""
    candidates = [item for item in deck if item.id not in exclude_ids]
    candidates.sort(key=lambda item: (item.last_reviewed_at, item.last_seen_at))
    return candidates[: max(0, limit)]


def _normalize_all(raw_tasks: object, normalize: Callable[[object], Task | None]) -> list[tuple[str, Task]]:
    tasks: list[tuple[str, Task]] = []
    for raw in _safe_list(raw_tasks):
        task = normalize(raw)
        if task is not None:
            tasks.append((fingerprint_task(task), task))
    return tasks


def _dedupe(tasks: list[tuple[str, Task]]) -> list[tuple[str, Task]]:
    seen: set[str] = set()
    unique: list[tuple[str, Task]] = []
    for task_id, task in tasks:
        if task_id in seen:
            continue
        seen.add(task_id)
        unique.append((task_id, task))
    return unique


def _item_from_record(record: dict[str, object], normalize: Callable[[object], Task | None]) -> DeckItem | None:
    """Rebuild a deck item from its stored record; None when the record is unusable."""
    item_id = _safe_trim(record.get("id"))
    task = normalize(record)
    if not item_id or task is None:
        return None
    return DeckItem(
        id=item_id,
        task=task,
        last_seen_at=_coerce_int(record.get("lastSeenAt"), default=0) or 0,
        last_reviewed_at=_coerce_int(record.get("lastReviewedAt"), default=0) or 0,
    )


def _safe_trim(value: object) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _safe_list(value: object) -> list[object]:
    return cast(list[object], value) if isinstance(value, list) else []


def _safe_json_dumps(value: object) -> str:
    """Compact JSON, falling back to `str()` for values JSON cannot encode."""
    try:
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"))
    except (TypeError, ValueError):
        return str(value)


def _coerce_int(value: object, default: int | None = None) -> int | None:
    """Coerce a stored timestamp to int; booleans and non-finite floats are unusable."""
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else default
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return default
    return default
