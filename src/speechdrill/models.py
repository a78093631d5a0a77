"""Exercise tasks and review-deck records."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

CONSTRUCTOR_KIND = "constructor"
FIND_MISTAKE_KIND = "findMistake"
DECK_KINDS = (CONSTRUCTOR_KIND, FIND_MISTAKE_KIND)


@dataclass(frozen=True)
class ConstructorTask:
    """Build-the-sentence exercise: arrange `words` into `correct`."""

    words: tuple[str, ...]
    correct: str | tuple[str, ...]
    note: str | None = None
    translation: str | None = None

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {
            "words": list(self.words),
            "correct": list(self.correct) if isinstance(self.correct, tuple) else self.correct,
        }
        if self.note:
            data["note"] = self.note
        if self.translation:
            data["translation"] = self.translation
        return data

    def correct_text(self) -> str:
        """The expected sentence as one string."""
        if isinstance(self.correct, tuple):
            return " ".join(self.correct)
        return self.correct


@dataclass(frozen=True)
class FindMistakeTask:
    """Pick which of two sentences (A or B) contains the mistake."""

    options: tuple[str, str]
    answer: Literal["A", "B"]
    explanation: str | None = None

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {"options": list(self.options), "answer": self.answer}
        if self.explanation:
            data["explanation"] = self.explanation
        return data


Task = ConstructorTask | FindMistakeTask


@dataclass(frozen=True)
class DeckKey:
    """Identity of one persisted deck."""

    namespace: str
    kind: str
    user_id: str
    level: str
    lang: str

    @property
    def storage_key(self) -> str:
        return f"{self.namespace}:{self.kind}Deck:{self.user_id}:{self.level}:{self.lang}"


@dataclass(frozen=True)
class DeckItem:
    """One previously seen task with its review timestamps (epoch milliseconds)."""

    id: str
    task: Task
    last_seen_at: int
    last_reviewed_at: int = 0

    def to_record(self) -> dict[str, object]:
        """Serialize to the persisted JSON record shape."""
        return {
            "id": self.id,
            **self.task.to_dict(),
            "lastSeenAt": self.last_seen_at,
            "lastReviewedAt": self.last_reviewed_at,
        }
