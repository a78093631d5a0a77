from __future__ import annotations

import sys
from collections.abc import Iterator
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from speechdrill.decks import DeckStore  # noqa: E402
from speechdrill.review import ReviewDeckService  # noqa: E402


class FakeClock:
    """Deterministic epoch-millisecond clock for deck timestamps."""

    def __init__(self, start: int = 1_700_000_000_000) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int = 1_000) -> int:
        self.now += ms
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> Iterator[DeckStore]:
    deck_store = DeckStore(":memory:")
    try:
        yield deck_store
    finally:
        deck_store.close()


@pytest.fixture
def service(store: DeckStore, clock: FakeClock) -> ReviewDeckService:
    return ReviewDeckService(store, clock=clock)
