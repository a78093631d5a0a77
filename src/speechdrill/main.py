"""CLI entrypoint for spoken-answer checks and review decks."""

from __future__ import annotations

import argparse
import json
import logging
import sqlite3
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import TypeVar

from .config import Settings, load_settings
from .decks import DeckStore
from .matching import is_match_example, is_match_word, score_pronunciation
from .models import CONSTRUCTOR_KIND, FIND_MISTAKE_KIND, ConstructorTask, DeckItem, FindMistakeTask
from .review import (
    CONSTRUCTOR_SECTION,
    FIND_MISTAKE_SECTION,
    ReviewDeckService,
    normalize_constructor_task,
    normalize_find_mistake_task,
)

InputFn = Callable[[str], str]
PrintFn = Callable[[str], None]
BACK_COMMANDS = {":back", ":b", "back"}
FLOW_EXIT_COMMANDS = {":quit", ":exit", ":q"}
SHOW_COMMAND = ":show"
REVIEW_KINDS = {"constructor": CONSTRUCTOR_KIND, "find-mistake": FIND_MISTAKE_KIND}

T = TypeVar("T")


class QuitDrill(Exception):
    """Signal immediate exit from a drill."""


def _service(settings: Settings) -> ReviewDeckService:
    """Create the review service on the configured deck database."""
    return ReviewDeckService(DeckStore(settings.db_path), namespace=settings.namespace)


def _configure_logging(settings: Settings) -> None:
    logging.basicConfig(level=settings.log_level, format="%(levelname)s %(name)s: %(message)s")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="speechdrill", description="Spoken-answer checks and review decks")
    parser.add_argument("--db", type=Path, default=None, help="deck database path")
    commands = parser.add_subparsers(dest="command", required=True)

    match = commands.add_parser("match", help="score a transcript against an expected answer")
    match.add_argument("expected")
    match.add_argument("heard")

    def add_identity(sub: argparse.ArgumentParser) -> None:
        sub.add_argument("--user", required=True)
        sub.add_argument("--level", default="A1")
        sub.add_argument("--lang", required=True)

    augment = commands.add_parser("augment", help="mix review items into a lesson script")
    augment.add_argument("script", type=Path)
    add_identity(augment)
    augment.add_argument("--limit", type=int, default=None, help="tasks per section")
    augment.add_argument("--max-deck-size", type=int, default=None)
    augment.add_argument("--output", type=Path, default=None)

    review = commands.add_parser("review", help="record a completed exercise")
    review.add_argument("kind", choices=sorted(REVIEW_KINDS))
    review.add_argument("task", type=Path)
    add_identity(review)

    decks = commands.add_parser("decks", help="list review deck contents")
    add_identity(decks)
    decks.add_argument("--clear", action="store_true", help="delete every deck of the user")

    drill = commands.add_parser("drill", help="practice a lesson script interactively")
    drill.add_argument("script", type=Path)
    add_identity(drill)
    return parser


def run(argv: list[str] | None = None, input_fn: InputFn = input, print_fn: PrintFn = print) -> int:
    """Run the CLI application."""
    args = _build_parser().parse_args(argv)
    settings = load_settings()
    if args.db is not None:
        settings = replace(settings, db_path=args.db)
    _configure_logging(settings)

    if args.command == "match":
        return _match_command(args.expected, args.heard, print_fn)

    try:
        service = _service(settings)
    except (sqlite3.Error, OSError, RuntimeError) as exc:
        print_fn(f"Could not open deck database {settings.db_path}: {exc}")
        return 1
    try:
        if args.command == "augment":
            return _augment_command(service, settings, args, print_fn)
        if args.command == "review":
            return _review_command(service, args, print_fn)
        if args.command == "decks" and args.clear:
            removed = service.clear_decks(args.user)
            print_fn(f"Deleted {removed} decks for {args.user}.")
            return 0
        if args.command == "decks":
            return _decks_command(service, args.user, args.level, args.lang, print_fn)
        return drill_shell(service, settings, args.script, args.user, args.level, args.lang, input_fn, print_fn)
    finally:
        service.close()


def _match_command(expected: str, heard: str, print_fn: PrintFn) -> int:
    """Print the pronunciation score and both verdicts."""
    score = score_pronunciation(expected, heard)
    print_fn(f"Score: {score:.2f}")
    print_fn(f"Word: {_verdict(is_match_word(expected, heard))}")
    print_fn(f"Example: {_verdict(is_match_example(expected, heard))}")
    return 0


def _augment_command(
    service: ReviewDeckService, settings: Settings, args: argparse.Namespace, print_fn: PrintFn
) -> int:
    """Augment a lesson script file with review items."""
    script = _read_json(args.script, print_fn)
    if script is None:
        return 1
    result = service.augment_script(
        script,
        args.user,
        args.level,
        args.lang,
        per_lesson_limit=args.limit if args.limit is not None else settings.per_lesson_limit,
        max_deck_size=args.max_deck_size if args.max_deck_size is not None else settings.max_deck_size,
    )
    rendered = json.dumps(result.script, indent=2, ensure_ascii=False)
    if args.output is None:
        print_fn(rendered)
        return 0
    args.output.parent.mkdir(parents=True, exist_ok=True)
    args.output.write_text(rendered + "\n", encoding="utf-8")
    print_fn(f"Wrote {args.output} ({'changed' if result.changed else 'unchanged'})")
    return 0


def _review_command(service: ReviewDeckService, args: argparse.Namespace, print_fn: PrintFn) -> int:
    """Record one completed exercise from a task file."""
    task = _read_json(args.task, print_fn)
    if task is None:
        return 1
    if REVIEW_KINDS[args.kind] == CONSTRUCTOR_KIND:
        item = service.record_constructor_review(args.user, args.level, args.lang, task)
    else:
        item = service.record_find_mistake_review(args.user, args.level, args.lang, task)
    if item is None:
        print_fn(f"Invalid {args.kind} task in {args.task}.")
        return 1
    print_fn(f"Recorded review: {_describe_task(item)}")
    return 0


def _decks_command(service: ReviewDeckService, user_id: str, level: str, lang: str, print_fn: PrintFn) -> int:
    """Print both review decks of one user and course."""
    for title, kind in (("Constructor", CONSTRUCTOR_KIND), ("Find the mistake", FIND_MISTAKE_KIND)):
        items = service.deck_items(kind, user_id, level, lang)
        print_fn(f"\n=== {title} deck ({len(items)}) ===")
        if not items:
            print_fn("Empty.")
            continue
        time_width = 16
        header = f"{'Last seen':<{time_width}} {'Last reviewed':<{time_width}} Task"
        print_fn(header)
        print_fn("-" * len(header))
        for item in items:
            reviewed = _format_local_time(item.last_reviewed_at) if item.last_reviewed_at else "never"
            print_fn(
                f"{_format_local_time(item.last_seen_at):<{time_width}} "
                f"{reviewed:<{time_width}} "
                f"{_describe_task(item)}"
            )
    return 0


def drill_shell(
    service: ReviewDeckService,
    settings: Settings,
    script_path: Path,
    user_id: str,
    level: str,
    lang: str,
    input_fn: InputFn = input,
    print_fn: PrintFn = print,
) -> int:
    """Run a lesson's exercises, typing what the speech recognizer heard."""
    raw = _read_json(script_path, print_fn)
    if raw is None:
        return 1
    result = service.augment_script(
        raw, user_id, level, lang, per_lesson_limit=settings.per_lesson_limit, max_deck_size=settings.max_deck_size
    )
    constructor_tasks = _section_tasks(result.script, CONSTRUCTOR_SECTION, normalize_constructor_task)
    find_tasks = _section_tasks(result.script, FIND_MISTAKE_SECTION, normalize_find_mistake_task)
    if not constructor_tasks and not find_tasks:
        print_fn("No exercises in this lesson.")
        return 0

    print_fn("\n=== Lesson Drill ===")
    print_fn(f"Exercises this round: {len(constructor_tasks) + len(find_tasks)}")
    print_fn("Type :show to see the answer, :b or :q to stop.")
    correct_count = 0
    attempted_count = 0
    try:
        for task in constructor_tasks:
            attempted_count += 1
            if _run_constructor_task(service, user_id, level, lang, task, input_fn, print_fn):
                correct_count += 1
        for task in find_tasks:
            attempted_count += 1
            if _run_find_mistake_task(service, user_id, level, lang, task, input_fn, print_fn):
                correct_count += 1
    except QuitDrill:
        print_fn(f"\nDrill ended early: {correct_count}/{attempted_count - 1} correct")
        return 0

    print_fn(f"\nDrill complete: {correct_count}/{attempted_count} correct")
    return 0


def _run_constructor_task(
    service: ReviewDeckService,
    user_id: str,
    level: str,
    lang: str,
    task: ConstructorTask,
    input_fn: InputFn,
    print_fn: PrintFn,
) -> bool:
    """Ask for the sentence until it is heard correctly; return whether it passed on the first try."""
    expected = task.correct_text()
    print_fn(f"\nWords: {' / '.join(task.words)}")
    if task.translation:
        print_fn(f"Translation: {task.translation}")
    first_try = True
    while True:
        heard = _read_answer(input_fn, "Heard: ")
        if heard == SHOW_COMMAND:
            print_fn(f"Answer: {expected}")
            first_try = False
            continue
        if is_match_example(expected, heard):
            print_fn("Correct.")
            if task.note:
                print_fn(f"Note: {task.note}")
            service.record_constructor_review(user_id, level, lang, task.to_dict())
            return first_try
        first_try = False
        print_fn("Not quite. Try again.")


def _run_find_mistake_task(
    service: ReviewDeckService,
    user_id: str,
    level: str,
    lang: str,
    task: FindMistakeTask,
    input_fn: InputFn,
    print_fn: PrintFn,
) -> bool:
    """Ask which option has the mistake; a spoken option sentence also counts as a choice."""
    print_fn("\nWhich sentence has a mistake?")
    print_fn(f"A) {task.options[0]}")
    print_fn(f"B) {task.options[1]}")
    while True:
        reply = _read_answer(input_fn, "Choose A or B: ")
        if reply == SHOW_COMMAND:
            print_fn(f"Answer: {task.answer}")
            continue
        choice = _choice_from_reply(reply, task)
        if choice is not None:
            break
        print_fn("Please answer A or B.")

    correct = choice == task.answer
    print_fn("Correct." if correct else f"Incorrect. The mistake is in {task.answer}.")
    if task.explanation:
        print_fn(f"Note: {task.explanation}")
    service.record_find_mistake_review(user_id, level, lang, task.to_dict())
    return correct


def _choice_from_reply(reply: str, task: FindMistakeTask) -> str | None:
    """Map a typed letter or a spoken option sentence to A/B."""
    letter = reply.strip().upper()
    if letter in ("A", "B"):
        return letter
    matches = [
        (score_pronunciation(option, reply), choice)
        for choice, option in zip(("A", "B"), task.options, strict=True)
        if is_match_example(option, reply)
    ]
    if not matches:
        return None
    return max(matches)[1]


def _read_answer(input_fn: InputFn, prompt: str) -> str:
    """Read one reply, raising QuitDrill on exit commands."""
    reply = input_fn(prompt).strip()
    lowered = reply.lower()
    if lowered in BACK_COMMANDS or lowered in FLOW_EXIT_COMMANDS:
        raise QuitDrill()
    if lowered == SHOW_COMMAND:
        return SHOW_COMMAND
    return reply


def _section_tasks(script: dict[str, object], section: str, normalize: Callable[[object], T | None]) -> list[T]:
    """Normalized tasks of one script section."""
    raw_section = script.get(section)
    if not isinstance(raw_section, dict):
        return []
    raw_tasks = raw_section.get("tasks")
    if not isinstance(raw_tasks, list):
        return []
    tasks = (normalize(raw) for raw in raw_tasks)
    return [task for task in tasks if task is not None]


def _read_json(path: Path, print_fn: PrintFn) -> object | None:
    """Read a JSON file, reporting failures instead of raising."""
    try:
        return json.loads(path.read_text(encoding="utf-8-sig"))
    except (OSError, ValueError) as exc:
        print_fn(f"Could not read {path}: {exc}")
        return None


def _describe_task(item: DeckItem) -> str:
    task = item.task
    if isinstance(task, ConstructorTask):
        return task.correct_text()
    return f"A) {task.options[0]} | B) {task.options[1]} -> {task.answer}"


def _format_local_time(epoch_ms: int) -> str:
    """Convert epoch milliseconds to a local human-readable datetime."""
    return datetime.fromtimestamp(epoch_ms / 1000).astimezone().strftime("%Y-%m-%d %H:%M")


def _verdict(accepted: bool) -> str:
    return "accepted" if accepted else "rejected"


def main_entry() -> None:
    """Console script entrypoint."""
    raise SystemExit(run())


if __name__ == "__main__":  # pragma: no cover
    main_entry()
