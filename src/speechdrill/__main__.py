"""Allow `python -m speechdrill ...`."""

from __future__ import annotations

from .main import main_entry


def main() -> None:
    """Hand control to the console script entrypoint."""
    main_entry()


if __name__ == "__main__":  # pragma: no cover
    main()
