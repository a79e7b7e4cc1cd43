"""Output rendering for the mint-portal CLI.

File: src/mint_portal/ui/render.py

Purpose
- Provide a thin rendering layer for CLI output with status colors drawn by ``rich``.
- Respect the NO_COLOR environment variable and the --no-color CLI flag.
- Fall back to plain text when ``rich`` is not installed.

What should be included in this file
- CLIRenderer class with methods for the common output patterns.
- Factory function creating a renderer with the requested settings.

Functional requirements
- Plain-text rendering always works; colors only when stdout is a TTY.
"""

from __future__ import annotations

import os
import sys
from importlib.util import find_spec
from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from collections.abc import Sequence

    from rich.console import Console

_STATUS_STYLES: Final[dict[str, str]] = {
    "success": "green",
    "pass": "green",
    "available": "green",
    "released": "green",
    "approved": "green",
    "failed": "red",
    "fail": "red",
    "rejected": "red",
    "running": "cyan",
    "warning": "yellow",
    "pending": "yellow",
    "pending_approval": "yellow",
    "cancelled": "bright_black",
    "skipped": "bright_black",
}


def _color_allowed(no_color_flag: bool) -> bool:
    if no_color_flag or os.environ.get("NO_COLOR", ""):
        return False
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


def _status_console(no_color_flag: bool) -> Console | None:
    """Return a terminal console for styled statuses, or ``None`` for plain output."""

    if not _color_allowed(no_color_flag) or find_spec("rich") is None:
        return None

    from rich.console import Console

    return Console(force_terminal=True, highlight=False, soft_wrap=True)


class CLIRenderer:
    """Thin CLI output renderer producing deterministic plain text."""

    def __init__(self, *, no_color: bool = False, verbose: bool = False) -> None:
        self.verbose = verbose
        self._console = _status_console(no_color)

    def heading(self, text: str) -> None:
        print(text)
        print("=" * len(text))

    def kv(self, key: str, value: object) -> None:
        print(f"{key}: {value}")

    def text(self, line: str) -> None:
        print(line)

    def section(self, title: str) -> None:
        """Print a section header with a preceding blank line."""

        print(f"\n{title}")

    def warning(self, text: str) -> None:
        print(f"  Warning: {text}")

    def items(self, entries: Sequence[str], *, prefix: str = "- ") -> None:
        for entry in entries:
            print(f"  {prefix}{entry}")

    def status(self, value: str | None) -> str:
        """Return ``value`` styled for the terminal when colors are enabled."""

        text = value if value is not None else "-"
        style = _STATUS_STYLES.get(text)
        if self._console is None or style is None:
            return text

        from rich.text import Text

        with self._console.capture() as captured:
            self._console.print(Text(text, style=style), end="")
        return captured.get()

    def table(
        self,
        headers: Sequence[str],
        rows: Sequence[Sequence[str]],
        *,
        title: str | None = None,
    ) -> None:
        """Print an aligned ASCII table; nothing is printed for zero rows."""

        if not rows:
            return
        widths = [len(header) for header in headers]
        for row in rows:
            for index, cell in enumerate(row[: len(headers)]):
                widths[index] = max(widths[index], len(cell))

        def _line(cells: Sequence[str]) -> str:
            padded = [
                (cells[index] if index < len(cells) else "").ljust(width)
                for index, width in enumerate(widths)
            ]
            return "  ".join(padded).rstrip()

        if title:
            self.section(title)
        print(f"  {_line(headers)}")
        print(f"  {'  '.join('-' * width for width in widths)}")
        for row in rows:
            print(f"  {_line(row)}")

    def ok(self, label: str) -> None:
        print(f"  OK    {label}")

    def fail(self, label: str) -> None:
        print(f"  FAIL  {label}")


def create_renderer(*, no_color: bool = False, verbose: bool = False) -> CLIRenderer:
    return CLIRenderer(no_color=no_color, verbose=verbose)


__all__ = ["CLIRenderer", "create_renderer"]
