"""Optional dashboard TUI entrypoint with a graceful fallback when Textual is absent.

File: src/mint_portal/ui/tui.py

Purpose
- Expose ``tui_available()`` for dependency checks and ``run_tui()`` for launching.
- Print an install hint and return exit code 2 if Textual is not installed.

Non-functional requirements
- Imports cleanly without Textual; the app module is imported only when launching.
"""

from __future__ import annotations

import sys
from importlib.util import find_spec
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from mint_portal.service import PortalService


def tui_available() -> bool:
    """Return whether the optional TUI dependencies are importable."""

    return find_spec("textual") is not None


def run_tui(service: PortalService, *, no_color: bool = False) -> int:
    if not tui_available():
        print(
            "TUI requires optional dependency. Install: pip install -e '.[tui]'",
            file=sys.stderr,
        )
        return 2

    from mint_portal.ui.tui_app import run_tui_app

    return run_tui_app(service, no_color=no_color)


__all__ = ["run_tui", "tui_available"]
