"""User-facing surfaces: argparse CLI, plain-text renderer and the optional Textual dashboard."""

from mint_portal.ui.cli import CLIError, build_parser, run_cli
from mint_portal.ui.render import CLIRenderer, create_renderer
from mint_portal.ui.tui import run_tui, tui_available

__all__ = [
    "CLIError",
    "CLIRenderer",
    "build_parser",
    "create_renderer",
    "run_cli",
    "run_tui",
    "tui_available",
]
