"""
mint-portal: unit tests for CLI status rendering

File: tests/unit/ui/test_cli_render.py

Purpose
- Validate that status colors are drawn by rich and that plain text is used otherwise.
"""

from __future__ import annotations

import pytest

from mint_portal.ui import render as render_module
from mint_portal.ui.render import create_renderer


@pytest.fixture
def tty_colors(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("NO_COLOR", raising=False)
    monkeypatch.setattr(render_module, "_color_allowed", lambda no_color_flag: not no_color_flag)


def test_status_is_plain_with_no_color_flag(tty_colors: None) -> None:
    renderer = create_renderer(no_color=True)

    assert renderer.status("failed") == "failed"
    assert renderer.status(None) == "-"


def test_status_is_styled_through_rich(tty_colors: None) -> None:
    pytest.importorskip("rich")
    renderer = create_renderer()

    styled = renderer.status("failed")

    assert styled != "failed"
    assert "failed" in styled
    assert styled.startswith("\x1b[")
    assert renderer.status("no-such-status") == "no-such-status"


def test_status_falls_back_to_plain_text_without_rich(
    tty_colors: None, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(render_module, "find_spec", lambda name: None)

    assert create_renderer().status("success") == "success"


def test_no_color_environment_disables_styling(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("NO_COLOR", "1")

    assert create_renderer().status("running") == "running"
