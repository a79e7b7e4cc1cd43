"""Full-screen dashboard for mint-portal using Textual.

File: src/mint_portal/ui/tui_app.py

Purpose
- Show the dashboard rollup, the build list and the derived report of the highlighted build.

What should be included in this file
- ``DashboardApp`` with a stats header, a builds table and a detail pane.
- Status cells colored with ``rich`` styles; plain text with --no-color / NO_COLOR.

Non-functional requirements
- Read-only over the service; refresh recomputes from the loaded snapshot.
"""

from __future__ import annotations

import os
from typing import Final

from rich.text import Text
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, VerticalScroll
from textual.widgets import DataTable, Footer, Header, Static

from mint_portal.domain.errors import PortalError
from mint_portal.domain.models import Build, DashboardStats
from mint_portal.service import BuildReport, PortalService

_STATUS_STYLES: Final[dict[str, str]] = {
    "success": "bold green",
    "pass": "green",
    "failed": "bold red",
    "fail": "red",
    "running": "cyan",
    "pending": "yellow",
    "warning": "yellow",
    "cancelled": "dim",
    "skipped": "dim",
}

_CSS: Final[str] = """\
#stats {
    height: auto;
    padding: 0 1;
    border: round $accent;
}
#main-area {
    height: 1fr;
}
#builds {
    width: 3fr;
}
#detail-pane {
    width: 2fr;
    border: round $primary;
    padding: 0 1;
}
"""

_BUILD_COLUMNS: Final[tuple[str, ...]] = ("Build", "Project", "Layer", "Status", "Started")


def summarize_stats(stats: DashboardStats) -> str:
    overview = stats.quality_overview
    return (
        f"Success rate {stats.success_rate}%  |  builds {stats.total_builds} "
        f"({stats.success_builds} ok / {stats.failed_builds} failed / "
        f"{stats.running_builds} running)  |  active projects {stats.active_projects}  |  "
        f"coverity avg {overview.coverity_avg:.1f}  sam avg {overview.sam_avg:.1f}"
    )


def describe_report(report: BuildReport) -> str:
    lines = [
        f"Build {report.build.id}  ({report.layer.name}, {report.layer.type})",
        f"derived: {report.decision.status} via {report.decision.rule.value}",
    ]
    if report.decision.stage_name is not None:
        lines.append(f"deciding stage: {report.decision.stage_name}")
    if report.stage_issue is not None:
        lines.append(f"! {report.stage_issue}")
    lines.append("")
    lines.extend(f"  {stage.name:<18} {stage.status}" for stage in report.build.stages)
    if report.quality is not None:
        lines.append("")
        lines.extend(
            f"  {tool.value:<18} {result.status}"
            for tool, result in report.quality.items()
            if result is not None
        )
    criteria = report.release_criteria
    if criteria is not None:
        verdict = "PASS" if criteria.overall_passed else "FAIL"
        failed = ", ".join(criteria.failed_checks())
        lines.append("")
        lines.append(f"release: {verdict}" + (f" ({failed})" if failed else ""))
        if report.release_status is not None:
            lines.append(f"release status: {report.release_status}")
    return "\n".join(lines)


class DashboardApp(App[int]):
    """Interactive build dashboard."""

    TITLE = "mint-portal"
    CSS = _CSS
    BINDINGS = [
        Binding("q", "quit_app", "Quit"),
        Binding("r", "refresh_stats", "Refresh"),
    ]

    def __init__(self, service: PortalService, *, no_color: bool = False) -> None:
        super().__init__()
        self._service = service
        self._no_color = no_color or bool(os.environ.get("NO_COLOR", ""))
        self.summary_text = ""
        self.detail_text = ""

    def compose(self) -> ComposeResult:
        yield Header()
        yield Static(id="stats")
        with Horizontal(id="main-area"):
            yield DataTable(id="builds", cursor_type="row", zebra_stripes=True)
            with VerticalScroll(id="detail-pane"):
                yield Static("Select a build.", id="detail")
        yield Footer()

    def on_mount(self) -> None:
        table = self.query_one("#builds", DataTable)
        table.add_columns(*_BUILD_COLUMNS)
        self.action_refresh_stats()

    def action_refresh_stats(self) -> None:
        stats = self._service.dashboard_stats()
        self.summary_text = summarize_stats(stats)
        self.query_one("#stats", Static).update(self.summary_text)

        table = self.query_one("#builds", DataTable)
        table.clear()
        ordered = sorted(self._service.builds(), key=lambda item: item.started_at, reverse=True)
        for build in ordered:
            table.add_row(*self._row(build), key=build.id)

    def on_data_table_row_highlighted(self, event: DataTable.RowHighlighted) -> None:
        build_id = event.row_key.value
        if build_id is None:
            return
        self.show_build(build_id)

    def show_build(self, build_id: str) -> None:
        try:
            self.detail_text = describe_report(self._service.build_report(build_id))
        except PortalError as exc:
            self.detail_text = f"{build_id}: {exc}"
        self.query_one("#detail", Static).update(self.detail_text)

    def action_quit_app(self) -> None:
        self.exit(0)

    def _row(self, build: Build) -> tuple[str | Text, ...]:
        return (
            build.id,
            build.project_id,
            build.layer_id,
            self._status_cell(build.status.value),
            build.started_at.strftime("%Y-%m-%d %H:%M"),
        )

    def _status_cell(self, value: str) -> str | Text:
        style = _STATUS_STYLES.get(value)
        if self._no_color or style is None:
            return value
        return Text(value, style=style)


def run_tui_app(service: PortalService, *, no_color: bool = False) -> int:
    """Create and run the dashboard app, returning its exit code."""

    result = DashboardApp(service, no_color=no_color).run()
    return result if isinstance(result, int) else 0


__all__ = ["DashboardApp", "describe_report", "run_tui_app", "summarize_stats"]
