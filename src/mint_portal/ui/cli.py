"""Command-line interface router for mint-portal."""

from __future__ import annotations

import argparse
import json
import os
import sys
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Final

from mint_portal.config import effective_config, load_config
from mint_portal.domain.errors import InvalidTransition, ReleaseBlockedError
from mint_portal.domain.models import Build, JSONValue, ReleaseCriteria
from mint_portal.observability.logging import setup_logging, shutdown_logging
from mint_portal.pipeline.configuration import required_stage_names
from mint_portal.service import BuildReport, PortalService
from mint_portal.ui.render import CLIRenderer, create_renderer

EXIT_OK: Final[int] = 0
EXIT_REJECTED: Final[int] = 1
EXIT_USAGE: Final[int] = 2

_Handler = Callable[[argparse.Namespace, Mapping[str, Any]], int]


@dataclass(frozen=True, slots=True)
class CLIError(RuntimeError):
    """Typed CLI failure with an explicit process exit code."""

    message: str
    exit_code: int = EXIT_USAGE

    def __str__(self) -> str:
        return self.message


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse command router."""

    parser = argparse.ArgumentParser(
        prog="mint-portal",
        description=(
            "mint-portal: build pipeline status and release gating.\n\n"
            "Common workflows:\n"
            "  mint-portal stats                 Dashboard rollup across projects\n"
            "  mint-portal build <id>            Derived status of one build\n"
            "  mint-portal release <id>          Release criteria of a release-layer build\n"
            "  mint-portal release <id> --request\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--snapshot",
        default=None,
        help="Snapshot file (YAML or JSON); overrides paths.snapshot from config.",
    )
    common.add_argument(
        "--config",
        dest="config_path",
        default=None,
        help="Path to portal TOML config (default: ./portal.toml if present).",
    )
    common.add_argument("--profile", default=None, help="Quality profile overlay (strict, lenient).")
    common.add_argument("--log-dir", default=None, help="Override observability.log_dir.")
    common.add_argument("--json", action="store_true", help="Emit deterministic JSON output.")
    common.add_argument(
        "--no-color",
        action="store_true",
        default=False,
        help="Disable colored output (also respects NO_COLOR env var).",
    )
    common.add_argument("--verbose", "-v", action="store_true", default=False)

    subparsers = parser.add_subparsers(dest="command", required=True)

    stats_parser = subparsers.add_parser(
        "stats", parents=[common], help="Show the dashboard rollup"
    )
    stats_parser.add_argument(
        "--by-project", action="store_true", help="One rollup per project instead of fleet-wide"
    )
    stats_parser.set_defaults(handler=_cmd_stats)

    builds_parser = subparsers.add_parser("builds", parents=[common], help="List builds")
    builds_parser.add_argument("--project", dest="project_id", default=None)
    builds_parser.add_argument("--layer", dest="layer_id", default=None)
    builds_parser.add_argument("--status", default=None)
    builds_parser.set_defaults(handler=_cmd_builds)

    projects_parser = subparsers.add_parser("projects", parents=[common], help="List projects")
    projects_parser.add_argument("--group", dest="group_id", default=None)
    projects_parser.add_argument("--oem", default=None)
    projects_parser.add_argument("--feature", default=None)
    projects_parser.add_argument("--tl", default=None, help="Team lead id or name")
    projects_parser.add_argument("--task-code", dest="task_code", default=None)
    projects_parser.add_argument("--search", default=None)
    projects_parser.set_defaults(handler=_cmd_projects)

    build_parser_ = subparsers.add_parser(
        "build", parents=[common], help="Derive status, quality and release verdict of a build"
    )
    build_parser_.add_argument("build_id")
    build_parser_.set_defaults(handler=_cmd_build)

    release_parser = subparsers.add_parser(
        "release",
        parents=[common],
        help="Evaluate (or request) release of a release-layer build",
        description=(
            "Evaluate release criteria; exits 1 when the build may not be promoted.\n\n"
            "Examples:\n"
            "  mint-portal release b-42\n"
            "  mint-portal release b-42 --request\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    release_parser.add_argument("build_id")
    release_parser.add_argument(
        "--request", action="store_true", help="Mark the build released when criteria pass"
    )
    release_parser.set_defaults(handler=_cmd_release)

    layer_parser = subparsers.add_parser(
        "validate-layer", parents=[common], help="Validate a layer's pipeline configuration"
    )
    layer_parser.add_argument("layer_id")
    layer_parser.set_defaults(handler=_cmd_validate_layer)

    stages_parser = subparsers.add_parser(
        "stages", parents=[common], help="Average stage durations"
    )
    stages_parser.add_argument("--project", dest="project_id", default=None)
    stages_parser.set_defaults(handler=_cmd_stages)

    config_parser = subparsers.add_parser(
        "config", parents=[common], help="Show effective configuration (redacted)"
    )
    config_parser.set_defaults(handler=_cmd_config)

    tui_parser = subparsers.add_parser(
        "tui",
        parents=[common],
        help="Launch the interactive dashboard",
        description="Requires optional TUI dependencies (pip install -e '.[tui]').",
    )
    tui_parser.set_defaults(handler=_cmd_tui)

    return parser


# ---------------------------------------------------------------------------
# Entrypoints
# ---------------------------------------------------------------------------


def run_cli(argv: Sequence[str] | None = None) -> int:
    """Parse argv, load config, route to a command handler and return the exit code."""

    parser = build_parser()
    namespace = parser.parse_args(list(argv) if argv is not None else None)
    handler: _Handler | None = getattr(namespace, "handler", None)
    if handler is None:
        parser.print_help(sys.stderr)
        return EXIT_USAGE

    config = _load_effective_config(namespace)
    setup_logging(config.get("observability"), run_id=_run_id(namespace.command))
    try:
        return int(handler(namespace, config))
    except CLIError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return exc.exit_code
    finally:
        shutdown_logging()


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _cmd_stats(args: argparse.Namespace, config: Mapping[str, Any]) -> int:
    service = _open_service(args, config)

    if args.by_project:
        rollups = service.dashboard_stats_by_project()
        if args.json:
            _emit_json(
                {
                    "command": "stats",
                    "byProject": {key: value.to_dict() for key, value in rollups.items()},
                }
            )
            return EXIT_OK
        renderer = _get_renderer(args)
        renderer.table(
            ("Project", "Builds", "Success %", "Running", "Coverity avg", "SAM avg"),
            [
                (
                    project_id,
                    str(stats.total_builds),
                    str(stats.success_rate),
                    str(stats.running_builds),
                    f"{stats.quality_overview.coverity_avg:.1f}",
                    f"{stats.quality_overview.sam_avg:.1f}",
                )
                for project_id, stats in rollups.items()
            ],
            title="Per-project rollup:",
        )
        return EXIT_OK

    stats = service.dashboard_stats()
    if args.json:
        _emit_json({"command": "stats", "stats": stats.to_dict()})
        return EXIT_OK

    renderer = _get_renderer(args)
    renderer.heading("Dashboard")
    renderer.kv("Success rate", f"{stats.success_rate}%")
    renderer.kv("Total builds", stats.total_builds)
    renderer.kv("Succeeded / failed", f"{stats.success_builds} / {stats.failed_builds}")
    renderer.kv("Running builds", stats.running_builds)
    renderer.kv("Active projects", stats.active_projects)
    renderer.kv("Coverity average", f"{stats.quality_overview.coverity_avg:.1f}")
    renderer.kv("SAM average", f"{stats.quality_overview.sam_avg:.1f}")
    _render_builds(renderer, stats.recent_builds, title="Recent builds:")
    return EXIT_OK


def _cmd_builds(args: argparse.Namespace, config: Mapping[str, Any]) -> int:
    service = _open_service(args, config)
    builds = service.builds(project_id=args.project_id, layer_id=args.layer_id, status=args.status)
    if args.json:
        _emit_json({"command": "builds", "builds": [build.to_dict() for build in builds]})
        return EXIT_OK
    renderer = _get_renderer(args)
    if not builds:
        renderer.text("No builds match.")
        return EXIT_OK
    _render_builds(renderer, builds, title=f"{len(builds)} build(s):")
    return EXIT_OK


def _cmd_projects(args: argparse.Namespace, config: Mapping[str, Any]) -> int:
    service = _open_service(args, config)
    projects = service.projects(
        group_id=args.group_id,
        oem=args.oem,
        feature=args.feature,
        tl=args.tl,
        task_code=args.task_code,
        search=args.search,
    )
    if args.json:
        _emit_json({"command": "projects", "projects": [item.to_dict() for item in projects]})
        return EXIT_OK
    renderer = _get_renderer(args)
    if not projects:
        renderer.text("No projects match.")
        return EXIT_OK
    renderer.table(
        ("Id", "Name", "Status", "OEM", "Task code", "TL"),
        [
            (
                project.id,
                project.name,
                project.status.value,
                project.oem,
                project.task_code,
                project.tl.name if project.tl is not None else "-",
            )
            for project in projects
        ],
    )
    return EXIT_OK


def _cmd_build(args: argparse.Namespace, config: Mapping[str, Any]) -> int:
    report = _open_service(args, config).build_report(args.build_id)
    if args.json:
        _emit_json({"command": "build", **_report_payload(report)})
        return EXIT_OK

    renderer = _get_renderer(args)
    build = report.build
    renderer.heading(f"Build {build.id}")
    renderer.kv("Project / layer", f"{build.project_id} / {report.layer.id} ({report.layer.type})")
    renderer.kv("Round / number", f"{build.round} / {build.build_number}")
    renderer.kv("Recorded status", renderer.status(build.status.value))
    decided_by = report.decision.rule.value
    if report.decision.stage_name is not None:
        decided_by += f" ({report.decision.stage_name})"
    renderer.kv("Derived status", f"{renderer.status(report.decision.status.value)} [{decided_by}]")
    if not report.status_matches_record:
        renderer.warning("recorded status differs from the status derived from its stages")
    if report.stage_issue is not None:
        renderer.warning(report.stage_issue)

    renderer.table(
        ("Stage", "Status", "Duration", "Summary"),
        [
            (
                stage.name,
                stage.status.value,
                "-" if stage.duration is None else f"{stage.duration:.0f}s",
                (stage.summary.message or "") if stage.summary is not None else "",
            )
            for stage in build.stages
        ],
        title="Stages:",
    )
    if report.quality is not None:
        renderer.table(
            ("Tool", "Verdict", "Details"),
            [
                (tool.value, result.status.value, result.details or "")
                for tool, result in report.quality.items()
                if result is not None
            ],
            title="Quality:",
        )
    if report.release_criteria is not None:
        _render_criteria(renderer, report.release_criteria)
        renderer.kv("Release status", renderer.status(_text(report.release_status)))
    return EXIT_OK


def _cmd_release(args: argparse.Namespace, config: Mapping[str, Any]) -> int:
    service = _open_service(args, config)
    renderer = _get_renderer(args)

    if args.request:
        try:
            released = service.request_release(args.build_id)
        except (ReleaseBlockedError, InvalidTransition) as exc:
            criteria = exc.criteria if isinstance(exc, ReleaseBlockedError) else None
            if args.json:
                _emit_json(
                    {
                        "command": "release",
                        "buildId": args.build_id,
                        "released": False,
                        "reason": str(exc),
                        "releaseCriteria": None if criteria is None else criteria.to_dict(),
                    }
                )
            else:
                renderer.fail(str(exc))
            return EXIT_REJECTED
        if args.json:
            _emit_json({"command": "release", "released": True, "build": released.to_dict()})
        else:
            renderer.ok(f"build {released.id} is {_text(released.release_status)}")
        return EXIT_OK

    build = service.get_build(args.build_id)
    criteria = service.evaluate_release(build.id)
    if args.json:
        _emit_json(
            {
                "command": "release",
                "buildId": build.id,
                "releaseCriteria": None if criteria is None else criteria.to_dict(),
            }
        )
    elif criteria is None:
        renderer.text(f"Build {build.id} is not on a release layer.")
    else:
        _render_criteria(renderer, criteria)
    return EXIT_OK if criteria is not None and criteria.overall_passed else EXIT_REJECTED


def _cmd_validate_layer(args: argparse.Namespace, config: Mapping[str, Any]) -> int:
    report = _open_service(args, config).validate_layer(args.layer_id)
    issues = report.validation.issues
    if args.json:
        _emit_json(
            {
                "command": "validate-layer",
                "layer": report.layer.to_dict(),
                "valid": report.validation.is_valid,
                "issues": [
                    {"path": item.path, "code": item.code, "message": item.message}
                    for item in issues
                ],
            }
        )
        return EXIT_OK

    renderer = _get_renderer(args)
    layer = report.layer
    renderer.heading(f"Layer {layer.id} ({layer.type})")
    renderer.table(
        ("Stage", "Enabled", "Required"),
        [
            (stage.name, _yes_no(stage.enabled), _yes_no(stage.required))
            for stage in layer.pipeline_config
        ],
    )
    required = required_stage_names(layer.pipeline_config)
    renderer.kv("Required stages", ", ".join(required) or "(none)")
    # A broken pipeline configuration already fails the snapshot load with exit 2.
    renderer.ok("pipeline configuration is valid")
    return EXIT_OK


def _cmd_stages(args: argparse.Namespace, config: Mapping[str, Any]) -> int:
    stats = _open_service(args, config).stage_duration_stats(project_id=args.project_id)
    if args.json:
        _emit_json({"command": "stages", "stages": [item.to_dict() for item in stats]})
        return EXIT_OK
    renderer = _get_renderer(args)
    if not stats:
        renderer.text("No stage durations recorded.")
        return EXIT_OK
    renderer.table(
        ("Stage", "Average", "Samples"),
        [
            (item.stage_name, f"{item.average_duration:.1f}s", str(item.sample_count))
            for item in stats
        ],
    )
    return EXIT_OK


def _cmd_config(args: argparse.Namespace, config: Mapping[str, Any]) -> int:
    redacted = effective_config(config)
    if args.json:
        _emit_json({"command": "config", "activeProfile": args.profile, "config": redacted})
        return EXIT_OK
    renderer = _get_renderer(args)
    renderer.kv("Active profile", args.profile or "(default)")
    renderer.text(json.dumps(redacted, indent=2, sort_keys=True, ensure_ascii=False))
    return EXIT_OK


def _cmd_tui(args: argparse.Namespace, config: Mapping[str, Any]) -> int:
    from mint_portal.ui.tui import run_tui

    return run_tui(_open_service(args, config), no_color=args.no_color)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _load_effective_config(args: argparse.Namespace) -> dict[str, Any]:
    overrides: dict[str, object] = {}
    if args.snapshot is not None:
        overrides["paths.snapshot"] = Path(args.snapshot).expanduser().resolve().as_posix()
    if args.log_dir is not None:
        overrides["observability.log_dir"] = Path(args.log_dir).expanduser().resolve().as_posix()
    return load_config(args.config_path, profile=args.profile, cli_overrides=overrides)


def _open_service(args: argparse.Namespace, config: Mapping[str, Any]) -> PortalService:
    snapshot_path = Path(config["paths"]["snapshot"])
    if not snapshot_path.is_file():
        raise CLIError(
            f"snapshot not found: {snapshot_path.as_posix()} (use --snapshot or paths.snapshot)"
        )
    return PortalService.from_config(config)


def _run_id(command: str) -> str:
    stamp = datetime.now(tz=UTC).strftime("%Y%m%dT%H%M%S")
    return f"{stamp}-{command}-{os.getpid()}"


def _emit_json(payload: Mapping[str, object]) -> None:
    """Emit a JSON payload to stdout with deterministic formatting."""

    print(json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False))


def _get_renderer(args: argparse.Namespace) -> CLIRenderer:
    return create_renderer(no_color=args.no_color, verbose=args.verbose)


def _render_builds(renderer: CLIRenderer, builds: Sequence[Build], *, title: str) -> None:
    renderer.table(
        ("Build", "Project", "Layer", "Status", "Started", "Release"),
        [
            (
                build.id,
                build.project_id,
                build.layer_id,
                build.status.value,
                build.started_at.astimezone(UTC).strftime("%Y-%m-%d %H:%M"),
                _text(build.release_status),
            )
            for build in builds
        ],
        title=title,
    )


def _render_criteria(renderer: CLIRenderer, criteria: ReleaseCriteria) -> None:
    renderer.section("Release criteria:")
    checks = (
        ("all required stages passed", criteria.all_stages_passed),
        ("coverity", criteria.coverity_passed),
        ("sam", criteria.sam_passed),
        ("onboard test", criteria.onboard_test_passed),
        ("blackduck", criteria.blackduck_passed),
    )
    for label, passed in checks:
        (renderer.ok if passed else renderer.fail)(label)
    renderer.kv("Overall", "PASS" if criteria.overall_passed else "FAIL")


def _report_payload(report: BuildReport) -> dict[str, JSONValue]:
    return {
        "build": report.build.to_dict(),
        "derivedStatus": report.decision.status.value,
        "decidedBy": report.decision.rule.value,
        "decidingStage": report.decision.stage_name,
        "quality": None if report.quality is None else report.quality.to_dict(),
        "releaseCriteria": (
            None if report.release_criteria is None else report.release_criteria.to_dict()
        ),
        "releaseStatus": None if report.release_status is None else report.release_status.value,
        "stageIssue": report.stage_issue,
    }


def _text(value: object) -> str:
    if value is None:
        return "-"
    return str(getattr(value, "value", value))


def _yes_no(flag: bool) -> str:
    return "yes" if flag else "no"


__all__ = ["CLIError", "build_parser", "run_cli"]
