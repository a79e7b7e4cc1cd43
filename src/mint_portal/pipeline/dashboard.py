"""
mint-portal: dashboard rollup across projects and builds.

File: src/mint_portal/pipeline/dashboard.py

Purpose
- Compute fleet-wide statistics (success rate, running count, quality averages, most
  recent builds) from already-materialized build and project snapshots.

What should be included in this file
- The headline ``compute_dashboard_stats`` rollup.
- Per-stage duration averages, build/project filters and per-status counts.
- Per-project fan-out of the rollup on a thread pool.

Functional requirements
- Percentages use round-half-up; empty input resolves to zeros, never NaN.
- Recent builds are the newest by ``started_at``; ties keep collection order.
- Quality averages exclude builds whose score is absent; an empty mean is 0.

Non-functional requirements
- Pure functions over snapshots; concurrent calls share no mutable state.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from mint_portal.constants import RECENT_BUILDS_LIMIT
from mint_portal.domain.errors import MissingDataError
from mint_portal.domain.models import (
    Build,
    BuildStatus,
    DashboardStats,
    InterchangeModel,
    Project,
    QualityOverview,
    QualityTool,
)
from mint_portal.utils.grouping import count_by, group_by


@dataclass(frozen=True, slots=True)
class StageDurationStats(InterchangeModel):
    """Average runtime of one stage name across the builds that recorded a duration."""

    stage_name: str
    average_duration: float
    sample_count: int


def compute_dashboard_stats(
    builds: Sequence[Build],
    projects: Sequence[Project],
    *,
    recent_limit: int = RECENT_BUILDS_LIMIT,
) -> DashboardStats:
    """Return the dashboard rollup for ``builds`` and ``projects``."""

    if recent_limit < 0:
        raise ValueError("recent_limit must be >= 0")

    counts = count_builds_by_status(builds)
    total = len(builds)
    success_rate = percentage(counts[BuildStatus.SUCCESS], total)

    ordered = sorted(builds, key=lambda build: build.started_at, reverse=True)

    return DashboardStats(
        success_rate=success_rate,
        total_builds=total,
        active_projects=sum(1 for project in projects if project.is_active),
        running_builds=counts[BuildStatus.RUNNING],
        recent_builds=tuple(ordered[:recent_limit]),
        quality_overview=QualityOverview(
            coverity_avg=average_score(builds, QualityTool.COVERITY),
            sam_avg=average_score(builds, QualityTool.SAM),
            pass_rate=success_rate,
        ),
        success_builds=counts[BuildStatus.SUCCESS],
        failed_builds=counts[BuildStatus.FAILED],
    )


def compute_dashboard_stats_by_project(
    builds: Sequence[Build],
    projects: Sequence[Project],
    *,
    recent_limit: int = RECENT_BUILDS_LIMIT,
    max_workers: int | None = None,
) -> dict[str, DashboardStats]:
    """Compute one rollup per project in parallel, keyed by project id in input order."""

    by_project = group_by(builds, lambda build: build.project_id)
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = {
            project.id: executor.submit(
                compute_dashboard_stats,
                tuple(by_project.get(project.id, ())),
                (project,),
                recent_limit=recent_limit,
            )
            for project in projects
        }
        return {project_id: future.result() for project_id, future in futures.items()}


def compute_stage_duration_stats(builds: Iterable[Build]) -> tuple[StageDurationStats, ...]:
    """Average duration in seconds per stage name, in first-seen stage order."""

    timed = [
        stage for build in builds for stage in build.stages if stage.duration is not None
    ]
    grouped = group_by(timed, lambda stage: stage.name)
    return tuple(
        StageDurationStats(
            stage_name=name,
            average_duration=sum(stage.duration or 0.0 for stage in members) / len(members),
            sample_count=len(members),
        )
        for name, members in grouped.items()
    )


def count_builds_by_status(builds: Iterable[Build]) -> dict[BuildStatus, int]:
    """Build counts for every status, zero-filled, in status declaration order."""

    counted = count_by(builds, lambda build: build.status)
    return {status: counted.get(status, 0) for status in BuildStatus}


def filter_builds(
    builds: Iterable[Build],
    *,
    project_id: str | None = None,
    layer_id: str | None = None,
    status: BuildStatus | str | None = None,
) -> tuple[Build, ...]:
    wanted_status = None if status is None else _coerce_build_status(status)
    return tuple(
        build
        for build in builds
        if (project_id is None or build.project_id == project_id)
        and (layer_id is None or build.layer_id == layer_id)
        and (wanted_status is None or build.status is wanted_status)
    )


def filter_projects(
    projects: Iterable[Project],
    *,
    group_id: str | None = None,
    oem: str | None = None,
    feature: str | None = None,
    tl: str | None = None,
    task_code: str | None = None,
    search: str | None = None,
) -> tuple[Project, ...]:
    """Filter projects the way the project list query does.

    Exact matches on group, OEM, feature and task code; ``tl`` matches the team
    lead's id or name; ``search`` is a case-insensitive substring of id, name or
    task code.
    """

    needle = search.strip().lower() if search else None
    selected: list[Project] = []
    for project in projects:
        if group_id is not None and project.group_id != group_id:
            continue
        if oem is not None and project.oem != oem:
            continue
        if feature is not None and project.feature != feature:
            continue
        if task_code is not None and project.task_code != task_code:
            continue
        if tl is not None and (project.tl is None or tl not in (project.tl.id, project.tl.name)):
            continue
        if needle and not any(
            needle in text.lower() for text in (project.id, project.name, project.task_code)
        ):
            continue
        selected.append(project)
    return tuple(selected)


def percentage(part: int, total: int) -> int:
    """Return ``part / total * 100`` rounded half up; ``0`` when ``total`` is zero."""

    if total <= 0:
        return 0
    ratio = Decimal(part * 100) / Decimal(total)
    return int(ratio.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def average_score(builds: Iterable[Build], tool: QualityTool) -> float:
    """Mean ``score`` of ``tool`` over builds that report one; ``0.0`` for none."""

    scores = [
        result.score
        for build in builds
        if build.quality_metrics is not None
        and (result := build.quality_metrics.get(tool)) is not None
        and result.score is not None
    ]
    if not scores:
        return 0.0
    return sum(scores) / len(scores)


def _coerce_build_status(value: BuildStatus | str) -> BuildStatus:
    if isinstance(value, BuildStatus):
        return value
    try:
        return BuildStatus(value.strip().lower())
    except ValueError as exc:
        raise MissingDataError(f"unknown build status {value!r}", field="status") from exc


__all__ = [
    "StageDurationStats",
    "average_score",
    "compute_dashboard_stats",
    "compute_dashboard_stats_by_project",
    "compute_stage_duration_stats",
    "count_builds_by_status",
    "filter_builds",
    "filter_projects",
    "percentage",
]
