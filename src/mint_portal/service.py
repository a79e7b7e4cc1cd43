"""
mint-portal: service facade over a loaded snapshot.

File: src/mint_portal/service.py

Purpose
- Expose every pipeline-core operation by identifier for the CLI and the dashboard TUI.

What should be included in this file
- ``PortalService`` indexing one ``PortalSnapshot`` plus the effective config.
- Report dataclasses combining the derived values the surfaces render.

Functional requirements
- Unknown ids raise ``MissingDataError`` naming the id field.
- Quality verdicts are recomputed from recorded results with the configured thresholds
  before release criteria are evaluated.
- Every operation logs once at INFO with build/layer correlation fields bound.

Non-functional requirements
- Read-only: release requests return the promoted build, the snapshot is never mutated.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

from mint_portal.adapters.snapshot import PortalSnapshot, load_snapshot
from mint_portal.constants import RECENT_BUILDS_LIMIT
from mint_portal.domain.errors import InvalidTransition, MissingDataError, ReleaseBlockedError
from mint_portal.domain.models import (
    Build,
    BuildStatus,
    DashboardStats,
    Layer,
    Project,
    QualityMetrics,
    ReleaseCriteria,
    ReleaseStatus,
)
from mint_portal.observability.logging import correlation_scope
from mint_portal.pipeline.configuration import PipelineValidationResult, validate_pipeline_config
from mint_portal.pipeline.dashboard import (
    StageDurationStats,
    compute_dashboard_stats,
    compute_dashboard_stats_by_project,
    compute_stage_duration_stats,
    filter_builds,
    filter_projects,
)
from mint_portal.pipeline.quality import QualityThresholds, evaluate_quality_metrics
from mint_portal.pipeline.release import (
    evaluate_release_criteria,
    initial_release_status,
    request_release,
)
from mint_portal.pipeline.status import (
    BuildStatusDecision,
    check_stage_snapshot,
    explain_build_status,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class BuildReport:
    """Everything derived for one build."""

    build: Build
    layer: Layer
    decision: BuildStatusDecision
    quality: QualityMetrics | None
    release_criteria: ReleaseCriteria | None
    release_status: ReleaseStatus | None
    stage_issue: str | None = None

    @property
    def status_matches_record(self) -> bool:
        if self.build.status is BuildStatus.CANCELLED:
            return True
        return self.decision.status is self.build.status


@dataclass(frozen=True, slots=True)
class LayerReport:
    layer: Layer
    validation: PipelineValidationResult


class PortalService:
    """Read-only facade binding a snapshot to the configured thresholds and limits."""

    def __init__(self, snapshot: PortalSnapshot, config: Mapping[str, Any] | None = None) -> None:
        cfg = dict(config or {})
        dashboard = cfg.get("dashboard") or {}
        self._snapshot = snapshot
        self._thresholds = QualityThresholds.from_mapping(cfg.get("quality") or {})
        self._recent_limit = int(dashboard.get("recent_builds_limit", RECENT_BUILDS_LIMIT))
        self._max_workers = int(dashboard.get("max_workers", 4))

    @classmethod
    def from_config(
        cls, config: Mapping[str, Any], *, snapshot_path: str | Path | None = None
    ) -> PortalService:
        """Load the snapshot named by ``paths.snapshot`` (or ``snapshot_path``)."""

        path = snapshot_path
        if path is None:
            paths = config.get("paths") or {}
            path = paths.get("snapshot")
        if path is None:
            raise MissingDataError("no snapshot path configured", field="paths.snapshot")
        return cls(load_snapshot(path), config)

    @property
    def snapshot(self) -> PortalSnapshot:
        return self._snapshot

    @property
    def thresholds(self) -> QualityThresholds:
        return self._thresholds

    def dashboard_stats(self) -> DashboardStats:
        stats = compute_dashboard_stats(
            self._snapshot.builds, self._snapshot.projects, recent_limit=self._recent_limit
        )
        logger.info(
            "dashboard stats computed",
            extra={"total_builds": stats.total_builds, "success_rate": stats.success_rate},
        )
        return stats

    def dashboard_stats_by_project(self) -> dict[str, DashboardStats]:
        return compute_dashboard_stats_by_project(
            self._snapshot.builds,
            self._snapshot.projects,
            recent_limit=self._recent_limit,
            max_workers=self._max_workers,
        )

    def stage_duration_stats(
        self, *, project_id: str | None = None
    ) -> tuple[StageDurationStats, ...]:
        return compute_stage_duration_stats(self.builds(project_id=project_id))

    def builds(
        self,
        *,
        project_id: str | None = None,
        layer_id: str | None = None,
        status: BuildStatus | str | None = None,
    ) -> tuple[Build, ...]:
        return filter_builds(
            self._snapshot.builds, project_id=project_id, layer_id=layer_id, status=status
        )

    def projects(self, **filters: str | None) -> tuple[Project, ...]:
        return filter_projects(self._snapshot.projects, **filters)

    def get_build(self, build_id: str) -> Build:
        build = self._snapshot.build(build_id)
        if build is None:
            raise MissingDataError(f"unknown build {build_id!r}", field="build_id")
        return build

    def get_layer(self, layer_id: str) -> Layer:
        layer = self._snapshot.layer(layer_id)
        if layer is None:
            raise MissingDataError(f"unknown layer {layer_id!r}", field="layer_id")
        return layer

    def build_report(self, build_id: str) -> BuildReport:
        """Derive status, quality verdicts and release criteria for one build."""

        build = self.get_build(build_id)
        layer = self.get_layer(build.layer_id)
        with correlation_scope(build_id=build.id, layer_id=layer.id, project_id=build.project_id):
            stage_issue: str | None = None
            try:
                check_stage_snapshot(build, layer)
            except MissingDataError as exc:
                stage_issue = exc.detail
                logger.warning("build stages do not match layer", extra={"detail": exc.detail})
            try:
                decision = explain_build_status(
                    build.stages,
                    layer.pipeline_config,
                    cancelled=build.status is BuildStatus.CANCELLED,
                )
            except MissingDataError as exc:
                # Stages outside the layer configuration cannot be ranked.
                raise MissingDataError(stage_issue or exc.detail, field=exc.field) from exc

            evaluated = self._with_evaluated_quality(build, layer)
            criteria = evaluate_release_criteria(evaluated, layer)
            release_status = evaluated.release_status or initial_release_status(evaluated, criteria)
            logger.info(
                "build report derived",
                extra={"status": decision.status.value, "rule": decision.rule.value},
            )
        return BuildReport(
            build=build,
            layer=layer,
            decision=decision,
            quality=self._quality_overview(build, layer),
            release_criteria=criteria,
            release_status=release_status,
            stage_issue=stage_issue,
        )

    def evaluate_release(self, build_id: str) -> ReleaseCriteria | None:
        build = self.get_build(build_id)
        layer = self.get_layer(build.layer_id)
        return evaluate_release_criteria(self._with_evaluated_quality(build, layer), layer)

    def request_release(self, build_id: str) -> Build:
        """Return the build promoted to ``released``; raises ``ReleaseBlockedError`` otherwise."""

        build = self.get_build(build_id)
        layer = self.get_layer(build.layer_id)
        with correlation_scope(build_id=build.id, layer_id=layer.id, project_id=build.project_id):
            try:
                released = request_release(self._with_evaluated_quality(build, layer), layer)
            except (ReleaseBlockedError, InvalidTransition) as exc:
                logger.warning("release rejected", extra={"reason": str(exc)})
                raise
            logger.info("release granted")
        return released

    def validate_layer(self, layer_id: str) -> LayerReport:
        layer = self.get_layer(layer_id)
        return LayerReport(layer=layer, validation=validate_pipeline_config(layer.pipeline_config))

    def layers_for_project(self, project_id: str) -> Sequence[Layer]:
        return tuple(layer for layer in self._snapshot.layers if layer.project_id == project_id)

    def _with_evaluated_quality(self, build: Build, layer: Layer) -> Build:
        """Re-grade the recorded tool results; tools without a result stay absent."""

        if build.quality_metrics is None:
            return build
        evaluated = evaluate_quality_metrics(
            build.quality_metrics, layer.pipeline_config, thresholds=self._thresholds
        )
        present = {tool for tool, result in build.quality_metrics.items() if result is not None}
        recorded = {
            tool: result
            for tool, result in evaluated.items()
            if tool in present and result is not None
        }
        return replace(build, quality_metrics=QualityMetrics.from_results(recorded))

    def _quality_overview(self, build: Build, layer: Layer) -> QualityMetrics | None:
        """Verdict for every tool, filling gaps with ``pending``/``skipped`` for display."""

        if build.quality_metrics is None:
            return None
        return evaluate_quality_metrics(
            build.quality_metrics, layer.pipeline_config, thresholds=self._thresholds
        )


__all__ = ["BuildReport", "LayerReport", "PortalService"]
