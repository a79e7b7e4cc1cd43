"""
mint-portal: build status derivation.

File: src/mint_portal/pipeline/status.py

Purpose
- Combine a build's stage results into one overall build status.

What should be included in this file
- Ordered rule evaluation over stages in pipeline-configuration order.
- Operator cancellation as an explicit override.
- Build finalization keeping ``finished_at``/``duration`` consistent with status.
- Stage snapshot check against the layer's enabled stages.

Functional requirements
- A failed required stage dominates every other stage state, including later running ones.
- Derivation never produces ``cancelled`` on its own.

Non-functional requirements
- Pure and deterministic; timestamps are always passed in by the caller.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum

from mint_portal.domain.errors import InvalidTransition, MissingDataError
from mint_portal.domain.models import Build, BuildStage, BuildStatus, Layer, StageConfig, StageStatus
from mint_portal.pipeline.configuration import enabled_stage_names


class StatusRule(str, Enum):
    """Rule that decided a derived build status."""

    CANCELLED = "cancelled_override"
    REQUIRED_FAILED = "required_stage_failed"
    RUNNING = "stage_running"
    PENDING = "stage_pending"
    ALL_TERMINAL = "all_stages_terminal"
    NO_STAGES = "no_stages"


@dataclass(frozen=True, slots=True)
class BuildStatusDecision:
    """Derived build status and the first stage that matched the winning rule."""

    status: BuildStatus
    rule: StatusRule
    stage_name: str | None = None


def explain_build_status(
    stages: Sequence[BuildStage],
    pipeline_config: Sequence[StageConfig],
    *,
    cancelled: bool = False,
) -> BuildStatusDecision:
    """Derive the build status and report which rule and stage decided it."""

    ordered = _order_by_config(stages, pipeline_config)
    if cancelled:
        return BuildStatusDecision(status=BuildStatus.CANCELLED, rule=StatusRule.CANCELLED)
    if not ordered:
        return BuildStatusDecision(status=BuildStatus.PENDING, rule=StatusRule.NO_STAGES)

    for stage, config in ordered:
        if stage.status is StageStatus.FAILED and config.required:
            return BuildStatusDecision(
                status=BuildStatus.FAILED, rule=StatusRule.REQUIRED_FAILED, stage_name=stage.name
            )
    for stage, _ in ordered:
        if stage.status is StageStatus.RUNNING:
            return BuildStatusDecision(
                status=BuildStatus.RUNNING, rule=StatusRule.RUNNING, stage_name=stage.name
            )
    for stage, _ in ordered:
        if stage.status is StageStatus.PENDING:
            return BuildStatusDecision(
                status=BuildStatus.PENDING, rule=StatusRule.PENDING, stage_name=stage.name
            )
    return BuildStatusDecision(status=BuildStatus.SUCCESS, rule=StatusRule.ALL_TERMINAL)


def derive_build_status(
    stages: Sequence[BuildStage],
    pipeline_config: Sequence[StageConfig],
    *,
    cancelled: bool = False,
) -> BuildStatus:
    """Return the overall build status for ``stages`` under ``pipeline_config``."""

    return explain_build_status(stages, pipeline_config, cancelled=cancelled).status


def check_stage_snapshot(build: Build, layer: Layer) -> None:
    """Raise ``MissingDataError`` unless the build's stage names match the layer's enabled stages."""

    if build.layer_id != layer.id:
        raise MissingDataError(
            f"build {build.id} belongs to layer {build.layer_id}, not {layer.id}", field="layer_id"
        )
    reported = Counter(build.stage_names)
    expected = Counter(enabled_stage_names(layer.pipeline_config))
    if reported == expected:
        return
    missing = sorted((expected - reported).elements())
    unexpected = sorted((reported - expected).elements())
    details: list[str] = []
    if missing:
        details.append(f"missing {missing}")
    if unexpected:
        details.append(f"unexpected {unexpected}")
    raise MissingDataError(
        f"build {build.id} stages do not match layer {layer.id}: {'; '.join(details)}",
        field="stages",
    )


def finalize_build(build: Build, layer: Layer, *, at: datetime) -> Build:
    """Re-derive the build status and stamp ``finished_at`` when it became terminal."""

    cancelled = build.status is BuildStatus.CANCELLED
    status = derive_build_status(build.stages, layer.pipeline_config, cancelled=cancelled)
    return with_build_status(build, status, at=at)


def cancel_build(build: Build, *, at: datetime) -> Build:
    """Apply the operator cancellation override to a build that has not finished."""

    if build.status.is_terminal:
        raise InvalidTransition(build.status.value, BuildStatus.CANCELLED.value, subject="build")
    return with_build_status(build, BuildStatus.CANCELLED, at=at)


def with_build_status(build: Build, status: BuildStatus, *, at: datetime) -> Build:
    """Return ``build`` with ``status`` and timestamps consistent with it."""

    if status is build.status:
        return build
    if status.is_terminal:
        finished_at = build.finished_at if build.finished_at is not None else max(at, build.started_at)
        return replace(build, status=status, finished_at=finished_at, duration=None)
    return replace(build, status=status, finished_at=None, duration=None)


def _order_by_config(
    stages: Sequence[BuildStage], pipeline_config: Sequence[StageConfig]
) -> list[tuple[BuildStage, StageConfig]]:
    positions: dict[str, tuple[int, StageConfig]] = {}
    for index, config in enumerate(pipeline_config):
        if config.enabled and config.name not in positions:
            positions[config.name] = (index, config)

    ordered: list[tuple[int, int, BuildStage, StageConfig]] = []
    for stage_index, stage in enumerate(stages):
        located = positions.get(stage.name)
        if located is None:
            raise MissingDataError(
                f"stage {stage.name!r} is not an enabled stage of the pipeline configuration",
                field=f"stages[{stage_index}].name",
            )
        config_index, config = located
        ordered.append((config_index, stage_index, stage, config))
    ordered.sort(key=lambda item: (item[0], item[1]))
    return [(stage, config) for _, _, stage, config in ordered]


__all__ = [
    "BuildStatusDecision",
    "StatusRule",
    "cancel_build",
    "check_stage_snapshot",
    "derive_build_status",
    "explain_build_status",
    "finalize_build",
    "with_build_status",
]
