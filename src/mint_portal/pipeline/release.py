"""
mint-portal: release criteria evaluation and release workflow.

File: src/mint_portal/pipeline/release.py

Purpose
- Decide whether a build on a release layer may be promoted, and guard the release action.

What should be included in this file
- Per-gating-tool verdicts, required-stage success check, and the combined verdict.
- Release status lifecycle (available, pending approval, approved, rejected, released).

Functional requirements
- Optional (non-required) stages and tools never block promotion.
- Disabled stages are ignored entirely, including leftover results.
- Non-release layers yield no criteria.
- Releasing a build whose combined verdict is false is rejected.

Non-functional requirements
- Pure; the only inputs are the build and layer snapshots.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Final

from mint_portal.domain.errors import InvalidTransition, MissingDataError, ReleaseBlockedError
from mint_portal.domain.models import (
    Build,
    BuildStatus,
    Layer,
    QualityStatus,
    QualityTool,
    ReleaseCriteria,
    ReleaseStatus,
    StageStatus,
)
from mint_portal.pipeline.configuration import find_stage_for_tool

RELEASE_TRANSITIONS: Final[dict[ReleaseStatus, frozenset[ReleaseStatus]]] = {
    ReleaseStatus.AVAILABLE: frozenset({ReleaseStatus.PENDING_APPROVAL, ReleaseStatus.RELEASED}),
    ReleaseStatus.PENDING_APPROVAL: frozenset({ReleaseStatus.APPROVED, ReleaseStatus.REJECTED}),
    ReleaseStatus.APPROVED: frozenset({ReleaseStatus.RELEASED}),
    ReleaseStatus.REJECTED: frozenset({ReleaseStatus.PENDING_APPROVAL}),
    ReleaseStatus.RELEASED: frozenset(),
}


def evaluate_release_criteria(build: Build, layer: Layer) -> ReleaseCriteria | None:
    """Return the release verdict for ``build``, or ``None`` for non-release layers."""

    if not layer.is_release:
        return None
    if build.layer_id != layer.id:
        raise MissingDataError(
            f"build {build.id} belongs to layer {build.layer_id}, not {layer.id}", field="layer_id"
        )

    configured = {stage.name: stage for stage in layer.pipeline_config}
    for index, stage in enumerate(build.stages):
        if stage.name not in configured:
            raise MissingDataError(
                f"stage {stage.name!r} is not part of layer {layer.id}",
                field=f"stages[{index}].name",
            )

    all_stages_passed = True
    for config in layer.pipeline_config:
        if not (config.enabled and config.required):
            continue
        result = build.stage(config.name)
        if result is None or result.status is not StageStatus.SUCCESS:
            all_stages_passed = False
            break

    coverity = _tool_passed(build, layer, QualityTool.COVERITY)
    sam = _tool_passed(build, layer, QualityTool.SAM)
    onboard_test = _tool_passed(build, layer, QualityTool.ONBOARD_TEST)
    blackduck = _tool_passed(build, layer, QualityTool.BLACKDUCK)

    return ReleaseCriteria(
        coverity_passed=coverity,
        sam_passed=sam,
        onboard_test_passed=onboard_test,
        blackduck_passed=blackduck,
        all_stages_passed=all_stages_passed,
        overall_passed=all_stages_passed and coverity and sam and onboard_test and blackduck,
    )


def initial_release_status(build: Build, criteria: ReleaseCriteria | None) -> ReleaseStatus | None:
    """Release status assigned when a release-layer build finishes."""

    if criteria is None or not build.status.is_terminal:
        return None
    if build.status is BuildStatus.SUCCESS and criteria.overall_passed:
        return ReleaseStatus.AVAILABLE
    return ReleaseStatus.PENDING_APPROVAL


def attach_release_criteria(build: Build, layer: Layer) -> Build:
    """Return ``build`` carrying freshly derived criteria and, once finished, a release status."""

    criteria = evaluate_release_criteria(build, layer)
    release_status = build.release_status
    if release_status is None:
        release_status = initial_release_status(build, criteria)
    if criteria == build.release_criteria and release_status == build.release_status:
        return build
    return replace(build, release_criteria=criteria, release_status=release_status)


def can_transition_release(current: ReleaseStatus | str, target: ReleaseStatus | str) -> bool:
    source = ReleaseStatus(current)
    destination = ReleaseStatus(target)
    return source is destination or destination in RELEASE_TRANSITIONS[source]


def transition_release_status(
    current: ReleaseStatus | str, target: ReleaseStatus | str
) -> ReleaseStatus:
    """Return the new release status or raise ``InvalidTransition``."""

    source = ReleaseStatus(current)
    destination = ReleaseStatus(target)
    if not can_transition_release(source, destination):
        raise InvalidTransition(source.value, destination.value, subject="release")
    return destination


def request_release(build: Build, layer: Layer) -> Build:
    """Mark ``build`` released, rejecting builds that did not pass release criteria."""

    criteria = evaluate_release_criteria(build, layer)
    if criteria is None or not criteria.overall_passed:
        raise ReleaseBlockedError(build.id, criteria)

    current = build.release_status or initial_release_status(build, criteria)
    if current is None:
        raise InvalidTransition(build.status.value, ReleaseStatus.RELEASED.value, subject="release")
    released = transition_release_status(current, ReleaseStatus.RELEASED)
    return replace(build, release_criteria=criteria, release_status=released)


def _tool_passed(build: Build, layer: Layer, tool: QualityTool) -> bool:
    stage = find_stage_for_tool(layer.pipeline_config, tool)
    if stage is None or not stage.enabled or not stage.required:
        return True
    if build.quality_metrics is None:
        return False
    result = build.quality_metrics.get(tool)
    if result is None:
        raise MissingDataError(
            f"build {build.id} has quality metrics without a {tool.value} result",
            field=f"quality_metrics.{tool.value}",
        )
    return result.status is QualityStatus.PASS


__all__ = [
    "RELEASE_TRANSITIONS",
    "attach_release_criteria",
    "can_transition_release",
    "evaluate_release_criteria",
    "initial_release_status",
    "request_release",
    "transition_release_status",
]
