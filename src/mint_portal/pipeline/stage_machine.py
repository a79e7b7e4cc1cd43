"""
mint-portal: stage result state machine.

File: src/mint_portal/pipeline/stage_machine.py

Purpose
- Govern the lifecycle of one build stage: pending -> running -> success|failed|skipped.

What should be included in this file
- Declarative transition table and a checked ``transition`` function.
- Applying a single stage update to a build snapshot, re-deriving its status.

Functional requirements
- Terminal states are final; illegal transitions raise ``InvalidTransition``.
- ``skipped`` is reachable from ``pending`` and from ``running``.
- Writing the current state again is a no-op.

Non-functional requirements
- Pure; returns new snapshots and never mutates its inputs.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Final

from mint_portal.domain.errors import InvalidTransition, MissingDataError
from mint_portal.domain.models import Build, BuildStatus, Layer, StageStatus, StageSummary
from mint_portal.pipeline.status import finalize_build

STAGE_TRANSITIONS: Final[dict[StageStatus, frozenset[StageStatus]]] = {
    StageStatus.PENDING: frozenset({StageStatus.RUNNING, StageStatus.SKIPPED}),
    StageStatus.RUNNING: frozenset(
        {StageStatus.SUCCESS, StageStatus.FAILED, StageStatus.SKIPPED}
    ),
    StageStatus.SUCCESS: frozenset(),
    StageStatus.FAILED: frozenset(),
    StageStatus.SKIPPED: frozenset(),
}


def can_transition(current: StageStatus | str, target: StageStatus | str) -> bool:
    """Return whether ``current -> target`` is allowed (same-state writes included)."""

    source = StageStatus(current)
    destination = StageStatus(target)
    return source is destination or destination in STAGE_TRANSITIONS[source]


def transition(current: StageStatus | str, target: StageStatus | str) -> StageStatus:
    """Return the new stage status or raise ``InvalidTransition``."""

    source = StageStatus(current)
    destination = StageStatus(target)
    if not can_transition(source, destination):
        raise InvalidTransition(source.value, destination.value, subject="stage")
    return destination


def apply_stage_update(
    build: Build,
    layer: Layer,
    stage_name: str,
    status: StageStatus | str,
    *,
    at: datetime,
    summary: StageSummary | None = None,
) -> Build:
    """Apply one stage status update and return the build with its status re-derived."""

    if build.status is BuildStatus.CANCELLED:
        raise InvalidTransition(build.status.value, str(status), subject=f"build {build.id}")

    index = next(
        (position for position, stage in enumerate(build.stages) if stage.name == stage_name),
        None,
    )
    if index is None:
        raise MissingDataError(
            f"build {build.id} has no stage named {stage_name!r}", field="stage_name"
        )

    current = build.stages[index]
    target = transition(current.status, status)
    if target is current.status and summary is None:
        return build

    started_at = current.started_at
    finished_at = current.finished_at
    if target is StageStatus.RUNNING and started_at is None:
        started_at = at
    if target.is_terminal and finished_at is None:
        finished_at = at if started_at is None else max(at, started_at)

    updated = replace(
        current,
        status=target,
        started_at=started_at,
        finished_at=finished_at,
        duration=None,
        summary=summary if summary is not None else current.summary,
    )
    stages = build.stages[:index] + (updated,) + build.stages[index + 1 :]
    return finalize_build(replace(build, stages=stages), layer, at=at)


__all__ = ["STAGE_TRANSITIONS", "apply_stage_update", "can_transition", "transition"]
