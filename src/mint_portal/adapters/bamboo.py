"""
mint-portal: CI server vocabulary normalization.

File: src/mint_portal/adapters/bamboo.py

Purpose
- Translate the CI server's build/stage states and stage names into the closed
  vocabularies the pipeline core accepts.

What should be included in this file
- State tables for stage and build statuses (case and spacing insensitive).
- Stage name resolution onto the canonical stage names.
- Fallback per-tool verdict derived from a finished stage when no tool metrics were reported.

Functional requirements
- Unknown state strings are rejected with ``MissingDataError`` instead of defaulting.
- Canonical values pass through unchanged.
"""

from __future__ import annotations

import re
from typing import Final

from mint_portal.constants import KNOWN_STAGE_NAMES, STAGE_BUILD, STAGE_COVERITY, STAGE_SAM
from mint_portal.domain.errors import MissingDataError
from mint_portal.domain.models import (
    BuildStage,
    BuildStatus,
    QualityResult,
    QualityStatus,
    StageStatus,
)

_SPACING = re.compile(r"[\s_-]+")
_LETTERS_ONLY = re.compile(r"[^a-z]+")
_ALNUM_ONLY = re.compile(r"[^a-z0-9]+")

_STAGE_STATES: Final[dict[str, StageStatus]] = {
    "successful": StageStatus.SUCCESS,
    "success": StageStatus.SUCCESS,
    "failed": StageStatus.FAILED,
    "failure": StageStatus.FAILED,
    "in progress": StageStatus.RUNNING,
    "inprogress": StageStatus.RUNNING,
    "building": StageStatus.RUNNING,
    "running": StageStatus.RUNNING,
    "queued": StageStatus.PENDING,
    "pending": StageStatus.PENDING,
    "notbuilt": StageStatus.PENDING,
    "not built": StageStatus.PENDING,
    "skipped": StageStatus.SKIPPED,
}

_BUILD_STATES: Final[dict[str, BuildStatus]] = {
    "successful": BuildStatus.SUCCESS,
    "success": BuildStatus.SUCCESS,
    "failed": BuildStatus.FAILED,
    "failure": BuildStatus.FAILED,
    "in progress": BuildStatus.RUNNING,
    "inprogress": BuildStatus.RUNNING,
    "building": BuildStatus.RUNNING,
    "running": BuildStatus.RUNNING,
    "queued": BuildStatus.PENDING,
    "pending": BuildStatus.PENDING,
    "notbuilt": BuildStatus.PENDING,
    "not built": BuildStatus.PENDING,
    "cancelled": BuildStatus.CANCELLED,
    "canceled": BuildStatus.CANCELLED,
    "stopped": BuildStatus.CANCELLED,
}

# Substring hints checked in order; "build" wins over "cov" for e.g. "Coverity Build".
_STAGE_NAME_HINTS: Final[tuple[tuple[tuple[str, ...], str], ...]] = (
    (("build", "compile"), STAGE_BUILD),
    (("sam", "static"), STAGE_SAM),
    (("coverity", "cov"), STAGE_COVERITY),
)

_STAGE_RESULT_VERDICTS: Final[dict[StageStatus, QualityStatus]] = {
    StageStatus.SUCCESS: QualityStatus.PASS,
    StageStatus.FAILED: QualityStatus.FAIL,
    StageStatus.SKIPPED: QualityStatus.SKIPPED,
}

_CANONICAL_BY_KEY: Final[dict[str, str]] = {
    _ALNUM_ONLY.sub("", name.lower()): name for name in KNOWN_STAGE_NAMES
}


def _state_key(value: str) -> str:
    return _SPACING.sub(" ", value.strip().lower())


def normalize_stage_status(value: StageStatus | str | None) -> StageStatus:
    """Map a CI or interchange stage state onto ``StageStatus``; ``None`` is pending."""

    if isinstance(value, StageStatus):
        return value
    if value is None:
        return StageStatus.PENDING
    located = _STAGE_STATES.get(_state_key(value))
    if located is None:
        raise MissingDataError(f"unknown stage status {value!r}", field="status")
    return located


def normalize_build_status(value: BuildStatus | str | None) -> BuildStatus:
    """Map a CI or interchange build state onto ``BuildStatus``; ``None`` is pending."""

    if isinstance(value, BuildStatus):
        return value
    if value is None:
        return BuildStatus.PENDING
    located = _BUILD_STATES.get(_state_key(value))
    if located is None:
        raise MissingDataError(f"unknown build status {value!r}", field="status")
    return located


def normalize_stage_name(value: str) -> str:
    """Resolve a CI stage name to its canonical stage name.

    Exact (case and punctuation insensitive) matches against the known stage
    names win; otherwise the build/static-analysis/defect-scan hints apply.
    """

    key = _ALNUM_ONLY.sub("", value.strip().lower())
    canonical = _CANONICAL_BY_KEY.get(key)
    if canonical is not None:
        return canonical

    letters = _LETTERS_ONLY.sub("", value.lower())
    for hints, name in _STAGE_NAME_HINTS:
        if any(hint in letters for hint in hints):
            return name
    raise MissingDataError(f"unrecognized stage name {value!r}", field="name")


def stage_quality_result(stage: BuildStage) -> QualityResult:
    """Verdict implied by a finished stage when its tool reported no metrics."""

    status = _STAGE_RESULT_VERDICTS.get(stage.status, QualityStatus.PENDING)
    message = stage.summary.message if stage.summary is not None else None
    return QualityResult(status=status, details=message)


__all__ = [
    "normalize_build_status",
    "normalize_stage_name",
    "normalize_stage_status",
    "stage_quality_result",
]
