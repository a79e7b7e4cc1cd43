"""
mint-portal: typed failure taxonomy for the pipeline core.

File: src/mint_portal/domain/errors.py

Purpose
- Give every core failure mode its own exception type so callers can branch on it.

What should be included in this file
- Pipeline configuration validation failure carrying structured issues.
- Illegal stage/release status transitions.
- Data that references stages or quality fields the configuration does not know about.
- Records whose fields break the model invariants.
- Guarded release actions on builds that did not pass release criteria.

Non-functional requirements
- No IO and no logging; exceptions only carry data.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from mint_portal.domain.models import ReleaseCriteria


class PortalError(ValueError):
    """Base class for all typed pipeline-core failures."""


@dataclass(frozen=True, slots=True)
class PipelineValidationIssue:
    """Single structured pipeline configuration problem."""

    path: str
    code: str
    message: str


class PipelineValidationError(PortalError):
    """Raised when a layer's pipeline configuration is malformed."""

    def __init__(self, issues: Sequence[PipelineValidationIssue]) -> None:
        self.issues = tuple(issues)
        if not self.issues:
            rendered = "unknown validation failure"
        else:
            rendered = "\n".join(f"- {item.path}: {item.message}" for item in self.issues)
        super().__init__(f"invalid pipeline configuration:\n{rendered}")


class InvalidTransition(PortalError):
    """Raised when a status update violates its lifecycle."""

    def __init__(self, current: str, target: str, *, subject: str = "stage") -> None:
        self.current = current
        self.target = target
        self.subject = subject
        super().__init__(f"{subject}: illegal transition {current!r} -> {target!r}")


class MissingDataError(PortalError):
    """Raised when data references stages or fields the configuration cannot resolve."""

    def __init__(self, message: str, *, field: str | None = None) -> None:
        self.field = field
        self.detail = message
        super().__init__(message if field is None else f"{field}: {message}")


class ModelValidationError(PortalError):
    """Raised when a record breaks a data-model invariant (timestamps, durations, field types)."""

    def __init__(self, message: str, *, field: str) -> None:
        self.field = field
        self.detail = message
        super().__init__(f"{field}: {message}")


class ReleaseBlockedError(PortalError):
    """Raised when a release action targets a build that did not pass release criteria."""

    def __init__(self, build_id: str, criteria: ReleaseCriteria | None) -> None:
        self.build_id = build_id
        self.criteria = criteria
        if criteria is None:
            reason = "build is not on a release layer"
        else:
            failed = ", ".join(criteria.failed_checks()) or "overallPassed"
            reason = f"release criteria not met ({failed})"
        super().__init__(f"build {build_id}: {reason}")


__all__ = [
    "InvalidTransition",
    "MissingDataError",
    "ModelValidationError",
    "PipelineValidationError",
    "PipelineValidationIssue",
    "PortalError",
    "ReleaseBlockedError",
]
