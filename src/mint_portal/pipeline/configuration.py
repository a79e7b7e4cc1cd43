"""
mint-portal: pipeline configuration validation.

File: src/mint_portal/pipeline/configuration.py

Purpose
- Validate the ordered stage list a layer carries and answer lookups against it.

What should be included in this file
- Structured validation (issues with path/code/message) plus a raising variant.
- Enabled/required stage views and tool-to-stage resolution.
- Default stage list for newly created layers.

Functional requirements
- Reject duplicate stage names (case-sensitive).
- Reject any stage that is required but disabled.

Non-functional requirements
- Pure; never mutates or auto-corrects the configuration.
"""

from __future__ import annotations

import re
from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Final

from mint_portal.constants import (
    DEFAULT_RELEASE_REQUIRED_STAGES,
    KNOWN_STAGE_NAMES,
    TOOL_STAGE_NAMES,
)
from mint_portal.domain.errors import PipelineValidationError, PipelineValidationIssue
from mint_portal.domain.models import LayerType, QualityTool, StageConfig

ISSUE_DUPLICATE_NAME: Final[str] = "duplicate_stage_name"
ISSUE_REQUIRED_DISABLED: Final[str] = "required_stage_disabled"
ISSUE_INVALID_ENTRY: Final[str] = "invalid_stage_entry"

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


@dataclass(frozen=True, slots=True)
class PipelineValidationResult:
    """Validation outcome for one pipeline configuration."""

    issues: tuple[PipelineValidationIssue, ...]

    @property
    def is_valid(self) -> bool:
        return not self.issues


def validate_pipeline_config(stages: Iterable[StageConfig]) -> PipelineValidationResult:
    """Validate stage configs and return structured issues with stable ordering."""

    issues: list[PipelineValidationIssue] = []
    materialized = list(stages)

    seen: Counter[str] = Counter()
    for index, stage in enumerate(materialized):
        path = f"pipeline_config[{index}]"
        if not isinstance(stage, StageConfig):
            issues.append(
                PipelineValidationIssue(
                    path=path,
                    code=ISSUE_INVALID_ENTRY,
                    message=f"expected StageConfig, got {type(stage).__name__}",
                )
            )
            continue

        seen[stage.name] += 1
        if seen[stage.name] == 2:
            issues.append(
                PipelineValidationIssue(
                    path=f"{path}.name",
                    code=ISSUE_DUPLICATE_NAME,
                    message=f"stage name {stage.name!r} is used more than once",
                )
            )

        if stage.required and not stage.enabled:
            issues.append(
                PipelineValidationIssue(
                    path=f"{path}.required",
                    code=ISSUE_REQUIRED_DISABLED,
                    message=f"stage {stage.name!r} is required but disabled",
                )
            )

    return PipelineValidationResult(issues=tuple(issues))


def assert_valid_pipeline_config(stages: Iterable[StageConfig]) -> tuple[StageConfig, ...]:
    """Validate stage configs and raise ``PipelineValidationError`` on failure."""

    materialized = tuple(stages)
    result = validate_pipeline_config(materialized)
    if not result.is_valid:
        raise PipelineValidationError(result.issues)
    return materialized


def enabled_stages(config: Sequence[StageConfig]) -> tuple[StageConfig, ...]:
    return tuple(stage for stage in config if stage.enabled)


def enabled_stage_names(config: Sequence[StageConfig]) -> tuple[str, ...]:
    return tuple(stage.name for stage in config if stage.enabled)


def required_stage_names(config: Sequence[StageConfig]) -> tuple[str, ...]:
    return tuple(stage.name for stage in config if stage.enabled and stage.required)


def stage_key(name: str) -> str:
    """Return a case and punctuation insensitive lookup key for a stage or tool name."""

    return _NON_ALNUM.sub("", name.strip().lower())


def find_stage_for_tool(
    config: Sequence[StageConfig], tool: QualityTool | str
) -> StageConfig | None:
    """Return the first configured stage that runs ``tool``, in configuration order."""

    resolved = QualityTool(tool)
    wanted = {stage_key(resolved.value), stage_key(TOOL_STAGE_NAMES[resolved.value])}
    for stage in config:
        if stage_key(stage.name) in wanted:
            return stage
    return None


def default_pipeline_config(layer_type: LayerType | str) -> tuple[StageConfig, ...]:
    """Return the stage list used when a layer is created without one.

    Release layers require the build, static analysis and defect scan stages;
    other layers start with every known stage enabled and optional.
    """

    resolved = LayerType(layer_type)
    required = set(DEFAULT_RELEASE_REQUIRED_STAGES) if resolved is LayerType.RELEASE else set()
    return tuple(
        StageConfig(name=name, enabled=True, required=name in required)
        for name in KNOWN_STAGE_NAMES
    )


__all__ = [
    "ISSUE_DUPLICATE_NAME",
    "ISSUE_INVALID_ENTRY",
    "ISSUE_REQUIRED_DISABLED",
    "PipelineValidationResult",
    "assert_valid_pipeline_config",
    "default_pipeline_config",
    "enabled_stage_names",
    "enabled_stages",
    "find_stage_for_tool",
    "required_stage_names",
    "stage_key",
    "validate_pipeline_config",
]
