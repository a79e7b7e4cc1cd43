"""
mint-portal: quality metrics aggregation.

File: src/mint_portal/pipeline/quality.py

Purpose
- Reduce raw per-tool results into pass/warning/fail verdicts using per-stage thresholds.

What should be included in this file
- One table entry per tool naming its metric, comparison direction, threshold source and
  blocking rule.
- Configurable fallback thresholds for stages that carry no tool-specific settings.

Functional requirements
- At or better than threshold -> pass; worse and non-blocking -> warning; worse and
  blocking -> fail.
- No raw result -> pending; stage disabled or absent from the layer -> skipped.

Non-functional requirements
- Table-driven: adding a tool means adding a policy entry, not a branch.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, replace
from enum import Enum
from typing import Final

from mint_portal.constants import (
    DEFAULT_BLACKDUCK_MAX_VIOLATIONS,
    DEFAULT_CODING_RULE_MAX_VIOLATIONS,
    DEFAULT_COVERITY_MAX_DEFECTS,
    DEFAULT_DOBEE_MIN_SCORE,
    DEFAULT_ONBOARD_MAX_FAILED_TESTS,
    DEFAULT_SAM_MIN_SCORE,
)
from mint_portal.domain.errors import MissingDataError
from mint_portal.domain.models import (
    QualityMetrics,
    QualityResult,
    QualityStatus,
    QualityTool,
    StageConfig,
    StageSettings,
)
from mint_portal.pipeline.configuration import find_stage_for_tool, stage_key

RawResults = QualityMetrics | Mapping[QualityTool | str, QualityResult | Mapping[str, object]]


class MetricKind(str, Enum):
    """Raw metric a tool is judged on."""

    ISSUES = "issues"
    SCORE = "score"


@dataclass(frozen=True, slots=True)
class QualityThresholds:
    """Fallback thresholds used when a stage has no tool-specific setting."""

    coverity_max_defects: float = DEFAULT_COVERITY_MAX_DEFECTS
    sam_min_score: float = DEFAULT_SAM_MIN_SCORE
    onboard_test_max_failed: float = DEFAULT_ONBOARD_MAX_FAILED_TESTS
    blackduck_max_violations: float = DEFAULT_BLACKDUCK_MAX_VIOLATIONS
    coding_rule_max_violations: float = DEFAULT_CODING_RULE_MAX_VIOLATIONS
    dobee_min_score: float = DEFAULT_DOBEE_MIN_SCORE

    def default_for(self, tool: QualityTool) -> float:
        return {
            QualityTool.COVERITY: self.coverity_max_defects,
            QualityTool.SAM: self.sam_min_score,
            QualityTool.ONBOARD_TEST: self.onboard_test_max_failed,
            QualityTool.BLACKDUCK: self.blackduck_max_violations,
            QualityTool.CODING_RULE_CHECK: self.coding_rule_max_violations,
            QualityTool.DOBEE: self.dobee_min_score,
        }[tool]

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object]) -> QualityThresholds:
        """Build thresholds from a ``[quality]`` config section; missing keys keep defaults."""

        defaults = cls()
        values: dict[str, float] = {}
        for name in cls.__dataclass_fields__:
            raw = payload.get(name)
            if raw is None:
                values[name] = getattr(defaults, name)
                continue
            if isinstance(raw, bool) or not isinstance(raw, (int, float)):
                raise ValueError(f"quality.{name}: expected number, got {type(raw).__name__}")
            values[name] = float(raw)
        return cls(**values)


@dataclass(frozen=True, slots=True)
class ToolPolicy:
    """How one quality tool's raw metric is compared and whether a miss blocks."""

    tool: QualityTool
    metric: MetricKind
    threshold: Callable[[StageSettings], float | None]
    explicit_blocking: Callable[[StageSettings], bool | None]

    @property
    def higher_is_better(self) -> bool:
        return self.metric is MetricKind.SCORE

    def is_blocking(self, stage: StageConfig) -> bool:
        explicit = self.explicit_blocking(stage.settings)
        return stage.required if explicit is None else explicit

    def meets(self, value: float, threshold: float) -> bool:
        return value >= threshold if self.higher_is_better else value <= threshold


def _coverity_threshold(settings: StageSettings) -> float | None:
    if settings.coverity is None or settings.coverity.threshold is None:
        return None
    return float(settings.coverity.threshold)


def _coverity_blocking(settings: StageSettings) -> bool | None:
    if settings.coverity is not None and settings.coverity.rule_set == "strict":
        return True
    return None


def _sam_threshold(settings: StageSettings) -> float | None:
    return None if settings.sam is None else settings.sam.min_score


def _sam_blocking(settings: StageSettings) -> bool | None:
    if settings.sam is not None and settings.sam.level == "strict":
        return True
    return None


def _onboard_threshold(settings: StageSettings) -> float | None:
    if settings.onboard_test is None or settings.onboard_test.max_failed_tests is None:
        return None
    return float(settings.onboard_test.max_failed_tests)


def _blackduck_threshold(settings: StageSettings) -> float | None:
    if settings.blackduck is None or settings.blackduck.max_violations is None:
        return None
    return float(settings.blackduck.max_violations)


def _coding_rule_threshold(settings: StageSettings) -> float | None:
    if settings.coding_rule_check is not None and settings.coding_rule_check.max_violations is not None:
        return float(settings.coding_rule_check.max_violations)
    if settings.warning_count is not None:
        return float(settings.warning_count.max_warnings)
    return None


def _coding_rule_blocking(settings: StageSettings) -> bool | None:
    if settings.warning_count is not None:
        return settings.warning_count.treat_as_error
    if settings.coding_rule_check is not None:
        return settings.coding_rule_check.severity == "error"
    return None


def _dobee_threshold(settings: StageSettings) -> float | None:
    return None if settings.dobee is None else settings.dobee.min_score


def _required_only(_: StageSettings) -> bool | None:
    return None


TOOL_POLICIES: Final[dict[QualityTool, ToolPolicy]] = {
    QualityTool.COVERITY: ToolPolicy(
        QualityTool.COVERITY, MetricKind.ISSUES, _coverity_threshold, _coverity_blocking
    ),
    QualityTool.SAM: ToolPolicy(QualityTool.SAM, MetricKind.SCORE, _sam_threshold, _sam_blocking),
    QualityTool.ONBOARD_TEST: ToolPolicy(
        QualityTool.ONBOARD_TEST, MetricKind.ISSUES, _onboard_threshold, _required_only
    ),
    QualityTool.BLACKDUCK: ToolPolicy(
        QualityTool.BLACKDUCK, MetricKind.ISSUES, _blackduck_threshold, _required_only
    ),
    QualityTool.CODING_RULE_CHECK: ToolPolicy(
        QualityTool.CODING_RULE_CHECK,
        MetricKind.ISSUES,
        _coding_rule_threshold,
        _coding_rule_blocking,
    ),
    QualityTool.DOBEE: ToolPolicy(
        QualityTool.DOBEE, MetricKind.SCORE, _dobee_threshold, _required_only
    ),
}


def evaluate_tool(
    tool: QualityTool | str,
    raw: QualityResult | None,
    pipeline_config: Sequence[StageConfig],
    *,
    thresholds: QualityThresholds | None = None,
) -> QualityResult:
    """Return the verdict for one tool's raw result under the layer's configuration."""

    resolved = _coerce_tool(tool)
    policy = TOOL_POLICIES[resolved]
    stage = find_stage_for_tool(pipeline_config, resolved)
    if stage is None or not stage.enabled:
        return QualityResult(status=QualityStatus.SKIPPED, details="stage not enabled for layer")
    if raw is None:
        return QualityResult(status=QualityStatus.PENDING)

    value = raw.issues if policy.metric is MetricKind.ISSUES else raw.score
    if value is None:
        return raw

    limits = thresholds or QualityThresholds()
    configured = policy.threshold(stage.settings)
    threshold = limits.default_for(resolved) if configured is None else configured

    if policy.meets(float(value), threshold):
        status = QualityStatus.PASS
    elif policy.is_blocking(stage):
        status = QualityStatus.FAIL
    else:
        status = QualityStatus.WARNING

    comparator = ">=" if policy.higher_is_better else "<="
    details = raw.details or f"{policy.metric.value} {value:g} (required {comparator} {threshold:g})"
    return replace(raw, status=status, details=details)


def evaluate_quality_metrics(
    raw_results: RawResults,
    pipeline_config: Sequence[StageConfig],
    *,
    thresholds: QualityThresholds | None = None,
) -> QualityMetrics:
    """Evaluate every quality tool and return a complete ``QualityMetrics`` snapshot."""

    indexed = _index_raw_results(raw_results)
    return QualityMetrics.from_results(
        {
            tool: evaluate_tool(tool, indexed.get(tool), pipeline_config, thresholds=thresholds)
            for tool in QualityTool
        }
    )


def _index_raw_results(raw_results: RawResults) -> dict[QualityTool, QualityResult]:
    if isinstance(raw_results, QualityMetrics):
        return {tool: result for tool, result in raw_results.items() if result is not None}

    indexed: dict[QualityTool, QualityResult] = {}
    for key, value in raw_results.items():
        tool = _coerce_tool(key)
        if isinstance(value, QualityResult):
            indexed[tool] = value
        elif isinstance(value, Mapping):
            indexed[tool] = QualityResult.from_mapping(value)
        else:
            raise MissingDataError(
                f"expected QualityResult or mapping, got {type(value).__name__}",
                field=f"raw_results.{tool.value}",
            )
    return indexed


_TOOLS_BY_KEY: Final[dict[str, QualityTool]] = {stage_key(tool.value): tool for tool in QualityTool}


def _coerce_tool(value: QualityTool | str) -> QualityTool:
    if isinstance(value, QualityTool):
        return value
    if isinstance(value, str):
        located = _TOOLS_BY_KEY.get(stage_key(value))
        if located is not None:
            return located
    raise MissingDataError(f"unknown quality tool {value!r}", field="tool")


__all__ = [
    "MetricKind",
    "QualityThresholds",
    "RawResults",
    "TOOL_POLICIES",
    "ToolPolicy",
    "evaluate_quality_metrics",
    "evaluate_tool",
]
