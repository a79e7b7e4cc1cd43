"""Pipeline core: configuration, stage lifecycle, build status, quality, release, dashboard."""

from mint_portal.pipeline.configuration import (
    PipelineValidationResult,
    assert_valid_pipeline_config,
    default_pipeline_config,
    enabled_stage_names,
    required_stage_names,
    validate_pipeline_config,
)
from mint_portal.pipeline.dashboard import (
    StageDurationStats,
    compute_dashboard_stats,
    compute_dashboard_stats_by_project,
    compute_stage_duration_stats,
    count_builds_by_status,
    filter_builds,
    filter_projects,
)
from mint_portal.pipeline.quality import (
    QualityThresholds,
    evaluate_quality_metrics,
    evaluate_tool,
)
from mint_portal.pipeline.release import (
    attach_release_criteria,
    evaluate_release_criteria,
    initial_release_status,
    request_release,
    transition_release_status,
)
from mint_portal.pipeline.stage_machine import apply_stage_update, can_transition, transition
from mint_portal.pipeline.status import (
    BuildStatusDecision,
    cancel_build,
    check_stage_snapshot,
    derive_build_status,
    explain_build_status,
    finalize_build,
)

__all__ = [
    "BuildStatusDecision",
    "PipelineValidationResult",
    "QualityThresholds",
    "StageDurationStats",
    "apply_stage_update",
    "assert_valid_pipeline_config",
    "attach_release_criteria",
    "can_transition",
    "cancel_build",
    "check_stage_snapshot",
    "compute_dashboard_stats",
    "compute_dashboard_stats_by_project",
    "compute_stage_duration_stats",
    "count_builds_by_status",
    "default_pipeline_config",
    "derive_build_status",
    "enabled_stage_names",
    "evaluate_quality_metrics",
    "evaluate_release_criteria",
    "evaluate_tool",
    "explain_build_status",
    "filter_builds",
    "filter_projects",
    "finalize_build",
    "initial_release_status",
    "request_release",
    "required_stage_names",
    "transition",
    "transition_release_status",
    "validate_pipeline_config",
]
