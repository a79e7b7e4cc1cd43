"""
mint-portal: domain layer.

File: src/mint_portal/domain/__init__.py

Purpose
- Re-export the immutable snapshots (Project, Layer, Build, ...) and the error taxonomy.

Non-functional requirements
- Domain layer stays free of IO side effects.
"""

from mint_portal.domain.errors import (
    InvalidTransition,
    MissingDataError,
    ModelValidationError,
    PipelineValidationError,
    PipelineValidationIssue,
    PortalError,
    ReleaseBlockedError,
)
from mint_portal.domain.models import (
    Build,
    BuildStage,
    BuildStatus,
    DashboardStats,
    Layer,
    LayerType,
    Project,
    ProjectStatus,
    QualityMetrics,
    QualityOverview,
    QualityResult,
    QualityStatus,
    QualityTool,
    ReleaseCriteria,
    ReleaseStatus,
    StageConfig,
    StageSettings,
    StageStatus,
    StageSummary,
)

__all__ = [
    "Build",
    "BuildStage",
    "BuildStatus",
    "DashboardStats",
    "InvalidTransition",
    "Layer",
    "LayerType",
    "MissingDataError",
    "ModelValidationError",
    "PipelineValidationError",
    "PipelineValidationIssue",
    "PortalError",
    "Project",
    "ProjectStatus",
    "QualityMetrics",
    "QualityOverview",
    "QualityResult",
    "QualityStatus",
    "QualityTool",
    "ReleaseBlockedError",
    "ReleaseCriteria",
    "ReleaseStatus",
    "StageConfig",
    "StageSettings",
    "StageStatus",
    "StageSummary",
]
