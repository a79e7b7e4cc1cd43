"""
mint-portal: unit tests for domain models

File: tests/unit/domain/test_portal_models.py

Purpose
- Validate construction-time invariants and camelCase interchange of the domain snapshots.

What this test file should cover
- Build timestamp/duration consistency for terminal and non-terminal statuses.
- Layer pipeline validation on every construction and the ``custom`` layer alias.
- Unknown enum values reported as missing data with a field path.
- ``to_dict`` camelCase output that omits absent optional fields.

Functional requirements
- Offline and pure.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from mint_portal.domain.errors import (
    MissingDataError,
    ModelValidationError,
    PipelineValidationError,
    PortalError,
)
from mint_portal.domain.models import (
    Build,
    BuildStage,
    BuildStatus,
    Layer,
    LayerType,
    Project,
    ProjectStatus,
    QualityMetrics,
    QualityResult,
    QualityStatus,
    QualityTool,
    ReleaseCriteria,
    StageConfig,
    StageStatus,
)
from mint_portal.pipeline.configuration import ISSUE_DUPLICATE_NAME, ISSUE_REQUIRED_DISABLED

T0 = datetime(2024, 3, 4, 8, 0, tzinfo=timezone.utc)


def _build_payload(**overrides: object) -> dict[str, object]:
    payload: dict[str, object] = {
        "id": "b-1",
        "projectId": "p-1",
        "layerId": "l-1",
        "status": "success",
        "startedAt": "2024-03-04T08:00:00Z",
        "finishedAt": "2024-03-04T08:30:00Z",
        "stages": [{"name": "Build", "status": "success"}],
    }
    payload.update(overrides)
    return payload


def test_build_from_camel_case_payload_computes_duration() -> None:
    build = Build.from_mapping(_build_payload())

    assert build.status is BuildStatus.SUCCESS
    assert build.started_at == T0
    assert build.finished_at == T0 + timedelta(minutes=30)
    assert build.duration == 1800.0
    assert build.stage_names == ("Build",)
    assert build.stage("Build") is not None
    assert build.stage("SAM") is None


def test_terminal_build_requires_finished_at() -> None:
    with pytest.raises(ModelValidationError, match="Build.finished_at") as exc_info:
        Build.from_mapping(_build_payload(finishedAt=None))

    assert exc_info.value.field == "Build.finished_at"


def test_running_build_rejects_finished_at() -> None:
    with pytest.raises(ModelValidationError, match="must be absent"):
        Build.from_mapping(_build_payload(status="running"))


def test_model_invariant_failures_are_portal_errors() -> None:
    with pytest.raises(PortalError) as exc_info:
        Build(
            id="b-1",
            project_id="p-1",
            layer_id="l-1",
            started_at=T0,
            status=BuildStatus.RUNNING,
            finished_at=T0,
        )

    assert isinstance(exc_info.value, ModelValidationError)
    assert exc_info.value.field == "Build.finished_at"


def test_reported_duration_must_match_timestamps() -> None:
    accepted = Build.from_mapping(_build_payload(duration=1800.4))
    assert accepted.duration == 1800.0

    with pytest.raises(ModelValidationError, match="Build.duration"):
        Build.from_mapping(_build_payload(duration=60))


def test_finished_before_started_is_rejected() -> None:
    with pytest.raises(ModelValidationError, match="must not precede"):
        Build.from_mapping(_build_payload(finishedAt="2024-03-04T07:00:00Z"))


def test_unknown_build_status_is_missing_data_with_field_path() -> None:
    with pytest.raises(MissingDataError) as exc_info:
        Build.from_mapping(_build_payload(status="exploded"))

    assert exc_info.value.field == "Build.status"


def test_stage_duration_derived_from_timestamps() -> None:
    stage = BuildStage(
        name="SAM",
        status=StageStatus.SUCCESS,
        started_at=T0,
        finished_at=T0 + timedelta(seconds=90),
    )
    assert stage.duration == 90.0


def test_layer_rejects_duplicate_and_required_disabled_stages() -> None:
    with pytest.raises(PipelineValidationError) as exc_info:
        Layer(
            id="l-1",
            project_id="p-1",
            name="broken",
            pipeline_config=(
                StageConfig(name="Build", required=True),
                StageConfig(name="Build"),
                StageConfig(name="SAM", enabled=False, required=True),
            ),
        )

    codes = [issue.code for issue in exc_info.value.issues]
    assert codes == [ISSUE_DUPLICATE_NAME, ISSUE_REQUIRED_DISABLED]
    assert isinstance(exc_info.value, ValueError)


def test_layer_update_goes_through_validation() -> None:
    layer = Layer(id="l-1", project_id="p-1", name="dev", pipeline_config=(StageConfig("Build"),))

    with pytest.raises(PipelineValidationError):
        layer.with_pipeline_config((StageConfig("Build"), StageConfig("Build")))


def test_custom_layer_type_aliases_to_layer() -> None:
    layer = Layer.from_mapping({"id": "l-2", "projectId": "p-1", "name": "x", "type": "custom"})
    assert layer.type is LayerType.LAYER
    assert not layer.is_release


def test_project_archive_keeps_record_and_flips_activity() -> None:
    project = Project.from_mapping({"id": "p-1", "name": "Aurora", "tl": {"id": "u", "name": "Kim"}})
    archived = project.archive()

    assert project.is_active
    assert archived.status is ProjectStatus.ARCHIVED
    assert not archived.is_active
    assert archived.tl == project.tl


def test_quality_metrics_lookup_by_tool_value() -> None:
    metrics = QualityMetrics.from_mapping(
        {"onboardTest": {"status": "pass", "issues": 0}, "sam": {"score": 91.5}}
    )

    assert metrics.get("onboardTest") == QualityResult(status=QualityStatus.PASS, issues=0)
    assert metrics.get(QualityTool.SAM).score == 91.5  # type: ignore[union-attr]
    assert metrics.coverity is None
    assert [tool for tool, result in metrics.items() if result is not None] == [
        QualityTool.SAM,
        QualityTool.ONBOARD_TEST,
    ]


def test_release_criteria_failed_checks_names() -> None:
    criteria = ReleaseCriteria(
        coverity_passed=True,
        sam_passed=False,
        onboard_test_passed=True,
        blackduck_passed=False,
        all_stages_passed=True,
        overall_passed=False,
    )
    assert criteria.failed_checks() == ("samPassed", "blackduckPassed")


def test_to_dict_uses_camel_case_and_omits_none() -> None:
    build = Build.from_mapping(_build_payload(buildNumber=41, fwName="AURORA_041"))
    payload = build.to_dict()

    assert payload["buildNumber"] == 41
    assert payload["fwName"] == "AURORA_041"
    assert payload["startedAt"] == "2024-03-04T08:00:00Z"
    assert payload["status"] == "success"
    assert "qualityMetrics" not in payload
    assert payload["stages"] == [{"name": "Build", "status": "success"}]
    assert Build.from_mapping(payload) == build
