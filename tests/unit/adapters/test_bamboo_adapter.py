"""
mint-portal: unit tests for CI vocabulary normalization

File: tests/unit/adapters/test_bamboo_adapter.py

Purpose
- Validate mapping of Bamboo-style states and stage names onto domain enums and canonical names.

What this test file should cover
- Build and stage state aliases, ``None`` as pending, unknown values as missing data.
- Canonical stage names and hint-based resolution.
- Payload mapping with legacy layer flags and normalized stage statuses.
"""

from __future__ import annotations

import pytest

from mint_portal.adapters.bamboo import (
    normalize_build_status,
    normalize_stage_name,
    normalize_stage_status,
    stage_quality_result,
)
from mint_portal.adapters.payloads import build_from_mapping, layer_from_mapping
from mint_portal.domain.errors import MissingDataError
from mint_portal.domain.models import (
    BuildStage,
    BuildStatus,
    QualityStatus,
    StageStatus,
    StageSummary,
)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("Successful", BuildStatus.SUCCESS),
        ("FAILED", BuildStatus.FAILED),
        ("In Progress", BuildStatus.RUNNING),
        ("in_progress", BuildStatus.RUNNING),
        ("Queued", BuildStatus.PENDING),
        ("NotBuilt", BuildStatus.PENDING),
        ("canceled", BuildStatus.CANCELLED),
        (None, BuildStatus.PENDING),
        (BuildStatus.FAILED, BuildStatus.FAILED),
    ],
)
def test_normalize_build_status(raw: str | None, expected: BuildStatus) -> None:
    assert normalize_build_status(raw) is expected


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("Successful", StageStatus.SUCCESS),
        ("failure", StageStatus.FAILED),
        ("building", StageStatus.RUNNING),
        ("Skipped", StageStatus.SKIPPED),
        (None, StageStatus.PENDING),
    ],
)
def test_normalize_stage_status(raw: str | None, expected: StageStatus) -> None:
    assert normalize_stage_status(raw) is expected


def test_unknown_states_are_missing_data() -> None:
    with pytest.raises(MissingDataError) as build_error:
        normalize_build_status("exploded")
    with pytest.raises(MissingDataError):
        normalize_stage_status("cancelled")

    assert build_error.value.field == "status"


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("onboard_test", "OnBoard Test"),
        ("WARNING-COUNT", "Warning Count"),
        ("Compile Firmware", "Build"),
        ("Coverity Build", "Build"),
        ("Static Analysis", "SAM"),
        ("cov-scan", "Coverity"),
        ("dobee", "DoBEE"),
    ],
)
def test_normalize_stage_name(raw: str, expected: str) -> None:
    assert normalize_stage_name(raw) == expected


def test_unrecognized_stage_name_is_missing_data() -> None:
    with pytest.raises(MissingDataError) as exc_info:
        normalize_stage_name("Deploy to OTA")
    assert exc_info.value.field == "name"


def test_stage_quality_result_follows_stage_outcome() -> None:
    failed = BuildStage("SAM", StageStatus.FAILED, summary=StageSummary(message="gate failed"))

    assert stage_quality_result(failed).status is QualityStatus.FAIL
    assert stage_quality_result(failed).details == "gate failed"
    assert stage_quality_result(BuildStage("SAM", "running")).status is QualityStatus.PENDING


def test_layer_without_stage_list_uses_defaults_and_legacy_flags() -> None:
    layer = layer_from_mapping(
        {
            "id": "l-1",
            "projectId": "p-1",
            "name": "release",
            "type": "release",
            "samEnabled": False,
        }
    )
    sam = next(stage for stage in layer.pipeline_config if stage.name == "SAM")
    build = next(stage for stage in layer.pipeline_config if stage.name == "Build")

    assert not sam.enabled
    assert not sam.required
    assert build.required


def test_legacy_flag_must_be_boolean() -> None:
    with pytest.raises(MissingDataError) as exc_info:
        layer_from_mapping({"id": "l-1", "projectId": "p-1", "name": "x", "buildEnabled": "yes"})
    assert exc_info.value.field == "build_enabled"


def test_build_payload_statuses_are_normalized_without_mutating_input() -> None:
    payload = {
        "id": "b-1",
        "projectId": "p-1",
        "layerId": "l-1",
        "status": "In Progress",
        "startedAt": "2024-03-04T08:00:00Z",
        "stages": [
            {"name": "compile", "status": "Successful"},
            {"name": "static analysis", "status": "Building"},
        ],
    }
    build = build_from_mapping(payload, normalize_stage_names=True)

    assert build.status is BuildStatus.RUNNING
    assert build.stage_names == ("Build", "SAM")
    assert build.stages[1].status is StageStatus.RUNNING
    assert payload["status"] == "In Progress"
    assert payload["stages"][0] == {"name": "compile", "status": "Successful"}  # type: ignore[index]


def test_bad_stage_status_reports_stage_path() -> None:
    payload = {
        "id": "b-1",
        "projectId": "p-1",
        "layerId": "l-1",
        "startedAt": "2024-03-04T08:00:00Z",
        "stages": [{"name": "Build", "status": "success"}, {"name": "SAM", "status": "???"}],
    }
    with pytest.raises(MissingDataError) as exc_info:
        build_from_mapping(payload)
    assert exc_info.value.field == "stages[1].status"
