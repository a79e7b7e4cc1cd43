"""
mint-portal: service flow integration contracts

File: tests/integration/test_service_flow.py

Purpose
- Exercise config loading, snapshot loading, the service facade and structured logging together.
- Verify that profile thresholds change release verdicts and that logs carry build correlation.
"""

from __future__ import annotations

import json
from collections.abc import Iterator
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from mint_portal.adapters.snapshot import PortalSnapshot, SnapshotLoadError, load_snapshot
from mint_portal.config import load_config
from mint_portal.domain.errors import MissingDataError, ReleaseBlockedError
from mint_portal.domain.models import (
    Build,
    BuildStage,
    BuildStatus,
    Layer,
    QualityMetrics,
    QualityResult,
    QualityStatus,
    ReleaseStatus,
    StageConfig,
)
from mint_portal.observability.logging import (
    get_active_logging_handle,
    setup_logging,
    shutdown_logging,
)
from mint_portal.service import PortalService

PROJECT_ROOT = Path(__file__).resolve().parents[2]
SAMPLE_SNAPSHOT = PROJECT_ROOT / "samples" / "snapshot.yaml"

pytestmark = pytest.mark.integration


@pytest.fixture(autouse=True)
def _cleanup_logging() -> Iterator[None]:
    yield
    shutdown_logging()


def _write(path: Path, contents: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(contents, encoding="utf-8")
    return path


def _config(tmp_path: Path, *, profile: str | None = None, extra: str = "") -> dict[str, object]:
    config_path = _write(
        tmp_path / "portal.toml",
        f"""
[paths]
snapshot = "{SAMPLE_SNAPSHOT.as_posix()}"

[observability]
log_dir = "logs"
{extra}
""".strip(),
    )
    return load_config(config_path, profile=profile, environ={})


def _events(tmp_path: Path) -> list[dict[str, object]]:
    handle = get_active_logging_handle()
    assert handle is not None
    log_path = handle.log_path
    shutdown_logging()
    assert log_path.parent.parent.resolve() == (tmp_path / "logs").resolve()
    return [json.loads(line) for line in log_path.read_text(encoding="utf-8").splitlines()]


def test_default_profile_release_flow(tmp_path: Path) -> None:
    config = _config(tmp_path)
    setup_logging(config["observability"], run_id="flow-default")  # type: ignore[arg-type]
    service = PortalService.from_config(config)  # type: ignore[arg-type]

    report = service.build_report("b-1001")
    assert report.decision.status is BuildStatus.SUCCESS
    assert report.status_matches_record
    assert report.release_criteria is not None and report.release_criteria.overall_passed
    assert report.release_status is ReleaseStatus.AVAILABLE

    released = service.request_release("b-1001")
    assert released.release_status is ReleaseStatus.RELEASED
    assert service.get_build("b-1001").release_status is None

    with pytest.raises(ReleaseBlockedError) as exc_info:
        service.request_release("b-1002")
    assert exc_info.value.criteria is not None
    assert "samPassed" in str(exc_info.value)

    events = _events(tmp_path)
    derived = next(event for event in events if event["message"] == "build report derived")
    assert derived["build_id"] == "b-1001"
    assert derived["layer_id"] == "l-aurora-rel"
    assert derived["project_id"] == "p-aurora"
    assert derived["fields"] == {"rule": "all_stages_terminal", "status": "success"}

    rejected = next(event for event in events if event["message"] == "release rejected")
    assert rejected["build_id"] == "b-1002"
    assert rejected["level"] == "WARNING"


def test_strict_profile_tightens_sam_gate(tmp_path: Path) -> None:
    config = _config(tmp_path, profile="strict")
    service = PortalService.from_config(config)  # type: ignore[arg-type]

    assert service.thresholds.sam_min_score == 90.0
    report = service.build_report("b-1001")
    assert report.quality is not None
    assert report.quality.sam is not None and report.quality.sam.status is QualityStatus.FAIL
    assert report.release_criteria is not None
    assert report.release_criteria.failed_checks() == ("samPassed",)
    assert report.release_status is ReleaseStatus.PENDING_APPROVAL


def test_config_file_thresholds_reach_release_criteria(tmp_path: Path) -> None:
    config = _config(tmp_path, extra="\n[quality]\nsam_min_score = 60\ncoverity_max_defects = 5\n")
    service = PortalService.from_config(config)  # type: ignore[arg-type]

    criteria = service.evaluate_release("b-1002")
    assert criteria is not None
    assert criteria.sam_passed
    assert criteria.coverity_passed
    assert not criteria.all_stages_passed
    assert not criteria.overall_passed


def test_rollups_and_layers(tmp_path: Path) -> None:
    service = PortalService.from_config(_config(tmp_path))  # type: ignore[arg-type]

    stats = service.dashboard_stats()
    per_project = service.dashboard_stats_by_project()
    assert stats.total_builds == sum(item.total_builds for item in per_project.values())
    assert [layer.id for layer in service.layers_for_project("p-aurora")] == [
        "l-aurora-rel",
        "l-aurora-dev",
    ]
    assert [item.stage_name for item in service.stage_duration_stats(project_id="p-borealis")] == [
        "Build",
        "Coverity",
        "TASTY",
    ]
    assert service.validate_layer("l-borealis-main").validation.is_valid
    with pytest.raises(MissingDataError) as exc_info:
        service.validate_layer("l-missing")
    assert exc_info.value.field == "layer_id"


def test_stage_mismatch_is_reported_and_logged(tmp_path: Path) -> None:
    snapshot_path = _write(
        tmp_path / "drift.yaml",
        """
schema_version: 1
projects:
  - id: p-1
    name: Drift
layers:
  - id: l-1
    projectId: p-1
    name: drift-dev
    pipelineConfig:
      - name: Build
        required: true
      - name: SAM
builds:
  - id: b-1
    projectId: p-1
    layerId: l-1
    status: success
    startedAt: "2024-03-04T08:00:00Z"
    finishedAt: "2024-03-04T08:10:00Z"
    stages:
      - name: Build
        status: success
""".lstrip(),
    )
    config = load_config(
        None,
        cli_overrides={
            "paths.snapshot": snapshot_path.as_posix(),
            "observability.log_dir": (tmp_path / "logs").as_posix(),
        },
        environ={},
    )
    setup_logging(config["observability"], run_id="flow-drift")
    service = PortalService.from_config(config)

    report = service.build_report("b-1")
    assert report.stage_issue is not None
    assert "missing ['SAM']" in report.stage_issue
    assert report.decision.status is BuildStatus.SUCCESS
    assert report.release_criteria is None

    warning = next(
        event for event in _events(tmp_path) if event["message"] == "build stages do not match layer"
    )
    assert warning["build_id"] == "b-1"
    assert warning["level"] == "WARNING"


T0 = datetime(2024, 3, 4, 8, 0, tzinfo=timezone.utc)


def _single_build_service(
    pipeline_config: tuple[StageConfig, ...],
    stages: tuple[BuildStage, ...],
    *,
    layer_type: str = "release",
    metrics: QualityMetrics | None = None,
) -> PortalService:
    layer = Layer(
        id="l-1", project_id="p-1", name="gate", type=layer_type, pipeline_config=pipeline_config
    )
    build = Build(
        id="b-1",
        project_id="p-1",
        layer_id="l-1",
        started_at=T0,
        status=BuildStatus.SUCCESS,
        finished_at=T0 + timedelta(minutes=30),
        stages=stages,
        quality_metrics=metrics,
    )
    return PortalService(PortalSnapshot(layers=(layer,), builds=(build,)))


def test_recorded_metrics_missing_a_gating_tool_are_missing_data() -> None:
    service = _single_build_service(
        (
            StageConfig("Build", required=True),
            StageConfig("SAM", required=True),
            StageConfig("Coverity", required=True),
        ),
        (
            BuildStage("Build", "success"),
            BuildStage("SAM", "success"),
            BuildStage("Coverity", "success"),
        ),
        metrics=QualityMetrics(sam=QualityResult(status=QualityStatus.PASS, score=95.0)),
    )

    with pytest.raises(MissingDataError) as exc_info:
        service.evaluate_release("b-1")
    assert exc_info.value.field == "quality_metrics.coverity"
    with pytest.raises(MissingDataError):
        service.build_report("b-1")
    with pytest.raises(MissingDataError):
        service.request_release("b-1")


def test_unexpected_stage_fails_the_build_report() -> None:
    service = _single_build_service(
        (StageConfig("Build", required=True), StageConfig("SAM")),
        (BuildStage("Build", "success"), BuildStage("Lint", "success")),
        layer_type="layer",
    )

    with pytest.raises(MissingDataError) as exc_info:
        service.build_report("b-1")

    message = str(exc_info.value)
    assert "unexpected ['Lint']" in message
    assert "missing ['SAM']" in message
    assert exc_info.value.field == "stages[1].name"


def test_broken_layer_configuration_fails_the_snapshot_load(tmp_path: Path) -> None:
    snapshot_path = _write(
        tmp_path / "broken-layer.yaml",
        """
schema_version: 1
layers:
  - id: l-1
    projectId: p-1
    name: broken
    pipelineConfig:
      - name: Build
      - name: Build
""".lstrip(),
    )

    with pytest.raises(SnapshotLoadError, match="invalid pipeline configuration"):
        load_snapshot(snapshot_path)
