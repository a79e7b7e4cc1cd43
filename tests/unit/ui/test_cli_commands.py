"""
mint-portal: unit tests for CLI command routing

File: tests/unit/ui/test_cli_commands.py

Purpose
- Validate each subcommand against the sample snapshot in text and JSON modes.

What this test file should cover
- Dashboard, build listing, project filtering and stage duration commands.
- Build report output including derived status and release verdict.
- Release evaluation/request exit codes and the profile overlay.
- Missing snapshot handling and deterministic JSON.

Functional requirements
- Offline; logs are written under ``tmp_path``.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from mint_portal.domain.errors import MissingDataError
from mint_portal.observability.logging import get_active_logging_handle
from mint_portal.ui.cli import build_parser, run_cli

REPO_ROOT = Path(__file__).resolve().parents[3]
SAMPLE_SNAPSHOT = REPO_ROOT / "samples" / "snapshot.yaml"


@pytest.fixture(autouse=True)
def _isolated_cwd(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("NO_COLOR", raising=False)
    monkeypatch.delenv("MINT_PROFILE", raising=False)


def _run(tmp_path: Path, *argv: str) -> int:
    command, *rest = argv
    return run_cli(
        [command, "--snapshot", str(SAMPLE_SNAPSHOT), "--log-dir", str(tmp_path / "logs"), *rest]
    )


def _json_output(capsys: pytest.CaptureFixture[str]) -> dict[str, object]:
    out = capsys.readouterr().out.strip()
    return json.loads(out)


def test_parser_requires_a_command() -> None:
    with pytest.raises(SystemExit):
        build_parser().parse_args([])


def test_stats_json(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert _run(tmp_path, "stats", "--json") == 0
    payload = _json_output(capsys)

    assert payload["command"] == "stats"
    stats = payload["stats"]
    assert isinstance(stats, dict)
    assert stats["successRate"] == 40
    assert stats["totalBuilds"] == 5
    assert stats["successBuilds"] == 2
    assert stats["failedBuilds"] == 1
    assert stats["runningBuilds"] == 1
    assert stats["activeProjects"] == 2
    assert stats["qualityOverview"] == {"coverityAvg": 82.5, "passRate": 40, "samAvg": 73.75}
    assert [build["id"] for build in stats["recentBuilds"]] == [
        "b-2002",
        "b-1003",
        "b-2001",
        "b-1002",
        "b-1001",
    ]


def test_stats_text(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert _run(tmp_path, "stats", "--no-color") == 0
    out = capsys.readouterr().out

    assert "Dashboard\n=========" in out
    assert "Success rate: 40%" in out
    assert "Succeeded / failed: 2 / 1" in out
    assert "Recent builds:" in out


def test_stats_by_project_json(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert _run(tmp_path, "stats", "--by-project", "--json") == 0
    by_project = _json_output(capsys)["byProject"]

    assert isinstance(by_project, dict)
    assert sorted(by_project) == ["p-aurora", "p-borealis", "p-legacy"]
    assert by_project["p-aurora"]["totalBuilds"] == 3
    assert by_project["p-borealis"]["successRate"] == 50
    assert by_project["p-legacy"]["activeProjects"] == 0


def test_builds_filtered_by_status(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert _run(tmp_path, "builds", "--status", "running", "--json") == 0
    builds = _json_output(capsys)["builds"]
    assert [build["id"] for build in builds] == ["b-1003"]  # type: ignore[union-attr]


def test_builds_text_without_matches(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert _run(tmp_path, "builds", "--layer", "l-none") == 0
    assert "No builds match." in capsys.readouterr().out


def test_projects_filters(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert _run(tmp_path, "projects", "--oem", "Hyundai", "--json") == 0
    ids = [item["id"] for item in _json_output(capsys)["projects"]]  # type: ignore[union-attr]
    assert ids == ["p-aurora", "p-legacy"]

    assert _run(tmp_path, "projects", "--tl", "Lee Jiwon") == 0
    out = capsys.readouterr().out
    assert "p-borealis" in out
    assert "p-aurora" not in out


def test_build_report_json(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert _run(tmp_path, "build", "b-1001", "--json") == 0
    payload = _json_output(capsys)

    assert payload["derivedStatus"] == "success"
    assert payload["decidedBy"] == "all_stages_terminal"
    assert payload["releaseStatus"] == "available"
    assert payload["stageIssue"] is None
    criteria = payload["releaseCriteria"]
    assert isinstance(criteria, dict) and criteria["overallPassed"] is True
    quality = payload["quality"]
    assert isinstance(quality, dict)
    assert quality["sam"]["status"] == "pass"
    assert quality["blackduck"]["status"] == "skipped"


def test_build_report_text_for_running_build(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    assert _run(tmp_path, "build", "b-1003", "--no-color") == 0
    out = capsys.readouterr().out

    assert "Build b-1003" in out
    assert "Derived status: running [stage_running (SAM)]" in out
    assert "Release criteria:" not in out


def test_unknown_build_propagates_missing_data(tmp_path: Path) -> None:
    with pytest.raises(MissingDataError, match="b-404"):
        _run(tmp_path, "build", "b-404")
    assert get_active_logging_handle() is None


def test_release_evaluation_exit_codes(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert _run(tmp_path, "release", "b-1001") == 0
    assert "Overall: PASS" in capsys.readouterr().out

    assert _run(tmp_path, "release", "b-1002", "--json") == 1
    payload = _json_output(capsys)
    criteria = payload["releaseCriteria"]
    assert isinstance(criteria, dict)
    assert criteria["allStagesPassed"] is False
    assert criteria["overallPassed"] is False

    assert _run(tmp_path, "release", "b-1003") == 1
    assert "not on a release layer" in capsys.readouterr().out


def test_release_request(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert _run(tmp_path, "release", "b-1001", "--request", "--json") == 0
    payload = _json_output(capsys)
    assert payload["released"] is True
    assert payload["build"]["releaseStatus"] == "released"  # type: ignore[index]

    assert _run(tmp_path, "release", "b-1002", "--request") == 1
    assert "FAIL  build b-1002" in capsys.readouterr().out


def test_strict_profile_blocks_release(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert _run(tmp_path, "release", "b-1001", "--profile", "strict", "--json") == 1
    criteria = _json_output(capsys)["releaseCriteria"]
    assert isinstance(criteria, dict)
    assert criteria["samPassed"] is False
    assert criteria["coverityPassed"] is True


def test_validate_layer(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert _run(tmp_path, "validate-layer", "l-aurora-rel", "--no-color") == 0
    out = capsys.readouterr().out
    assert "Required stages: Build, SAM, Coverity" in out
    assert "OK    pipeline configuration is valid" in out


def test_stage_durations(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert _run(tmp_path, "stages", "--json") == 0
    stages = _json_output(capsys)["stages"]

    assert [item["stageName"] for item in stages] == [  # type: ignore[union-attr]
        "Build",
        "SAM",
        "Coverity",
        "OnBoard Test",
        "TASTY",
    ]
    assert stages[0] == {"averageDuration": 825.0, "sampleCount": 4, "stageName": "Build"}  # type: ignore[index]


def test_config_command_prints_effective_config(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    assert _run(tmp_path, "config", "--profile", "lenient", "--json") == 0
    payload = _json_output(capsys)

    assert payload["activeProfile"] == "lenient"
    config = payload["config"]
    assert isinstance(config, dict)
    assert config["quality"]["sam_min_score"] == 70.0
    assert config["paths"]["snapshot"] == SAMPLE_SNAPSHOT.resolve().as_posix()


def test_missing_snapshot_is_a_usage_error(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    code = run_cli(
        ["stats", "--snapshot", str(tmp_path / "absent.yaml"), "--log-dir", str(tmp_path)]
    )
    assert code == 2
    assert "snapshot not found" in capsys.readouterr().err


def test_json_output_is_deterministic(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    _run(tmp_path, "build", "b-2001", "--json")
    first = capsys.readouterr().out
    _run(tmp_path, "build", "b-2001", "--json")
    second = capsys.readouterr().out

    assert first == second
    assert json.loads(first)["quality"]["coverity"]["status"] == "warning"
