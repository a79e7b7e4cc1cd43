"""
mint-portal: end-to-end CLI smoke test

File: tests/smoke/test_cli_end_to_end.py

Purpose
- Run ``python -m mint_portal`` against the sample snapshot and check exit codes, JSON output
  and the structured log side effect.
- Check the in-process entrypoint's error routing for bad input.
"""

from __future__ import annotations

import json
import os
import subprocess
import sys
from pathlib import Path

import pytest

from mint_portal.main import ExitCode, cli_entrypoint

PROJECT_ROOT = Path(__file__).resolve().parents[2]
SRC_PATH = PROJECT_ROOT / "src"
SAMPLE_SNAPSHOT = PROJECT_ROOT / "samples" / "snapshot.yaml"


def _run_cli(cwd: Path, *args: str) -> subprocess.CompletedProcess[str]:
    env = os.environ.copy()
    existing_pythonpath = env.get("PYTHONPATH")
    src_pythonpath = str(SRC_PATH)
    env["PYTHONPATH"] = (
        src_pythonpath if not existing_pythonpath else f"{src_pythonpath}:{existing_pythonpath}"
    )
    env.pop("MINT_PROFILE", None)
    env["NO_COLOR"] = "1"
    return subprocess.run(
        [sys.executable, "-m", "mint_portal", *args],
        cwd=cwd,
        text=True,
        capture_output=True,
        check=False,
        env=env,
    )


@pytest.mark.smoke
def test_end_to_end_dashboard_and_release(tmp_path: Path) -> None:
    common = ("--snapshot", str(SAMPLE_SNAPSHOT), "--log-dir", str(tmp_path / "logs"))

    stats = _run_cli(tmp_path, "stats", *common, "--json")
    assert stats.returncode == 0, stats.stderr
    payload = json.loads(stats.stdout)
    assert payload["stats"]["successRate"] == 40

    report = _run_cli(tmp_path, "build", "b-1002", *common)
    assert report.returncode == 0, report.stderr
    assert "Derived status: failed [required_stage_failed (SAM)]" in report.stdout
    assert "Overall: FAIL" in report.stdout

    granted = _run_cli(tmp_path, "release", "b-1001", "--request", *common)
    assert granted.returncode == 0, granted.stderr
    assert "OK    build b-1001 is released" in granted.stdout

    blocked = _run_cli(tmp_path, "release", "b-1002", "--request", *common)
    assert blocked.returncode == 1

    log_files = sorted((tmp_path / "logs").glob("*/portal.jsonl"))
    assert len(log_files) == 4
    messages = [
        json.loads(line)["message"]
        for path in log_files
        for line in path.read_text(encoding="utf-8").splitlines()
    ]
    assert "release granted" in messages
    assert "release rejected" in messages


@pytest.mark.smoke
def test_entrypoint_routes_bad_input_to_exit_2(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("MINT_PROFILE", raising=False)
    log_dir = str(tmp_path / "logs")

    broken = tmp_path / "broken.yaml"
    broken.write_text("projects: [\n", encoding="utf-8")
    assert cli_entrypoint(["stats", "--snapshot", str(broken), "--log-dir", log_dir]) == 2
    assert "invalid YAML" in capsys.readouterr().err

    unknown = ["build", "b-404", "--snapshot", str(SAMPLE_SNAPSHOT), "--log-dir", log_dir]
    assert cli_entrypoint(unknown) == ExitCode.CONFIG_ERROR
    assert "error: build_id: unknown build 'b-404'" in capsys.readouterr().err

    assert cli_entrypoint(["stats", "--profile", "weekend", "--log-dir", log_dir]) == 2
    assert cli_entrypoint(["no-such-command"]) == 2
    assert cli_entrypoint(["stats", "--snapshot", str(SAMPLE_SNAPSHOT), "--log-dir", log_dir]) == 0
