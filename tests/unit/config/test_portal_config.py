"""
mint-portal: unit tests for config schema and loader

File: tests/unit/config/test_portal_config.py

Purpose
- Validate deterministic config loading from defaults, TOML, profiles, env and CLI overrides.

What this test file should cover
- Precedence: CLI > env > profile > file > defaults.
- Strict schema validation with structured issue paths.
- Path normalization relative to the config file.
- Redaction of secret-looking keys in effective config dumps.

Functional requirements
- Offline; never reads the real process environment.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from mint_portal.config import (
    ConfigLoadError,
    ConfigValidationError,
    apply_profile_overlay,
    default_config,
    dump_effective_config,
    load_config,
    redact_config,
    validate_config,
)


def _write_config(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def test_defaults_are_valid() -> None:
    result = validate_config(default_config())

    assert result.is_valid
    assert result.config is not None
    assert result.config["quality"]["sam_min_score"] == 80.0
    assert result.config["dashboard"]["recent_builds_limit"] == 5


def test_loader_precedence_default_file_env_cli(tmp_path: Path) -> None:
    config_path = _write_config(
        tmp_path / "portal.toml",
        """
[quality]
sam_min_score = 85

[dashboard]
recent_builds_limit = 8
""".strip(),
    )
    env = {"MINT_QUALITY_SAM_MIN_SCORE": "88.5", "MINT_DASHBOARD_RECENT_BUILDS_LIMIT": "3"}

    file_loaded = load_config(config_path, environ={})
    env_loaded = load_config(config_path, environ=env)
    cli_loaded = load_config(
        config_path, environ=env, cli_overrides={"quality.sam_min_score": 91.0}
    )

    assert file_loaded["quality"]["sam_min_score"] == 85.0
    assert file_loaded["dashboard"]["recent_builds_limit"] == 8
    assert env_loaded["quality"]["sam_min_score"] == 88.5
    assert env_loaded["dashboard"]["recent_builds_limit"] == 3
    assert cli_loaded["quality"]["sam_min_score"] == 91.0
    assert cli_loaded["dashboard"]["recent_builds_limit"] == 3


def test_profile_overlay_sits_between_file_and_env(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path / "portal.toml", "")

    strict = load_config(config_path, profile="strict", environ={})
    from_env = load_config(config_path, environ={"MINT_PROFILE": "lenient"})
    env_wins = load_config(
        config_path, profile="strict", environ={"MINT_QUALITY_SAM_MIN_SCORE": "75"}
    )

    assert strict["quality"]["sam_min_score"] == 90.0
    assert from_env["quality"]["sam_min_score"] == 70.0
    assert env_wins["quality"]["sam_min_score"] == 75.0


def test_custom_profile_from_file(tmp_path: Path) -> None:
    config_path = _write_config(
        tmp_path / "portal.toml",
        """
[profiles.nightly.dashboard]
recent_builds_limit = 20
""".strip(),
    )
    loaded = load_config(config_path, cli_overrides={"profile": "nightly"}, environ={})
    assert loaded["dashboard"]["recent_builds_limit"] == 20


def test_unknown_profile_is_rejected() -> None:
    with pytest.raises(ConfigValidationError, match="profile 'weekend' is not defined"):
        apply_profile_overlay(default_config(), "weekend")


def test_env_boolean_coercion(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path / "portal.toml", "")

    loaded = load_config(config_path, environ={"MINT_OBSERVABILITY_LOG_TO_STDOUT": "yes"})
    assert loaded["observability"]["log_to_stdout"] is True

    with pytest.raises(ConfigLoadError, match="must be a boolean"):
        load_config(config_path, environ={"MINT_OBSERVABILITY_REDACT_SECRETS": "maybe"})
    with pytest.raises(ConfigLoadError, match="must be an integer"):
        load_config(config_path, environ={"MINT_DASHBOARD_MAX_WORKERS": "many"})


def test_paths_are_normalized_relative_to_config_file(tmp_path: Path) -> None:
    config_path = _write_config(
        tmp_path / "conf" / "portal.toml",
        """
[paths]
snapshot = "../data/snapshot.yaml"
""".strip(),
    )
    loaded = load_config(config_path, environ={})
    root = tmp_path.resolve()

    assert loaded["paths"]["snapshot"] == (root / "data" / "snapshot.yaml").as_posix()
    assert loaded["observability"]["log_dir"] == (root / "conf" / "logs").as_posix()


def test_explicit_missing_config_file_is_an_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigLoadError, match="config file not found"):
        load_config(tmp_path / "absent.toml", environ={})


def test_invalid_toml_is_an_error(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path / "portal.toml", "[quality\n")
    with pytest.raises(ConfigLoadError, match="invalid TOML"):
        load_config(config_path, environ={})


def test_schema_issues_have_deterministic_paths(tmp_path: Path) -> None:
    config_path = _write_config(
        tmp_path / "portal.toml",
        """
[meta]
schema_version = 2

[quality]
sam_min_score = 120
colour = "red"

[observability]
log_level = "chatty"
api_token = "abc"
""".strip(),
    )

    with pytest.raises(ConfigValidationError) as exc_info:
        load_config(config_path, environ={})

    issues = {issue.path: issue.message for issue in exc_info.value.issues}
    assert "upgrade mint-portal" in issues["meta.schema_version"]
    assert issues["quality.sam_min_score"] == "score thresholds are percentages and must be <= 100"
    assert issues["quality.colour"] == "unknown field"
    assert issues["observability.api_token"] == "secret values do not belong in portal.toml"
    assert "expected one of" in issues["observability.log_level"]


def test_log_level_is_case_insensitive() -> None:
    config = default_config()
    config["observability"]["log_level"] = "debug"
    result = validate_config(config)

    assert result.config is not None
    assert result.config["observability"]["log_level"] == "DEBUG"


def test_redaction_masks_secret_keys() -> None:
    redacted = redact_config({"paths": {"snapshot": "s.yaml"}, "bamboo": {"apiToken": "xyz"}})
    assert redacted == {"bamboo": {"apiToken": "<redacted>"}, "paths": {"snapshot": "s.yaml"}}


def test_dump_effective_config_is_deterministic(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path / "portal.toml", "")
    first = dump_effective_config(load_config(config_path, environ={}))
    second = dump_effective_config(load_config(config_path, environ={}))

    assert first == second
    assert json.loads(first)["meta"]["schema_version"] == 1
