"""
mint-portal: unit tests for pipeline configuration

File: tests/unit/pipeline/test_pipeline_configuration.py

Purpose
- Validate stage-list validation, default stage lists per layer type and tool-to-stage lookup.

What this test file should cover
- Structured issues with stable ordering and paths.
- Enabled/required name projections preserving configuration order.
- Default release layers requiring Build, SAM and Coverity.
"""

from __future__ import annotations

import pytest

from mint_portal.constants import KNOWN_STAGE_NAMES
from mint_portal.domain.errors import PipelineValidationError
from mint_portal.domain.models import LayerType, QualityTool, StageConfig
from mint_portal.pipeline.configuration import (
    ISSUE_DUPLICATE_NAME,
    ISSUE_INVALID_ENTRY,
    ISSUE_REQUIRED_DISABLED,
    assert_valid_pipeline_config,
    default_pipeline_config,
    enabled_stage_names,
    find_stage_for_tool,
    required_stage_names,
    stage_key,
    validate_pipeline_config,
)


def test_valid_config_has_no_issues() -> None:
    stages = (StageConfig("Build", required=True), StageConfig("SAM"), StageConfig("Coverity"))
    result = validate_pipeline_config(stages)

    assert result.is_valid
    assert assert_valid_pipeline_config(stages) == stages


def test_issues_are_reported_in_stage_order_with_paths() -> None:
    result = validate_pipeline_config(
        [
            StageConfig("SAM", enabled=False, required=True),
            StageConfig("Build"),
            StageConfig("Build"),
            StageConfig("Build"),
            "Coverity",  # type: ignore[list-item]
        ]
    )

    assert [(issue.path, issue.code) for issue in result.issues] == [
        ("pipeline_config[0].required", ISSUE_REQUIRED_DISABLED),
        ("pipeline_config[2].name", ISSUE_DUPLICATE_NAME),
        ("pipeline_config[4]", ISSUE_INVALID_ENTRY),
    ]


def test_assert_valid_raises_with_every_issue() -> None:
    with pytest.raises(PipelineValidationError) as exc_info:
        assert_valid_pipeline_config([StageConfig("Build"), StageConfig("Build")])

    assert len(exc_info.value.issues) == 1
    assert "used more than once" in str(exc_info.value)


def test_enabled_and_required_names_keep_configuration_order() -> None:
    config = (
        StageConfig("Coverity", required=True),
        StageConfig("TASTY", enabled=False),
        StageConfig("Build", required=True),
        StageConfig("SAM"),
    )

    assert enabled_stage_names(config) == ("Coverity", "Build", "SAM")
    assert required_stage_names(config) == ("Coverity", "Build")


@pytest.mark.parametrize(
    ("layer_type", "required"),
    [
        (LayerType.RELEASE, ("Build", "SAM", "Coverity")),
        (LayerType.LAYER, ()),
        ("private", ()),
    ],
)
def test_default_pipeline_config(layer_type: LayerType | str, required: tuple[str, ...]) -> None:
    config = default_pipeline_config(layer_type)

    assert tuple(stage.name for stage in config) == KNOWN_STAGE_NAMES
    assert all(stage.enabled for stage in config)
    assert required_stage_names(config) == required
    assert validate_pipeline_config(config).is_valid


def test_stage_key_ignores_case_and_punctuation() -> None:
    assert stage_key("OnBoard Test") == stage_key("onboard-test") == "onboardtest"
    assert stage_key(" Coding_Rule Check ") == "codingrulecheck"


def test_find_stage_for_tool_matches_stage_or_tool_name() -> None:
    config = (
        StageConfig("Build"),
        StageConfig("onboard test"),
        StageConfig("codingRuleCheck"),
    )

    assert find_stage_for_tool(config, QualityTool.ONBOARD_TEST) == config[1]
    assert find_stage_for_tool(config, "codingRuleCheck") == config[2]
    assert find_stage_for_tool(config, QualityTool.SAM) is None
