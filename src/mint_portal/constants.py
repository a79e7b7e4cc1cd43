"""Stable constants shared across the pipeline core, adapters and UI surfaces."""

from __future__ import annotations

from typing import Final

# Canonical stage names as configured on layers.
STAGE_BUILD: Final[str] = "Build"
STAGE_SAM: Final[str] = "SAM"
STAGE_COVERITY: Final[str] = "Coverity"
STAGE_DOBEE: Final[str] = "DoBEE"
STAGE_TASTY: Final[str] = "TASTY"
STAGE_WARNING_COUNT: Final[str] = "Warning Count"
STAGE_BLACKDUCK: Final[str] = "BlackDuck"
STAGE_ONBOARD_TEST: Final[str] = "OnBoard Test"
STAGE_CODING_RULE_CHECK: Final[str] = "Coding Rule Check"

KNOWN_STAGE_NAMES: Final[tuple[str, ...]] = (
    STAGE_BUILD,
    STAGE_SAM,
    STAGE_COVERITY,
    STAGE_DOBEE,
    STAGE_TASTY,
    STAGE_WARNING_COUNT,
    STAGE_BLACKDUCK,
    STAGE_ONBOARD_TEST,
    STAGE_CODING_RULE_CHECK,
)

# Stages enabled and required by default on newly created release layers.
DEFAULT_RELEASE_REQUIRED_STAGES: Final[tuple[str, ...]] = (
    STAGE_BUILD,
    STAGE_SAM,
    STAGE_COVERITY,
)

TOOL_STAGE_NAMES: Final[dict[str, str]] = {
    "coverity": STAGE_COVERITY,
    "sam": STAGE_SAM,
    "onboardTest": STAGE_ONBOARD_TEST,
    "dobee": STAGE_DOBEE,
    "codingRuleCheck": STAGE_CODING_RULE_CHECK,
    "blackduck": STAGE_BLACKDUCK,
}

# Fallback thresholds when a stage carries no tool-specific settings.
DEFAULT_COVERITY_MAX_DEFECTS: Final[int] = 0
DEFAULT_SAM_MIN_SCORE: Final[float] = 80.0
DEFAULT_ONBOARD_MAX_FAILED_TESTS: Final[int] = 0
DEFAULT_BLACKDUCK_MAX_VIOLATIONS: Final[int] = 0
DEFAULT_CODING_RULE_MAX_VIOLATIONS: Final[int] = 0
DEFAULT_DOBEE_MIN_SCORE: Final[float] = 80.0

RECENT_BUILDS_LIMIT: Final[int] = 5

CONFIG_SCHEMA_VERSION: Final[int] = 1
SNAPSHOT_SCHEMA_VERSION: Final[int] = 1

__all__ = [
    "CONFIG_SCHEMA_VERSION",
    "DEFAULT_BLACKDUCK_MAX_VIOLATIONS",
    "DEFAULT_CODING_RULE_MAX_VIOLATIONS",
    "DEFAULT_COVERITY_MAX_DEFECTS",
    "DEFAULT_DOBEE_MIN_SCORE",
    "DEFAULT_ONBOARD_MAX_FAILED_TESTS",
    "DEFAULT_RELEASE_REQUIRED_STAGES",
    "DEFAULT_SAM_MIN_SCORE",
    "KNOWN_STAGE_NAMES",
    "RECENT_BUILDS_LIMIT",
    "SNAPSHOT_SCHEMA_VERSION",
    "STAGE_BLACKDUCK",
    "STAGE_BUILD",
    "STAGE_CODING_RULE_CHECK",
    "STAGE_COVERITY",
    "STAGE_DOBEE",
    "STAGE_ONBOARD_TEST",
    "STAGE_SAM",
    "STAGE_TASTY",
    "STAGE_WARNING_COUNT",
    "TOOL_STAGE_NAMES",
]
