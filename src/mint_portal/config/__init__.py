"""Configuration loading and validation for mint-portal."""

from mint_portal.config.loader import (
    DEFAULT_CONFIG_FILE,
    ENV_PREFIX,
    ConfigLoadError,
    dump_effective_config,
    effective_config,
    load_config,
    normalize_paths,
)
from mint_portal.config.schema import (
    BUILTIN_PROFILE_NAMES,
    DEFAULT_CONFIG,
    PATH_FIELDS,
    ConfigValidationError,
    ConfigValidationIssue,
    ConfigValidationResult,
    PortalConfig,
    apply_profile_overlay,
    assert_valid_config,
    default_config,
    merge_config,
    redact_config,
    validate_config,
)

__all__ = [
    "BUILTIN_PROFILE_NAMES",
    "ConfigLoadError",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "DEFAULT_CONFIG",
    "DEFAULT_CONFIG_FILE",
    "ENV_PREFIX",
    "PATH_FIELDS",
    "PortalConfig",
    "apply_profile_overlay",
    "assert_valid_config",
    "default_config",
    "dump_effective_config",
    "effective_config",
    "load_config",
    "merge_config",
    "normalize_paths",
    "redact_config",
    "validate_config",
]
