"""
mint-portal: configuration schema and validation.

File: src/mint_portal/config/schema.py

Purpose
- Hold the built-in ``portal.toml`` defaults and the rules every section must satisfy.

What should be included in this file
- A declarative rule table: one ``_Rule`` per known field, grouped by section.
- Structured validation issues (dotted field path + message) and a raising variant.
- Quality profile overlays (``strict``/``lenient`` plus any defined in the file).
- Deep-merge and secret redaction helpers shared by the loader and ``mint-portal config``.

Functional requirements
- Unknown keys are rejected; keys that look like credentials get a dedicated message.
- Score thresholds are percentages in [0, 100]; violation/defect limits are >= 0.

Non-functional requirements
- Issues are reported in sorted key order so error output is reproducible.
"""

from __future__ import annotations

import copy
import math
import re
from collections.abc import Collection, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Final, Literal, TypedDict

from mint_portal.constants import (
    CONFIG_SCHEMA_VERSION,
    DEFAULT_BLACKDUCK_MAX_VIOLATIONS,
    DEFAULT_CODING_RULE_MAX_VIOLATIONS,
    DEFAULT_COVERITY_MAX_DEFECTS,
    DEFAULT_DOBEE_MIN_SCORE,
    DEFAULT_ONBOARD_MAX_FAILED_TESTS,
    DEFAULT_SAM_MIN_SCORE,
    RECENT_BUILDS_LIMIT,
)

BUILTIN_PROFILE_NAMES: Final[tuple[str, ...]] = ("strict", "lenient")

# Config paths that are resolved relative to the config file location.
PATH_FIELDS: Final[tuple[tuple[str, ...], ...]] = (
    ("paths", "snapshot"),
    ("observability", "log_dir"),
)

REDACTED: Final[str] = "<redacted>"

_PROFILE_NAME = re.compile(r"[a-z][a-z0-9_-]*")
_KEY_WORD = re.compile(r"[A-Z]+(?![a-z])|[A-Z]?[a-z]+|[0-9]+")
_SECRET_WORDS: Final[frozenset[str]] = frozenset(
    {"auth", "credential", "credentials", "passwd", "password", "secret", "token"}
)
_SECRET_FRAGMENTS: Final[tuple[str, ...]] = ("apikey", "privatekey", "password", "secret")


class MetaConfig(TypedDict):
    schema_version: int


class QualityConfig(TypedDict):
    coverity_max_defects: float
    sam_min_score: float
    onboard_test_max_failed: float
    blackduck_max_violations: float
    coding_rule_max_violations: float
    dobee_min_score: float


class DashboardConfig(TypedDict):
    recent_builds_limit: int
    max_workers: int


class ObservabilityConfig(TypedDict):
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"]
    log_format: Literal["json", "text"]
    log_dir: str
    log_to_stdout: bool
    redact_secrets: bool


class PathsConfig(TypedDict):
    snapshot: str


class PortalConfig(TypedDict):
    meta: MetaConfig
    quality: QualityConfig
    dashboard: DashboardConfig
    observability: ObservabilityConfig
    paths: PathsConfig
    profiles: dict[str, dict[str, dict[str, object]]]


DEFAULT_CONFIG: Final[PortalConfig] = {
    "meta": {"schema_version": CONFIG_SCHEMA_VERSION},
    "quality": {
        "coverity_max_defects": float(DEFAULT_COVERITY_MAX_DEFECTS),
        "sam_min_score": DEFAULT_SAM_MIN_SCORE,
        "onboard_test_max_failed": float(DEFAULT_ONBOARD_MAX_FAILED_TESTS),
        "blackduck_max_violations": float(DEFAULT_BLACKDUCK_MAX_VIOLATIONS),
        "coding_rule_max_violations": float(DEFAULT_CODING_RULE_MAX_VIOLATIONS),
        "dobee_min_score": DEFAULT_DOBEE_MIN_SCORE,
    },
    "dashboard": {"recent_builds_limit": RECENT_BUILDS_LIMIT, "max_workers": 4},
    "observability": {
        "log_level": "INFO",
        "log_format": "json",
        "log_dir": "logs/",
        "log_to_stdout": False,
        "redact_secrets": True,
    },
    "paths": {"snapshot": "snapshot.yaml"},
    "profiles": {
        "strict": {"quality": {"sam_min_score": 90.0, "dobee_min_score": 90.0}},
        "lenient": {"quality": {"sam_min_score": 70.0, "dobee_min_score": 70.0}},
    },
}


@dataclass(frozen=True, slots=True)
class ConfigValidationIssue:
    path: str
    message: str


@dataclass(frozen=True, slots=True)
class ConfigValidationResult:
    """Outcome of ``validate_config``; ``config`` is the normalized copy or ``None``."""

    config: dict[str, Any] | None
    issues: tuple[ConfigValidationIssue, ...]

    @property
    def is_valid(self) -> bool:
        return self.config is not None and not self.issues


class ConfigValidationError(ValueError):
    """One or more config fields broke the schema."""

    def __init__(self, issues: Sequence[ConfigValidationIssue]) -> None:
        self.issues = tuple(issues)
        lines = [f"- {issue.path}: {issue.message}" for issue in self.issues]
        super().__init__("invalid config:\n" + ("\n".join(lines) or "- <root>: no detail"))


# ---------------------------------------------------------------------------
# Rule table
# ---------------------------------------------------------------------------

_Kind = Literal["int", "number", "bool", "path", "choice"]


@dataclass(frozen=True, slots=True)
class _Rule:
    kind: _Kind
    minimum: float | None = None
    maximum: float | None = None
    choices: tuple[str, ...] = ()
    upper: bool = False


_SCORE = _Rule("number", minimum=0.0, maximum=100.0)
_LIMIT = _Rule("number", minimum=0.0)

_RULES: Final[dict[str, dict[str, _Rule]]] = {
    "meta": {"schema_version": _Rule("int", minimum=1)},
    "quality": {
        "blackduck_max_violations": _LIMIT,
        "coding_rule_max_violations": _LIMIT,
        "coverity_max_defects": _LIMIT,
        "dobee_min_score": _SCORE,
        "onboard_test_max_failed": _LIMIT,
        "sam_min_score": _SCORE,
    },
    "dashboard": {
        "max_workers": _Rule("int", minimum=1),
        "recent_builds_limit": _Rule("int", minimum=0),
    },
    "observability": {
        "log_dir": _Rule("path"),
        "log_format": _Rule("choice", choices=("json", "text")),
        "log_level": _Rule("choice", choices=("DEBUG", "ERROR", "INFO", "WARNING"), upper=True),
        "log_to_stdout": _Rule("bool"),
        "redact_secrets": _Rule("bool"),
    },
    "paths": {"snapshot": _Rule("path")},
}
# Sections a profile may override.
_OVERLAY_SECTIONS: Final[frozenset[str]] = frozenset(
    {"quality", "dashboard", "observability", "paths"}
)


class _Validator:
    """Walks a raw config mapping and records every rule it breaks."""

    def __init__(self) -> None:
        self.issues: list[ConfigValidationIssue] = []

    def fail(self, path: str, message: str) -> None:
        self.issues.append(ConfigValidationIssue(path, message))

    def mapping(self, value: object, path: str) -> Mapping[str, object] | None:
        if isinstance(value, Mapping):
            return value
        self.fail(path, f"expected object, got {type(value).__name__}")
        return None

    def unknown_keys(
        self, payload: Mapping[str, object], known: Collection[str], path: str
    ) -> None:
        for key in sorted(set(payload) - set(known), key=str):
            if _is_secret_key(str(key)):
                self.fail(_dotted(path, str(key)), "secret values do not belong in portal.toml")
            else:
                self.fail(_dotted(path, str(key)), "unknown field")

    def root(self, payload: Mapping[str, object]) -> dict[str, Any]:
        self.unknown_keys(payload, {*_RULES, "profiles"}, "")
        out: dict[str, Any] = {}
        for name in _RULES:
            if name not in payload:
                self.fail(name, "missing required field")
                continue
            section = self.mapping(payload[name], name)
            if section is not None:
                out[name] = self.section(name, section, name, partial=False)
        if "profiles" in payload:
            profiles = self.mapping(payload["profiles"], "profiles")
            if profiles is not None:
                out["profiles"] = self.profiles(profiles)
        return out

    def section(
        self, name: str, payload: Mapping[str, object], path: str, *, partial: bool
    ) -> dict[str, Any]:
        rules = _RULES[name]
        self.unknown_keys(payload, rules.keys(), path)
        out: dict[str, Any] = {}
        for key, rule in sorted(rules.items()):
            field_path = _dotted(path, key)
            if key not in payload:
                if not partial:
                    self.fail(field_path, "missing required field")
                continue
            parsed = self.value(payload[key], field_path, rule)
            if parsed is not None:
                out[key] = parsed
        version = out.get("schema_version")
        if name == "meta" and version is not None and version != CONFIG_SCHEMA_VERSION:
            self.fail(_dotted(path, "schema_version"), migration_guidance(version))
        return out

    def profiles(self, payload: Mapping[str, object]) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for name in sorted(payload, key=str):
            path = _dotted("profiles", str(name))
            if not isinstance(name, str) or not _PROFILE_NAME.fullmatch(name):
                self.fail(path, "profile name must match ^[a-z][a-z0-9_-]*$")
                continue
            overlay = self.mapping(payload[name], path)
            if overlay is None:
                continue
            self.unknown_keys(overlay, _OVERLAY_SECTIONS, path)
            validated: dict[str, Any] = {}
            for section_name in sorted(_OVERLAY_SECTIONS & set(overlay)):
                section_path = _dotted(path, section_name)
                section = self.mapping(overlay[section_name], section_path)
                if section is not None:
                    validated[section_name] = self.section(
                        section_name, section, section_path, partial=True
                    )
            out[name] = validated
        return out

    def value(self, raw: object, path: str, rule: _Rule) -> object | None:
        type_name = type(raw).__name__
        if rule.kind == "bool":
            if isinstance(raw, bool):
                return raw
            self.fail(path, f"expected boolean, got {type_name}")
            return None

        if rule.kind in ("path", "choice"):
            text = raw.strip() if isinstance(raw, str) else None
            if text is None:
                self.fail(path, f"expected string, got {type_name}")
            elif not text:
                self.fail(path, "must not be empty")
            elif rule.kind == "path" and "\x00" in text:
                self.fail(path, "must not contain NUL bytes")
            elif rule.kind == "path":
                return text
            else:
                candidate = text.upper() if rule.upper else text
                if candidate in rule.choices:
                    return candidate
                self.fail(
                    path, f"invalid value {text!r}; expected one of: {', '.join(rule.choices)}"
                )
            return None

        # bool is an int subclass and is never a valid number here.
        numeric = isinstance(raw, int) or (rule.kind == "number" and isinstance(raw, float))
        if isinstance(raw, bool) or not numeric:
            expected = "integer" if rule.kind == "int" else "number"
            self.fail(path, f"expected {expected}, got {type_name}")
            return None
        number: int | float = raw if rule.kind == "int" else float(raw)  # type: ignore[arg-type]
        if not math.isfinite(number):
            self.fail(path, "must be finite")
        elif rule.minimum is not None and number < rule.minimum:
            self.fail(path, f"must be >= {rule.minimum:g}")
        elif rule.maximum is not None and number > rule.maximum:
            self.fail(path, "score thresholds are percentages and must be <= 100")
        else:
            return number
        return None


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def default_config() -> PortalConfig:
    return copy.deepcopy(DEFAULT_CONFIG)


def migration_guidance(found_version: int) -> str:
    """Tell the operator which side is out of date for a schema version mismatch."""

    if found_version > CONFIG_SCHEMA_VERSION:
        return (
            f"portal.toml declares schema {found_version} but this release reads "
            f"{CONFIG_SCHEMA_VERSION}; upgrade mint-portal"
        )
    return (
        f"portal.toml declares schema {found_version}, current is {CONFIG_SCHEMA_VERSION}; "
        "rewrite the file against the current defaults"
    )


def validate_config(config: Mapping[str, object] | object) -> ConfigValidationResult:
    validator = _Validator()
    payload = validator.mapping(config, "<root>")
    normalized = validator.root(payload) if payload is not None else None
    if validator.issues:
        return ConfigValidationResult(config=None, issues=tuple(validator.issues))
    return ConfigValidationResult(config=normalized, issues=())


def assert_valid_config(config: Mapping[str, object] | object) -> dict[str, Any]:
    """Return the normalized config or raise ``ConfigValidationError``."""

    result = validate_config(config)
    if result.config is None:
        raise ConfigValidationError(result.issues)
    return result.config


def merge_config(base: Mapping[str, object], overlay: Mapping[str, object]) -> dict[str, Any]:
    """Return a new mapping with ``overlay`` deep-merged onto ``base``; inputs are untouched."""

    merged: dict[str, Any] = {key: copy.deepcopy(value) for key, value in base.items()}
    for key, value in overlay.items():
        current = merged.get(key)
        if isinstance(value, Mapping) and isinstance(current, Mapping):
            merged[key] = merge_config(current, value)
        elif isinstance(value, Mapping):
            merged[key] = merge_config({}, value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def apply_profile_overlay(config: Mapping[str, object], profile: str | None) -> dict[str, Any]:
    """Merge ``profiles.<profile>`` onto ``config`` and validate the result."""

    name = (profile or "").strip()
    if not name:
        return merge_config({}, config)
    profiles = config.get("profiles")
    if not isinstance(profiles, Mapping) or name not in profiles:
        raise ConfigValidationError(
            [ConfigValidationIssue("profiles", f"profile {name!r} is not defined")]
        )
    overlay = profiles[name]
    if not isinstance(overlay, Mapping):
        raise ConfigValidationError(
            [ConfigValidationIssue(f"profiles.{name}", "profile overlay must be an object")]
        )
    return assert_valid_config(merge_config(config, overlay))


def redact_config(config: Mapping[str, object] | object) -> dict[str, Any]:
    """Copy of ``config`` with credential-looking values replaced by ``<redacted>``."""

    if not isinstance(config, Mapping):
        return {}
    return {str(key): _redacted(key, value) for key, value in sorted(config.items())}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _redacted(key: object, value: object) -> object:
    if isinstance(key, str) and _is_secret_key(key):
        return REDACTED
    if isinstance(value, Mapping):
        return redact_config(value)
    if isinstance(value, (list, tuple)):
        return [_redacted(None, item) for item in value]
    return value


def _is_secret_key(key: str) -> bool:
    # Splits camelCase, snake_case and kebab-case alike: "apiToken" -> ["api", "token"].
    words = [word.lower() for word in _KEY_WORD.findall(key)]
    if _SECRET_WORDS.intersection(words):
        return True
    joined = "".join(words)
    return any(fragment in joined for fragment in _SECRET_FRAGMENTS)


def _dotted(path: str, key: str) -> str:
    return f"{path}.{key}" if path else key


__all__ = [
    "BUILTIN_PROFILE_NAMES",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "DEFAULT_CONFIG",
    "PATH_FIELDS",
    "PortalConfig",
    "REDACTED",
    "apply_profile_overlay",
    "assert_valid_config",
    "default_config",
    "merge_config",
    "migration_guidance",
    "redact_config",
    "validate_config",
]
