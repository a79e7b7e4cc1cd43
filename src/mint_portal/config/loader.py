"""
mint-portal: runtime config loader.

File: src/mint_portal/config/loader.py

Purpose
- Build the effective portal config by stacking layers: built-in defaults, ``portal.toml``,
  the selected quality profile, ``MINT_*`` environment variables and CLI overrides.

Functional requirements
- A missing default ``portal.toml`` is fine; a missing explicit ``--config`` is an error.
- Environment values are coerced to the type of the default they replace.
- Relative paths resolve against the directory holding the config file.
"""

from __future__ import annotations

import json
import os
import tomllib
from collections.abc import Callable, Iterator, Mapping
from pathlib import Path
from typing import Any, Final

from mint_portal.config.schema import (
    PATH_FIELDS,
    apply_profile_overlay,
    assert_valid_config,
    default_config,
    merge_config,
    redact_config,
)

DEFAULT_CONFIG_FILE: Final[str] = "portal.toml"
ENV_PREFIX: Final[str] = "MINT_"

_PROFILE_KEY: Final[str] = "profile"
_ENV_SKIPPED_SECTIONS: Final[frozenset[str]] = frozenset({"profiles", "meta"})
_TRUTHY: Final[dict[str, bool]] = {
    "1": True,
    "true": True,
    "yes": True,
    "on": True,
    "0": False,
    "false": False,
    "no": False,
    "off": False,
}

KeyPath = tuple[str, ...]


class ConfigLoadError(ValueError):
    """Raised when config cannot be read or an override cannot be coerced."""


def load_config(
    config_path: str | Path | None = None,
    *,
    profile: str | None = None,
    cli_overrides: Mapping[str, object] | None = None,
    environ: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    """Return the validated effective config.

    Precedence, lowest first: defaults, config file, profile, environment, CLI. The
    profile is chosen by ``profile``, then a ``"profile"`` CLI override, then
    ``MINT_PROFILE``.
    """

    explicit = config_path is not None
    source = _config_file(config_path)
    env = dict(os.environ) if environ is None else dict(environ)
    overrides = dict(cli_overrides or {})

    config = assert_valid_config(merge_config(default_config(), _read_toml(source, explicit)))

    chosen = _choose_profile(profile, overrides.get(_PROFILE_KEY), env.get(f"{ENV_PREFIX}PROFILE"))
    if chosen:
        config = apply_profile_overlay(config, chosen)

    config = merge_config(config, _env_layer(config, env))
    config = merge_config(config, _cli_layer(overrides))
    config = assert_valid_config(config)
    return assert_valid_config(normalize_paths(config, base_dir=source.parent))


def normalize_paths(config: Mapping[str, object], *, base_dir: Path) -> dict[str, Any]:
    """Return a copy of ``config`` whose path fields are absolute POSIX strings."""

    resolved = merge_config({}, config)
    for key_path in PATH_FIELDS:
        raw = _dig(resolved, key_path)
        if not isinstance(raw, str):
            continue
        candidate = Path(os.path.expandvars(raw)).expanduser()
        if not candidate.is_absolute():
            candidate = base_dir / candidate
        _plant(resolved, key_path, Path(os.path.normpath(candidate)).as_posix())
    return resolved


def effective_config(config: Mapping[str, object]) -> dict[str, Any]:
    return redact_config(config)


def dump_effective_config(config: Mapping[str, object]) -> str:
    """Deterministic JSON of the redacted effective config."""

    return json.dumps(effective_config(config), sort_keys=True, indent=2, ensure_ascii=False)


# ---------------------------------------------------------------------------
# Layers
# ---------------------------------------------------------------------------


def _config_file(config_path: str | Path | None) -> Path:
    if config_path is None:
        return (Path.cwd() / DEFAULT_CONFIG_FILE).resolve()
    return Path(config_path).expanduser().resolve()


def _read_toml(path: Path, explicit: bool) -> dict[str, Any]:
    if not path.is_file():
        if explicit:
            raise ConfigLoadError(f"config file not found: {path}")
        return {}
    try:
        return tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as exc:
        raise ConfigLoadError(f"invalid TOML in {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigLoadError(f"unable to read config file {path}: {exc}") from exc


def _choose_profile(*candidates: object) -> str | None:
    for candidate in candidates:
        if candidate is None:
            continue
        if not isinstance(candidate, str):
            raise ConfigLoadError("profile must be a string")
        return candidate.strip() or None
    return None


def _env_layer(config: Mapping[str, object], environ: Mapping[str, str]) -> dict[str, Any]:
    layer: dict[str, Any] = {}
    for key_path, default in _scalar_leaves(config):
        if key_path[0] in _ENV_SKIPPED_SECTIONS:
            continue
        name = ENV_PREFIX + "_".join(part.upper() for part in key_path)
        raw = environ.get(name)
        if raw is None:
            continue
        coerce = _coercer_for(default)
        if coerce is None:
            continue
        _plant(layer, key_path, coerce(raw.strip(), f"{name} -> {'.'.join(key_path)}"))
    return layer


def _cli_layer(overrides: Mapping[str, object]) -> dict[str, Any]:
    """Expand dotted keys such as ``"quality.sam_min_score"`` into nested mappings."""

    layer: dict[str, Any] = {}
    for dotted in sorted(overrides):
        if dotted == _PROFILE_KEY:
            continue
        key_path = tuple(part for part in dotted.split(".") if part)
        if not key_path:
            raise ConfigLoadError(f"invalid CLI override key {dotted!r}")
        _plant(layer, key_path, overrides[dotted])
    return layer


# ---------------------------------------------------------------------------
# Environment coercion
# ---------------------------------------------------------------------------


def _to_bool(raw: str, target: str) -> bool:
    try:
        return _TRUTHY[raw.lower()]
    except KeyError:
        raise ConfigLoadError(
            f"{target} must be a boolean (true/false/1/0/yes/no)"
        ) from None


def _to_int(raw: str, target: str) -> int:
    try:
        return int(raw)
    except ValueError:
        raise ConfigLoadError(f"{target} must be an integer") from None


def _to_float(raw: str, target: str) -> float:
    try:
        return float(raw)
    except ValueError:
        raise ConfigLoadError(f"{target} must be a number") from None


def _to_str(raw: str, _target: str) -> str:
    return raw


def _coercer_for(default: object) -> Callable[[str, str], object] | None:
    # bool before int: bool is an int subclass.
    if isinstance(default, bool):
        return _to_bool
    if isinstance(default, int):
        return _to_int
    if isinstance(default, float):
        return _to_float
    if isinstance(default, str):
        return _to_str
    return None


# ---------------------------------------------------------------------------
# Nested mapping helpers
# ---------------------------------------------------------------------------


def _scalar_leaves(
    payload: Mapping[str, object], prefix: KeyPath = ()
) -> Iterator[tuple[KeyPath, object]]:
    for key in sorted(payload):
        value = payload[key]
        if isinstance(value, Mapping):
            yield from _scalar_leaves(value, (*prefix, key))
        else:
            yield (*prefix, key), value


def _dig(payload: Mapping[str, object], key_path: KeyPath) -> object | None:
    node: object = payload
    for part in key_path:
        if not isinstance(node, Mapping):
            return None
        node = node.get(part)
    return node


def _plant(target: dict[str, Any], key_path: KeyPath, value: object) -> None:
    *parents, leaf = key_path
    node = target
    for part in parents:
        child = node.get(part)
        if not isinstance(child, dict):
            child = node[part] = {}
        node = child
    node[leaf] = value


__all__ = [
    "ConfigLoadError",
    "DEFAULT_CONFIG_FILE",
    "ENV_PREFIX",
    "dump_effective_config",
    "effective_config",
    "load_config",
    "normalize_paths",
]
