"""
mint-portal: raw payload to domain snapshot mapping.

File: src/mint_portal/adapters/payloads.py

Purpose
- Turn persistence or CI payloads (camelCase or snake_case) into validated domain objects.

What should be included in this file
- Project/Layer/Build constructors that normalize statuses and stage names first.
- Legacy layer flags (``buildEnabled``/``samEnabled``/``coverityEnabled``) folded into a
  default pipeline configuration when no explicit stage list is stored.

Functional requirements
- Unknown status strings never reach the core; they raise ``MissingDataError``.
- Input mappings are never mutated.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import replace
from typing import Final, cast

from mint_portal.adapters.bamboo import (
    normalize_build_status,
    normalize_stage_name,
    normalize_stage_status,
)
from mint_portal.constants import STAGE_BUILD, STAGE_COVERITY, STAGE_SAM
from mint_portal.domain.errors import MissingDataError
from mint_portal.domain.models import Build, Layer, Project, StageConfig
from mint_portal.pipeline.configuration import default_pipeline_config

_LEGACY_STAGE_FLAGS: Final[tuple[tuple[str, str], ...]] = (
    ("build_enabled", STAGE_BUILD),
    ("sam_enabled", STAGE_SAM),
    ("coverity_enabled", STAGE_COVERITY),
)


def project_from_mapping(payload: Mapping[str, object]) -> Project:
    return Project.from_mapping(payload)


def layer_from_mapping(payload: Mapping[str, object]) -> Layer:
    """Build a ``Layer``; a missing stage list falls back to the layer type's default."""

    _require_mapping(payload, "layer")
    stages = _lookup(payload, "pipeline_config")
    if stages:
        return Layer.from_mapping(payload)

    layer = Layer.from_mapping({**payload, "pipeline_config": []})
    config = _apply_legacy_flags(default_pipeline_config(layer.type), payload)
    return layer.with_pipeline_config(config)


def build_from_mapping(
    payload: Mapping[str, object], *, normalize_stage_names: bool = False
) -> Build:
    """Build a ``Build`` after normalizing CI statuses (and optionally stage names)."""

    _require_mapping(payload, "build")
    normalized: dict[str, object] = dict(payload)
    normalized.pop("status", None)
    normalized["status"] = normalize_build_status(_as_status_text(_lookup(payload, "status")))

    raw_stages = _lookup(payload, "stages")
    if raw_stages is not None:
        if not isinstance(raw_stages, (list, tuple)):
            raise MissingDataError("expected array of stages", field="stages")
        normalized["stages"] = [
            _normalize_stage(item, index, rename=normalize_stage_names)
            for index, item in enumerate(raw_stages)
        ]
    return Build.from_mapping(normalized)


def _normalize_stage(item: object, index: int, *, rename: bool) -> dict[str, object]:
    path = f"stages[{index}]"
    source = _require_mapping(item, path)
    stage = dict(source)
    try:
        stage["status"] = normalize_stage_status(_as_status_text(_lookup(source, "status")))
        if rename:
            stage["name"] = normalize_stage_name(str(_lookup(source, "name") or ""))
    except MissingDataError as exc:
        raise MissingDataError(exc.detail, field=f"{path}.{exc.field or 'status'}") from exc
    return stage


def _apply_legacy_flags(
    config: tuple[StageConfig, ...], payload: Mapping[str, object]
) -> tuple[StageConfig, ...]:
    flags: dict[str, bool] = {}
    for key, stage_name in _LEGACY_STAGE_FLAGS:
        value = _lookup(payload, key)
        if value is None:
            continue
        if not isinstance(value, bool):
            raise MissingDataError(f"expected boolean, got {type(value).__name__}", field=key)
        flags[stage_name] = value

    adjusted: list[StageConfig] = []
    for stage in config:
        enabled = flags.get(stage.name)
        if enabled is None or enabled == stage.enabled:
            adjusted.append(stage)
        elif enabled:
            adjusted.append(replace(stage, enabled=True))
        else:
            adjusted.append(replace(stage, enabled=False, required=False))
    return tuple(adjusted)


def _lookup(payload: Mapping[str, object], snake_name: str) -> object:
    if payload.get(snake_name) is not None:
        return payload[snake_name]
    head, *rest = snake_name.split("_")
    camel = head + "".join(part.title() for part in rest)
    return payload.get(camel)


def _as_status_text(value: object) -> str | None:
    if value is None or isinstance(value, str):
        return value
    raise MissingDataError(f"expected status string, got {type(value).__name__}", field="status")


def _require_mapping(value: object, path: str) -> Mapping[str, object]:
    if not isinstance(value, Mapping):
        raise MissingDataError(f"expected object, got {type(value).__name__}", field=path)
    return cast("Mapping[str, object]", value)


__all__ = [
    "build_from_mapping",
    "layer_from_mapping",
    "project_from_mapping",
]
