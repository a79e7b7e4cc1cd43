"""
mint-portal: snapshot file loader.

File: src/mint_portal/adapters/snapshot.py

Purpose
- Read already-materialized Project/Layer/Build collections from a YAML or JSON file.

What should be included in this file
- ``PortalSnapshot`` container with id lookups.
- ``load_snapshot`` that parses the file and maps every record through the payload adapters.

Functional requirements
- Top-level keys ``projects``, ``layers`` and ``builds`` (each optional, default empty).
- Optional ``schema_version``; a different version is rejected.
- Record errors are reported with the file path and the record position.

Non-functional requirements
- Read-only; the only IO performed anywhere in the package outside logging.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Final, TypeVar

import yaml

from mint_portal.adapters.payloads import (
    build_from_mapping,
    layer_from_mapping,
    project_from_mapping,
)
from mint_portal.constants import SNAPSHOT_SCHEMA_VERSION
from mint_portal.domain.models import Build, Layer, Project

_JSON_SUFFIXES: Final[frozenset[str]] = frozenset({".json"})
_TOP_LEVEL_KEYS: Final[frozenset[str]] = frozenset(
    {"schema_version", "projects", "layers", "builds"}
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SnapshotLoadError(ValueError):
    """Raised when a snapshot file cannot be read or does not describe valid records."""

    def __init__(self, path: Path, message: str) -> None:
        self.path = path
        super().__init__(f"{path.as_posix()}: {message}")


@dataclass(frozen=True, slots=True)
class PortalSnapshot:
    """Immutable bundle of the collections the dashboard derives everything from."""

    projects: tuple[Project, ...] = ()
    layers: tuple[Layer, ...] = ()
    builds: tuple[Build, ...] = ()
    source: Path | None = field(default=None, compare=False)

    def project(self, project_id: str) -> Project | None:
        return next((item for item in self.projects if item.id == project_id), None)

    def layer(self, layer_id: str) -> Layer | None:
        return next((item for item in self.layers if item.id == layer_id), None)

    def build(self, build_id: str) -> Build | None:
        return next((item for item in self.builds if item.id == build_id), None)


def load_snapshot(path: Path | str) -> PortalSnapshot:
    """Load and validate a snapshot file."""

    snapshot_path = Path(path)
    payload = _read_payload(snapshot_path)
    if payload is None:
        payload = {}
    if not isinstance(payload, Mapping):
        raise SnapshotLoadError(snapshot_path, "top-level value must be a mapping")

    unknown = sorted(str(key) for key in payload if key not in _TOP_LEVEL_KEYS)
    if unknown:
        raise SnapshotLoadError(snapshot_path, f"unknown top-level keys: {', '.join(unknown)}")

    version = payload.get("schema_version", SNAPSHOT_SCHEMA_VERSION)
    if version != SNAPSHOT_SCHEMA_VERSION:
        raise SnapshotLoadError(
            snapshot_path,
            f"unsupported schema_version {version!r}; expected {SNAPSHOT_SCHEMA_VERSION}",
        )

    snapshot = PortalSnapshot(
        projects=_parse_records(snapshot_path, payload, "projects", project_from_mapping),
        layers=_parse_records(snapshot_path, payload, "layers", layer_from_mapping),
        builds=_parse_records(snapshot_path, payload, "builds", build_from_mapping),
        source=snapshot_path,
    )
    logger.info(
        "snapshot loaded",
        extra={
            "snapshot_path": snapshot_path.as_posix(),
            "projects": len(snapshot.projects),
            "layers": len(snapshot.layers),
            "builds": len(snapshot.builds),
        },
    )
    return snapshot


def _read_payload(path: Path) -> object:
    try:
        with path.open("r", encoding="utf-8") as handle:
            if path.suffix.lower() in _JSON_SUFFIXES:
                return json.load(handle)
            return yaml.safe_load(handle)
    except OSError as exc:
        raise SnapshotLoadError(path, f"cannot read snapshot: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise SnapshotLoadError(path, f"invalid JSON: {exc}") from exc
    except yaml.YAMLError as exc:
        raise SnapshotLoadError(path, f"invalid YAML: {exc}") from exc


def _parse_records(
    path: Path,
    payload: Mapping[str, object],
    key: str,
    parser: Callable[[Mapping[str, object]], T],
) -> tuple[T, ...]:
    raw = payload.get(key)
    if raw is None:
        return ()
    if not isinstance(raw, Sequence) or isinstance(raw, (str, bytes)):
        raise SnapshotLoadError(path, f"{key} must be a list")

    records: list[T] = []
    for index, item in enumerate(raw):
        if not isinstance(item, Mapping):
            raise SnapshotLoadError(path, f"{key}[{index}] must be a mapping")
        try:
            records.append(parser(item))
        except ValueError as exc:
            raise SnapshotLoadError(path, f"{key}[{index}]: {exc}") from exc
    return tuple(records)


__all__ = ["PortalSnapshot", "SnapshotLoadError", "load_snapshot"]
