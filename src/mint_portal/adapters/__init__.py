"""Adapter boundary: raw payloads and CI vocabulary in, validated domain snapshots out."""

from mint_portal.adapters.bamboo import (
    normalize_build_status,
    normalize_stage_name,
    normalize_stage_status,
    stage_quality_result,
)
from mint_portal.adapters.payloads import (
    build_from_mapping,
    layer_from_mapping,
    project_from_mapping,
)
from mint_portal.adapters.snapshot import PortalSnapshot, SnapshotLoadError, load_snapshot

__all__ = [
    "PortalSnapshot",
    "SnapshotLoadError",
    "build_from_mapping",
    "layer_from_mapping",
    "load_snapshot",
    "normalize_build_status",
    "normalize_stage_name",
    "normalize_stage_status",
    "project_from_mapping",
    "stage_quality_result",
]
