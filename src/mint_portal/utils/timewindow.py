"""
mint-portal: time window checks with an explicit clock.

File: src/mint_portal/utils/timewindow.py

Purpose
- Answer "is this instant inside [start, end]" for scheduled content such as popups.

Functional requirements
- Both bounds are inclusive.
- The caller always supplies ``now``; nothing here reads the system clock.
- Naive datetimes are interpreted as UTC so mixed inputs compare safely.
"""

from __future__ import annotations

from datetime import UTC, datetime

__all__ = ["is_within_window"]


def is_within_window(now: datetime, start: datetime | None, end: datetime | None) -> bool:
    """Return whether ``start <= now <= end``; a missing bound is open-ended."""

    current = _as_aware(now)
    if start is not None and current < _as_aware(start):
        return False
    if end is not None and current > _as_aware(end):
        return False
    return True


def _as_aware(value: datetime) -> datetime:
    if value.tzinfo is None or value.utcoffset() is None:
        return value.replace(tzinfo=UTC)
    return value
