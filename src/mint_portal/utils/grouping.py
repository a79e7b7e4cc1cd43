"""Single grouping helper shared by the dashboard rollup and UI-facing views."""

from __future__ import annotations

from collections.abc import Callable, Hashable, Iterable
from typing import TypeVar

T = TypeVar("T")
K = TypeVar("K", bound=Hashable)

__all__ = ["count_by", "group_by"]


def group_by(items: Iterable[T], key: Callable[[T], K]) -> dict[K, list[T]]:
    """
    Group ``items`` by ``key``.

    Groups appear in first-seen order and each group keeps the input order of
    its members, so callers can rely on deterministic output for stable input.
    """

    groups: dict[K, list[T]] = {}
    for item in items:
        groups.setdefault(key(item), []).append(item)
    return groups


def count_by(items: Iterable[T], key: Callable[[T], K]) -> dict[K, int]:
    return {group: len(members) for group, members in group_by(items, key).items()}
