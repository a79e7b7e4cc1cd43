"""Utility exports for grouping and time-window helpers."""

from mint_portal.utils.grouping import count_by, group_by
from mint_portal.utils.timewindow import is_within_window

__all__ = ["count_by", "group_by", "is_within_window"]
