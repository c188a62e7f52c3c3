"""Quiet hours and notification spacing for Umbrella Alert.

Pure functions: callers pass ``now`` (an aware datetime in the user's
local timezone) explicitly. No clock is read here.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime

from .const import MIN_NOTIFICATION_SPACING_MS
from .models import NotificationState

REASON_DISABLED = "disabled"
REASON_QUIET_HOURS = "quiet_hours"
REASON_TOO_SOON = "too_soon"


def to_epoch_ms(now: datetime) -> int:
    return int(now.timestamp() * 1000)


def in_window(hour: int, start_hour: int, end_hour: int) -> bool:
    """Whether ``hour`` lies in the half-open window [start, end).

    A start after the end wraps past midnight (22..6 allows 22:00-05:59).
    Equal start and end is an empty window.
    """
    if start_hour == end_hour:
        return False
    if start_hour < end_hour:
        return start_hour <= hour < end_hour
    return hour >= start_hour or hour < end_hour


def denial_reason(now: datetime, state: NotificationState) -> str | None:
    """Name of the first rule that blocks a notification, or None."""
    if not state.enabled:
        return REASON_DISABLED
    if not in_window(now.hour, state.window_start_hour, state.window_end_hour):
        return REASON_QUIET_HOURS
    if to_epoch_ms(now) - state.last_sent_at_ms < MIN_NOTIFICATION_SPACING_MS:
        return REASON_TOO_SOON
    return None


def is_allowed(now: datetime, state: NotificationState) -> bool:
    return denial_reason(now, state) is None


def record_sent(state: NotificationState, now: datetime) -> NotificationState:
    """Copy of ``state`` stamped with ``now`` as the last send time."""
    return replace(state, last_sent_at_ms=to_epoch_ms(now))
