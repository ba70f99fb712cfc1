"""Utility helpers for reusable functionality."""

from .datetime import (
    UTC,
    add_local_interval,
    ensure_utc,
    ensure_utc_naive,
    hours_until_local_midnight,
    is_in_quiet_hours,
    is_minute_in_window,
    is_same_local_day,
    local_day_at,
    local_time_of,
    next_local_occurrence,
    next_local_weekday_occurrence,
    now_utc,
    now_utc_naive,
    parse_local_time,
    resolve_timezone,
    to_local,
)

__all__ = [
    "UTC",
    "add_local_interval",
    "ensure_utc",
    "ensure_utc_naive",
    "hours_until_local_midnight",
    "is_in_quiet_hours",
    "is_minute_in_window",
    "is_same_local_day",
    "local_day_at",
    "local_time_of",
    "next_local_occurrence",
    "next_local_weekday_occurrence",
    "now_utc",
    "now_utc_naive",
    "parse_local_time",
    "resolve_timezone",
    "to_local",
]
