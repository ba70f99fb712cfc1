"""Helpers for working with timezone-aware datetimes.

Every instant handled by the engine is an aware UTC ``datetime``. Users express
their schedules as local wall-clock values (``"HH:MM"`` strings in their own
timezone), so the recurrence helpers below do their arithmetic on the local
calendar and only convert back to UTC at the end. That keeps a ``09:00`` reminder
at ``09:00`` across daylight-saving transitions.
"""

from __future__ import annotations

import logging
import math
import re
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from functools import lru_cache
from typing import Final

from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

UTC: Final[timezone] = timezone.utc
_DEFAULT_TIMEZONE: Final[str] = "UTC"
_OFFSET_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"^(?:UTC|GMT)(?P<sign>[+-])(?P<hours>\d{1,2})(?::?(?P<minutes>\d{2}))?$",
    re.IGNORECASE,
)
_LOCAL_TIME_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"^(?P<hour>\d{1,2}):(?P<minute>\d{2})$"
)
_WEEKDAYS: Final[dict[str, int]] = {
    "monday": 0,
    "tuesday": 1,
    "wednesday": 2,
    "thursday": 3,
    "friday": 4,
    "saturday": 5,
    "sunday": 6,
}


def now_utc() -> datetime:
    """Return the current time as an aware UTC datetime."""

    return datetime.now(tz=UTC)


@lru_cache(maxsize=256)
def resolve_timezone(tz_name: str | None) -> tzinfo:
    """Resolve ``tz_name`` into a ``tzinfo`` instance.

    IANA names are resolved through :mod:`zoneinfo`. Fixed offsets such as
    ``UTC+05:30`` or ``GMT-3`` are accepted as a fallback. Anything else resolves
    to UTC.
    """

    name = (tz_name or "").strip() or _DEFAULT_TIMEZONE
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        match = _OFFSET_PATTERN.match(name)
        if match:
            sign = -1 if match.group("sign") == "-" else 1
            hours = int(match.group("hours"))
            minutes = int(match.group("minutes") or 0)
            offset = timedelta(hours=hours, minutes=minutes)
            return timezone(sign * offset)
    logger.warning("Unknown timezone '%s'; falling back to UTC", name)
    return UTC


def now_utc_naive() -> datetime:
    """Return the current UTC time without ``tzinfo`` for database defaults."""

    return datetime.now(tz=UTC).replace(tzinfo=None)


def ensure_utc(value: datetime | None) -> datetime | None:
    """Normalize ``value`` to an aware UTC datetime (naive values are UTC)."""

    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def ensure_utc_naive(value: datetime | None) -> datetime | None:
    """Return ``value`` expressed in UTC but without ``tzinfo``.

    Not every database backend keeps the offset of ``DATETIME`` columns, so the
    repositories store naive UTC values and re-attach the zone when reading.
    """

    normalized = ensure_utc(value)
    if normalized is None:
        return None
    return normalized.replace(tzinfo=None)


def to_local(instant: datetime, tz_name: str | None) -> datetime:
    """Return ``instant`` converted to the wall clock of ``tz_name``."""

    return ensure_utc(instant).astimezone(resolve_timezone(tz_name))


def parse_local_time(value: str) -> tuple[int, int]:
    """Parse an ``HH:MM`` string into ``(hour, minute)``.

    Raises ``ValueError`` when the string is malformed or out of range.
    """

    match = _LOCAL_TIME_PATTERN.match((value or "").strip())
    if not match:
        raise ValueError(f"Invalid local time '{value}', expected HH:MM")
    hour = int(match.group("hour"))
    minute = int(match.group("minute"))
    if hour > 23 or minute > 59:
        raise ValueError(f"Local time '{value}' is out of range")
    return hour, minute


def local_time_of(instant: datetime, tz_name: str | None) -> str:
    """Return the ``HH:MM`` wall-clock value of ``instant`` in ``tz_name``."""

    local = to_local(instant, tz_name)
    return f"{local.hour:02d}:{local.minute:02d}"


def is_minute_in_window(current: int, start: int, end: int) -> bool:
    """Return ``True`` when minute-of-day ``current`` lies in ``[start, end)``.

    A window whose start is after its end crosses midnight.
    """

    if start > end:
        return current >= start or current < end
    return start <= current < end


def is_in_quiet_hours(
    quiet_hours_start: str | None,
    quiet_hours_end: str | None,
    tz_name: str | None,
    now: datetime,
) -> bool:
    """Return ``True`` when ``now`` falls inside the user's quiet window.

    A missing bound disables quiet hours. A malformed bound is logged and treated
    as "not quiet" so the notification is allowed through.
    """

    if not quiet_hours_start or not quiet_hours_end:
        return False

    try:
        start_hour, start_minute = parse_local_time(quiet_hours_start)
        end_hour, end_minute = parse_local_time(quiet_hours_end)
    except ValueError as exc:
        logger.warning("Ignoring invalid quiet hours: %s", exc)
        return False

    local_now = to_local(now, tz_name)
    current = local_now.hour * 60 + local_now.minute
    return is_minute_in_window(
        current, start_hour * 60 + start_minute, end_hour * 60 + end_minute
    )


def _localize(day: date, wall_time: time, zone: tzinfo) -> datetime:
    return datetime.combine(day, wall_time).replace(tzinfo=zone).astimezone(UTC)


def add_local_interval(
    instant: datetime,
    tz_name: str | None,
    *,
    days: int = 0,
    weeks: int = 0,
    local_time: str | None = None,
) -> datetime:
    """Move ``instant`` forward on the local calendar and return the UTC result.

    The local date of ``instant`` is advanced by ``days``/``weeks`` and combined
    with ``local_time`` (or the original local wall-clock time when omitted).
    """

    zone = resolve_timezone(tz_name)
    local = ensure_utc(instant).astimezone(zone)
    if local_time:
        hour, minute = parse_local_time(local_time)
        wall_time = time(hour, minute)
    else:
        wall_time = local.time().replace(tzinfo=None)
    target_day = local.date() + timedelta(days=days, weeks=weeks)
    return _localize(target_day, wall_time, zone)


def local_day_at(day: date, local_time: str, tz_name: str | None) -> datetime:
    """Return the UTC instant of ``local_time`` on the local calendar ``day``."""

    hour, minute = parse_local_time(local_time)
    return _localize(day, time(hour, minute), resolve_timezone(tz_name))


def next_local_occurrence(local_time: str, tz_name: str | None, now: datetime) -> datetime:
    """Return the next UTC instant, strictly after ``now``, at ``local_time``."""

    zone = resolve_timezone(tz_name)
    hour, minute = parse_local_time(local_time)
    today = ensure_utc(now).astimezone(zone).date()
    candidate = _localize(today, time(hour, minute), zone)
    if candidate <= ensure_utc(now):
        candidate = _localize(today + timedelta(days=1), time(hour, minute), zone)
    return candidate


def next_local_weekday_occurrence(
    weekday: str, local_time: str, tz_name: str | None, now: datetime
) -> datetime:
    """Return the next UTC instant at ``local_time`` on the named ``weekday``."""

    try:
        target_weekday = _WEEKDAYS[(weekday or "").strip().lower()]
    except KeyError as exc:
        raise ValueError(f"Unknown weekday '{weekday}'") from exc

    zone = resolve_timezone(tz_name)
    hour, minute = parse_local_time(local_time)
    today = ensure_utc(now).astimezone(zone).date()
    day = today + timedelta(days=(target_weekday - today.weekday()) % 7)
    candidate = _localize(day, time(hour, minute), zone)
    if candidate <= ensure_utc(now):
        candidate = _localize(day + timedelta(weeks=1), time(hour, minute), zone)
    return candidate


def is_same_local_day(first: datetime, second: datetime, tz_name: str | None) -> bool:
    """Return ``True`` when both instants share a calendar day in ``tz_name``."""

    return to_local(first, tz_name).date() == to_local(second, tz_name).date()


def hours_until_local_midnight(tz_name: str | None, now: datetime) -> int:
    """Return the whole hours (rounded up) left in the user's local day."""

    zone = resolve_timezone(tz_name)
    local_now = ensure_utc(now).astimezone(zone)
    midnight = _localize(local_now.date() + timedelta(days=1), time(0, 0), zone)
    remaining = (midnight - ensure_utc(now)).total_seconds() / 3600
    return max(0, math.ceil(remaining))


__all__ = [
    "UTC",
    "add_local_interval",
    "ensure_utc",
    "ensure_utc_naive",
    "hours_until_local_midnight",
    "is_in_quiet_hours",
    "is_minute_in_window",
    "is_same_local_day",
    "local_time_of",
    "next_local_occurrence",
    "next_local_weekday_occurrence",
    "now_utc",
    "now_utc_naive",
    "parse_local_time",
    "resolve_timezone",
    "to_local",
]
