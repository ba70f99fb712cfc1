"""Domain entity representing a scheduled notification job."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any

JOB_STATUS_PENDING = "pending"
JOB_STATUS_CLAIMED = "claimed"
JOB_STATUS_COMPLETED = "completed"
JOB_STATUS_FAILED = "failed"

TERMINAL_JOB_STATUSES = frozenset({JOB_STATUS_COMPLETED, JOB_STATUS_FAILED})


class NotificationType(str, Enum):
    """Closed set of notification kinds handled by the engine."""

    DAILY_REMINDER = "daily_reminder"
    STREAK_WARNING = "streak_warning"
    WEEKLY_SUMMARY = "weekly_summary"
    TIP_OF_THE_DAY = "tip_of_the_day"
    ACHIEVEMENT_UNLOCK = "achievement_unlock"
    CHALLENGE_STARTED = "challenge_started"
    CHALLENGE_PROGRESS = "challenge_progress"
    CHALLENGE_COMPLETED = "challenge_completed"
    LEADERBOARD_UPDATE = "leaderboard_update"
    RACE_INVITE = "race_invite"
    RACE_STARTING = "race_starting"
    PERSONAL_RECORD = "personal_record"
    STREAK_MILESTONE = "streak_milestone"


RECURRING_NOTIFICATION_TYPES = frozenset(
    {
        NotificationType.DAILY_REMINDER,
        NotificationType.STREAK_WARNING,
        NotificationType.WEEKLY_SUMMARY,
        NotificationType.TIP_OF_THE_DAY,
    }
)

# Time-critical types delivered even during the user's quiet hours.
HIGH_URGENCY_NOTIFICATION_TYPES = frozenset(
    {NotificationType.RACE_INVITE, NotificationType.RACE_STARTING}
)


@dataclass
class NotificationJob:
    """Send ``notification_type`` to ``user_id`` at ``send_at_utc``."""

    id: int | None
    user_id: str
    notification_type: str
    send_at_utc: datetime
    status: str = JOB_STATUS_PENDING
    attempt_count: int = 0
    payload_meta: dict[str, Any] = field(default_factory=dict)
    last_attempt_at: datetime | None = None
    error_message: str | None = None
    claimed_at: datetime | None = None
    completed_at: datetime | None = None
    created_at: datetime | None = None

    @property
    def timezone(self) -> str:
        """Return the IANA timezone the job was scheduled in."""

        return str((self.payload_meta or {}).get("timezone") or "UTC")

    @property
    def local_time(self) -> str | None:
        """Return the local ``HH:MM`` slot a recurring job is pinned to."""

        value = (self.payload_meta or {}).get("local_time")
        return str(value) if value else None

    @property
    def slot_date(self) -> date | None:
        """Return the local calendar day of the slot a recurring job belongs to.

        Retries move ``send_at_utc`` but never this date.
        """

        value = (self.payload_meta or {}).get("slot_date")
        if not value:
            return None
        try:
            return date.fromisoformat(str(value))
        except ValueError:
            return None

    def is_terminal(self) -> bool:
        """Return ``True`` once the job can never be claimed again."""

        return self.status in TERMINAL_JOB_STATUSES


__all__ = [
    "HIGH_URGENCY_NOTIFICATION_TYPES",
    "JOB_STATUS_CLAIMED",
    "JOB_STATUS_COMPLETED",
    "JOB_STATUS_FAILED",
    "JOB_STATUS_PENDING",
    "NotificationJob",
    "NotificationType",
    "RECURRING_NOTIFICATION_TYPES",
    "TERMINAL_JOB_STATUSES",
]
