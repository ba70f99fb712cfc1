"""Domain entity holding the notification settings chosen by a user."""

from __future__ import annotations

from dataclasses import dataclass

from .notification_job import NotificationType

DEFAULT_DAILY_REMINDER_TIME = "09:00"
DEFAULT_WEEKLY_SUMMARY_DAY = "sunday"

# Each notification type is controlled by exactly one preference flag.
PREFERENCE_FLAG_BY_TYPE: dict[NotificationType, str] = {
    NotificationType.DAILY_REMINDER: "daily_reminder",
    NotificationType.STREAK_WARNING: "streak_warning",
    NotificationType.STREAK_MILESTONE: "streak_milestone",
    NotificationType.WEEKLY_SUMMARY: "weekly_summary",
    NotificationType.ACHIEVEMENT_UNLOCK: "achievement_unlocked",
    NotificationType.CHALLENGE_STARTED: "challenge_invite",
    NotificationType.CHALLENGE_PROGRESS: "challenge_invite",
    NotificationType.CHALLENGE_COMPLETED: "challenge_complete",
    NotificationType.LEADERBOARD_UPDATE: "leaderboard_change",
    NotificationType.PERSONAL_RECORD: "new_personal_record",
    NotificationType.RACE_INVITE: "race_invite",
    NotificationType.RACE_STARTING: "race_starting",
    NotificationType.TIP_OF_THE_DAY: "tip_of_the_day",
}


@dataclass
class NotificationPreferences:
    """Per-type switches, quiet hours and timezone of a single user."""

    user_id: str
    daily_reminder: bool = True
    daily_reminder_time: str | None = DEFAULT_DAILY_REMINDER_TIME
    streak_warning: bool = True
    streak_milestone: bool = True
    weekly_summary: bool = True
    weekly_summary_day: str | None = DEFAULT_WEEKLY_SUMMARY_DAY
    achievement_unlocked: bool = True
    challenge_invite: bool = True
    challenge_complete: bool = True
    leaderboard_change: bool = False
    new_personal_record: bool = True
    race_invite: bool = True
    race_starting: bool = True
    tip_of_the_day: bool = True
    timezone: str | None = "UTC"
    quiet_hours_start: str | None = None
    quiet_hours_end: str | None = None

    def is_enabled(self, notification_type: NotificationType | str) -> bool:
        """Return the flag controlling ``notification_type``."""

        flag = PREFERENCE_FLAG_BY_TYPE.get(NotificationType(notification_type))
        if flag is None:
            return True
        return bool(getattr(self, flag))

    @property
    def per_type_enabled(self) -> dict[NotificationType, bool]:
        """Return the resolved switch for every notification type."""

        return {kind: self.is_enabled(kind) for kind in NotificationType}


__all__ = [
    "DEFAULT_DAILY_REMINDER_TIME",
    "DEFAULT_WEEKLY_SUMMARY_DAY",
    "NotificationPreferences",
    "PREFERENCE_FLAG_BY_TYPE",
]
