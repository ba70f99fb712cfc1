"""Build the recurring notification schedule of every opted-in user."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from notification_engine.application.ports import JobRepository, UserActivityRepository
from notification_engine.domain.entities import (
    DEFAULT_DAILY_REMINDER_TIME,
    DEFAULT_WEEKLY_SUMMARY_DAY,
    JOB_STATUS_PENDING,
    RECURRING_NOTIFICATION_TYPES,
    NotificationJob,
    NotificationPreferences,
    NotificationType,
    UserActivity,
)
from notification_engine.utils import (
    ensure_utc,
    is_same_local_day,
    next_local_occurrence,
    next_local_weekday_occurrence,
    now_utc,
    parse_local_time,
    to_local,
)

logger = logging.getLogger(__name__)

USER_BATCH_SIZE = 200
STREAK_WARNING_OFFSET_MINUTES = 8 * 60
STREAK_WARNING_LATEST_MINUTE = 23 * 60 + 45
WEEKLY_SUMMARY_LOCAL_TIME = "19:00"
TIP_OF_THE_DAY_LOCAL_TIME = "12:00"

JobBuilder = Callable[[UserActivity, NotificationPreferences, datetime], "NotificationJob | None"]


@dataclass(frozen=True)
class RegenerationSummary:
    """Number of jobs scheduled per recurring type by one regeneration pass."""

    daily: int = 0
    streak: int = 0
    weekly: int = 0
    tips: int = 0

    @property
    def total(self) -> int:
        return self.daily + self.streak + self.weekly + self.tips


def streak_warning_local_time(reminder_time: str) -> str:
    """Return the local slot eight hours after the reminder, capped at 23:45."""

    hour, minute = parse_local_time(reminder_time)
    deadline = min(hour * 60 + minute + STREAK_WARNING_OFFSET_MINUTES, STREAK_WARNING_LATEST_MINUTE)
    return f"{deadline // 60:02d}:{deadline % 60:02d}"


def _user_timezone(activity: UserActivity, preferences: NotificationPreferences) -> str:
    return activity.timezone or preferences.timezone or "UTC"


class JobGenerator:
    """Create or refresh one pending job per user and recurring type."""

    def __init__(
        self,
        *,
        jobs: JobRepository,
        activity: UserActivityRepository,
        clock: Callable[[], datetime] = now_utc,
        batch_size: int = USER_BATCH_SIZE,
    ) -> None:
        self._jobs = jobs
        self._activity = activity
        self._clock = clock
        self._batch_size = batch_size

    def generate_daily_reminder_jobs(self) -> int:
        return self._generate(NotificationType.DAILY_REMINDER, self._daily_reminder_job)

    def generate_streak_warning_jobs(self) -> int:
        return self._generate(NotificationType.STREAK_WARNING, self._streak_warning_job)

    def generate_weekly_summary_jobs(self) -> int:
        return self._generate(NotificationType.WEEKLY_SUMMARY, self._weekly_summary_job)

    def generate_tip_jobs(self) -> int:
        return self._generate(NotificationType.TIP_OF_THE_DAY, self._tip_job)

    def regenerate_all_jobs(self) -> RegenerationSummary:
        logger.info("Starting notification job regeneration")
        summary = RegenerationSummary(
            daily=self.generate_daily_reminder_jobs(),
            streak=self.generate_streak_warning_jobs(),
            weekly=self.generate_weekly_summary_jobs(),
            tips=self.generate_tip_jobs(),
        )
        logger.info(
            "Regenerated jobs: %s daily, %s streak, %s weekly, %s tips",
            summary.daily,
            summary.streak,
            summary.weekly,
            summary.tips,
        )
        return summary

    def schedule_event(
        self,
        user_id: str,
        notification_type: NotificationType,
        facts: Mapping[str, Any],
        *,
        send_at: datetime | None = None,
        timezone: str | None = None,
    ) -> NotificationJob:
        """Queue a one-shot notification rendered from ``facts`` at send time."""

        if notification_type in RECURRING_NOTIFICATION_TYPES:
            raise ValueError(f"{notification_type.value} is scheduled by regeneration")

        meta = dict(facts)
        meta["timezone"] = timezone or "UTC"
        job = NotificationJob(
            id=None,
            user_id=user_id,
            notification_type=notification_type.value,
            send_at_utc=ensure_utc(send_at) if send_at else self._clock(),
            status=JOB_STATUS_PENDING,
            payload_meta=meta,
        )
        (created,) = self._jobs.create_jobs([job])
        return created

    def cleanup_old_jobs(self, retention_days: int) -> int:
        deleted = self._jobs.cleanup_old_jobs(retention_days, self._clock())
        logger.info("Cleaned up %s old notification jobs", deleted)
        return deleted

    def _generate(self, notification_type: NotificationType, build: JobBuilder) -> int:
        total = 0
        offset = 0
        while True:
            batch = self._activity.list_users_with_preference(
                notification_type, offset, self._batch_size
            )
            if not batch:
                break

            now = self._clock()
            jobs: list[NotificationJob] = []
            for activity, preferences in batch:
                try:
                    job = build(activity, preferences, now)
                except ValueError as exc:
                    logger.warning(
                        "Skipping %s job for user %s: %s",
                        notification_type.value,
                        activity.user_id,
                        exc,
                    )
                    continue
                if job is not None:
                    jobs.append(job)

            if jobs:
                total += self._jobs.replace_pending_jobs(jobs)

            offset += self._batch_size
            if len(batch) < self._batch_size:
                break
        return total

    def _job(
        self,
        activity: UserActivity,
        notification_type: NotificationType,
        send_at: datetime,
        local_time: str,
        tz_name: str,
        **extra: Any,
    ) -> NotificationJob:
        meta = {
            "username": activity.username,
            "timezone": tz_name,
            "local_time": local_time,
            "slot_date": to_local(send_at, tz_name).date().isoformat(),
            **extra,
        }
        return NotificationJob(
            id=None,
            user_id=activity.user_id,
            notification_type=notification_type.value,
            send_at_utc=send_at,
            status=JOB_STATUS_PENDING,
            payload_meta=meta,
        )

    def _daily_reminder_job(
        self, activity: UserActivity, preferences: NotificationPreferences, now: datetime
    ) -> NotificationJob | None:
        if not preferences.daily_reminder_time:
            return None
        tz_name = _user_timezone(activity, preferences)
        local_time = preferences.daily_reminder_time
        send_at = next_local_occurrence(local_time, tz_name, now)
        return self._job(
            activity,
            NotificationType.DAILY_REMINDER,
            send_at,
            local_time,
            tz_name,
            streak=activity.current_streak,
        )

    def _streak_warning_job(
        self, activity: UserActivity, preferences: NotificationPreferences, now: datetime
    ) -> NotificationJob | None:
        if activity.current_streak <= 0:
            return None
        tz_name = _user_timezone(activity, preferences)
        if activity.last_test_date and is_same_local_day(activity.last_test_date, now, tz_name):
            return None

        local_time = streak_warning_local_time(
            preferences.daily_reminder_time or DEFAULT_DAILY_REMINDER_TIME
        )
        send_at = next_local_occurrence(local_time, tz_name, now)
        return self._job(
            activity,
            NotificationType.STREAK_WARNING,
            send_at,
            local_time,
            tz_name,
            streak=activity.current_streak,
        )

    def _weekly_summary_job(
        self, activity: UserActivity, preferences: NotificationPreferences, now: datetime
    ) -> NotificationJob:
        tz_name = _user_timezone(activity, preferences)
        send_at = next_local_weekday_occurrence(
            preferences.weekly_summary_day or DEFAULT_WEEKLY_SUMMARY_DAY,
            WEEKLY_SUMMARY_LOCAL_TIME,
            tz_name,
            now,
        )
        return self._job(
            activity,
            NotificationType.WEEKLY_SUMMARY,
            send_at,
            WEEKLY_SUMMARY_LOCAL_TIME,
            tz_name,
        )

    def _tip_job(
        self, activity: UserActivity, preferences: NotificationPreferences, now: datetime
    ) -> NotificationJob:
        tz_name = _user_timezone(activity, preferences)
        send_at = next_local_occurrence(TIP_OF_THE_DAY_LOCAL_TIME, tz_name, now)
        return self._job(
            activity,
            NotificationType.TIP_OF_THE_DAY,
            send_at,
            TIP_OF_THE_DAY_LOCAL_TIME,
            tz_name,
        )


__all__ = [
    "JobGenerator",
    "RegenerationSummary",
    "streak_warning_local_time",
]
