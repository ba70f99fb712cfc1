"""Domain entities exposed by the engine."""

from .notification_history import (
    HISTORY_STATUS_FAILED,
    HISTORY_STATUS_SENT,
    NotificationHistory,
)
from .notification_job import (
    HIGH_URGENCY_NOTIFICATION_TYPES,
    JOB_STATUS_CLAIMED,
    JOB_STATUS_COMPLETED,
    JOB_STATUS_FAILED,
    JOB_STATUS_PENDING,
    RECURRING_NOTIFICATION_TYPES,
    TERMINAL_JOB_STATUSES,
    NotificationJob,
    NotificationType,
)
from .notification_payload import (
    URGENCY_HIGH,
    URGENCY_NORMAL,
    DeliveryOptions,
    DeliveryResult,
    NotificationAction,
    NotificationPayload,
)
from .notification_preferences import (
    DEFAULT_DAILY_REMINDER_TIME,
    DEFAULT_WEEKLY_SUMMARY_DAY,
    PREFERENCE_FLAG_BY_TYPE,
    NotificationPreferences,
)
from .push_subscription import PushSubscription
from .user_activity import UserActivity, WeeklySummaryStats

__all__ = [
    "DEFAULT_DAILY_REMINDER_TIME",
    "DEFAULT_WEEKLY_SUMMARY_DAY",
    "DeliveryOptions",
    "DeliveryResult",
    "HIGH_URGENCY_NOTIFICATION_TYPES",
    "HISTORY_STATUS_FAILED",
    "HISTORY_STATUS_SENT",
    "JOB_STATUS_CLAIMED",
    "JOB_STATUS_COMPLETED",
    "JOB_STATUS_FAILED",
    "JOB_STATUS_PENDING",
    "NotificationAction",
    "NotificationHistory",
    "NotificationJob",
    "NotificationPayload",
    "NotificationPreferences",
    "NotificationType",
    "PREFERENCE_FLAG_BY_TYPE",
    "PushSubscription",
    "RECURRING_NOTIFICATION_TYPES",
    "TERMINAL_JOB_STATUSES",
    "URGENCY_HIGH",
    "URGENCY_NORMAL",
    "UserActivity",
    "WeeklySummaryStats",
]
