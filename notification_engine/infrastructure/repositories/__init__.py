"""Repository implementations for infrastructure layer."""

from .notification_history_repository import NotificationHistoryRepository
from .notification_job_repository import NotificationJobRepository
from .notification_preferences_repository import NotificationPreferencesRepository
from .push_subscription_repository import PushSubscriptionRepository
from .user_activity_repository import UserActivityRepository

__all__ = [
    "NotificationHistoryRepository",
    "NotificationJobRepository",
    "NotificationPreferencesRepository",
    "PushSubscriptionRepository",
    "UserActivityRepository",
]
