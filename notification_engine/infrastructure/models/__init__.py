"""ORM models used by the engine infrastructure."""

from .notification_history import NotificationHistoryModel
from .notification_job import NotificationJobModel
from .notification_preferences import NotificationPreferencesModel
from .push_subscription import PushSubscriptionModel
from .user_activity import UserActivityModel

__all__ = [
    "NotificationHistoryModel",
    "NotificationJobModel",
    "NotificationPreferencesModel",
    "PushSubscriptionModel",
    "UserActivityModel",
]
