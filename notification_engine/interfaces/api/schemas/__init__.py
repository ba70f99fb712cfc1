from .notification import NotificationHistoryRead
from .scheduler import (
    BatchResultRead,
    NotificationJobRead,
    RegenerationRead,
    SchedulerStatusRead,
)

__all__ = [
    "BatchResultRead",
    "NotificationHistoryRead",
    "NotificationJobRead",
    "RegenerationRead",
    "SchedulerStatusRead",
]
