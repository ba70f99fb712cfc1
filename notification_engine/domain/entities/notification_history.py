"""Domain entity recording a single delivery attempt."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

HISTORY_STATUS_SENT = "sent"
HISTORY_STATUS_FAILED = "failed"


@dataclass
class NotificationHistory:
    """Append-only log entry for one subscription delivery attempt."""

    id: int | None
    user_id: str
    type: str
    title: str
    body: str
    status: str
    sent_at: datetime
    data: dict[str, Any] = field(default_factory=dict)
    error_message: str | None = None


__all__ = ["HISTORY_STATUS_FAILED", "HISTORY_STATUS_SENT", "NotificationHistory"]
