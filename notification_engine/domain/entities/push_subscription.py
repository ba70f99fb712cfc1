"""Domain entity representing a device registered for push delivery."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass
class PushSubscription:
    """Transport address and credentials for one of a user's devices."""

    id: int | None
    user_id: str
    endpoint: str
    keys: dict[str, Any] = field(default_factory=dict)
    is_active: bool = True
    user_agent: str | None = None
    expiration_time: int | None = None
    last_used: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
