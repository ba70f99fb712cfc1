"""Pydantic models describing the dispatcher state."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class BatchResultRead(BaseModel):
    """Outcome of a dispatcher tick."""

    model_config = ConfigDict(from_attributes=True)

    claimed: int
    succeeded: int
    failed: int


class SchedulerStatusRead(BaseModel):
    """Runtime state of the dispatcher and the size of its queue."""

    running: bool
    tick_in_progress: bool
    last_tick_at: datetime | None = None
    last_result: BatchResultRead | None = None
    jobs_by_status: dict[str, int] = Field(default_factory=dict)


class RegenerationRead(BaseModel):
    """Jobs scheduled per recurring type by a regeneration pass."""

    model_config = ConfigDict(from_attributes=True)

    daily: int
    streak: int
    weekly: int
    tips: int
    total: int


class NotificationJobRead(BaseModel):
    """Representation of a queued notification job."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: str
    notification_type: str
    send_at_utc: datetime
    status: str
    attempt_count: int
    payload_meta: dict[str, Any] = Field(default_factory=dict)
    last_attempt_at: datetime | None = None
    error_message: str | None = None
    completed_at: datetime | None = None


__all__ = [
    "BatchResultRead",
    "NotificationJobRead",
    "RegenerationRead",
    "SchedulerStatusRead",
]
