"""Pydantic models describing delivered notifications."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class NotificationHistoryRead(BaseModel):
    """One recorded push attempt."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: str
    type: str
    title: str
    body: str
    status: str
    sent_at: datetime
    data: dict[str, Any] = Field(default_factory=dict)
    error_message: str | None = None


__all__ = ["NotificationHistoryRead"]
