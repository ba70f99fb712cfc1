"""Endpoints exposing the notification delivery log."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from notification_engine.interfaces.api.dependencies import get_runtime
from notification_engine.interfaces.api.schemas import NotificationHistoryRead
from notification_engine.runtime import NotificationRuntime

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("/history/{user_id}", response_model=list[NotificationHistoryRead])
def list_history(
    user_id: str,
    limit: int = Query(default=50, ge=1, le=200),
    runtime: NotificationRuntime = Depends(get_runtime),
) -> list[NotificationHistoryRead]:
    """Return the most recent delivery attempts for ``user_id``."""

    records = runtime.history.list_for_user(user_id, limit=limit)
    return [NotificationHistoryRead.model_validate(record) for record in records]
