"""Operational endpoints for the notification dispatcher."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status

from notification_engine.domain.entities import (
    JOB_STATUS_CLAIMED,
    JOB_STATUS_COMPLETED,
    JOB_STATUS_FAILED,
    JOB_STATUS_PENDING,
)
from notification_engine.interfaces.api.dependencies import get_runtime
from notification_engine.interfaces.api.schemas import (
    BatchResultRead,
    NotificationJobRead,
    RegenerationRead,
    SchedulerStatusRead,
)
from notification_engine.runtime import NotificationRuntime

router = APIRouter(prefix="/scheduler", tags=["scheduler"])
logger = logging.getLogger(__name__)

_JOB_STATUSES = (JOB_STATUS_PENDING, JOB_STATUS_CLAIMED, JOB_STATUS_COMPLETED, JOB_STATUS_FAILED)


@router.get("/status", response_model=SchedulerStatusRead)
def scheduler_status(
    runtime: NotificationRuntime = Depends(get_runtime),
) -> SchedulerStatusRead:
    """Report whether the dispatcher runs and how many jobs sit in each state."""

    state = runtime.dispatcher.status()
    last_result = state["last_result"]
    return SchedulerStatusRead(
        running=state["running"],
        tick_in_progress=state["tick_in_progress"],
        last_tick_at=state["last_tick_at"],
        last_result=BatchResultRead.model_validate(last_result) if last_result else None,
        jobs_by_status=runtime.jobs.count_by_status(),
    )


@router.post("/tick", response_model=BatchResultRead)
def run_tick(runtime: NotificationRuntime = Depends(get_runtime)) -> BatchResultRead:
    """Process the due jobs right away instead of waiting for the next tick."""

    result = runtime.dispatcher.tick()
    if result is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A dispatcher tick is already running",
        )
    return BatchResultRead.model_validate(result)


@router.post("/regenerate", response_model=RegenerationRead)
def regenerate_jobs(runtime: NotificationRuntime = Depends(get_runtime)) -> RegenerationRead:
    summary = runtime.dispatcher.regenerate_jobs()
    if summary is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Job regeneration failed",
        )
    return RegenerationRead.model_validate(summary)


@router.get("/jobs", response_model=list[NotificationJobRead])
def list_jobs(
    job_status: str | None = Query(default=None, alias="status"),
    user_id: str | None = Query(default=None),
    limit: int = Query(default=100, ge=1, le=500),
    runtime: NotificationRuntime = Depends(get_runtime),
) -> list[NotificationJobRead]:
    if job_status is not None and job_status not in _JOB_STATUSES:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Unknown job status '{job_status}'",
        )
    jobs = runtime.jobs.list_jobs(status=job_status, user_id=user_id, limit=limit)
    return [NotificationJobRead.model_validate(job) for job in jobs]
