"""Use cases that schedule, render and deliver push notifications."""

from .dedup import DedupCache
from .delivery import DeliveryService
from .dispatcher import (
    BatchResult,
    Dispatcher,
    DispatcherSettings,
    backoff_delay,
    next_occurrence,
)
from .job_generator import JobGenerator, RegenerationSummary
from .messages import OutgoingNotification, build_from_event, tip_for_day

__all__ = [
    "BatchResult",
    "DedupCache",
    "DeliveryService",
    "Dispatcher",
    "DispatcherSettings",
    "JobGenerator",
    "OutgoingNotification",
    "RegenerationSummary",
    "backoff_delay",
    "build_from_event",
    "next_occurrence",
    "tip_for_day",
]
