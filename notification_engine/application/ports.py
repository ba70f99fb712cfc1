"""Contracts the engine consumes from storage and the push transport.

The dispatcher and the delivery service only depend on these protocols, so the
SQLAlchemy repositories, the HTTP deliverer and the in-memory doubles used by the
tests are interchangeable.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import Any, Protocol

from notification_engine.domain.entities import (
    DeliveryOptions,
    NotificationHistory,
    NotificationJob,
    NotificationPreferences,
    NotificationType,
    PushSubscription,
    UserActivity,
    WeeklySummaryStats,
)


class JobRepository(Protocol):
    """Persistence of notification jobs and their state transitions."""

    def claim_due_jobs(self, now: datetime, limit: int) -> list[NotificationJob]:
        """Atomically move up to ``limit`` due pending jobs to ``claimed``.

        Implementations must perform the read and the state change as one
        conditional update so that concurrent callers never receive the same
        job.
        """
        ...

    def mark_completed(self, job_id: int) -> None:
        ...

    def reschedule_job(
        self, job_id: int, next_utc: datetime, *, error: str | None = None
    ) -> None:
        """Return the job to ``pending`` at ``next_utc`` and bump its attempts."""
        ...

    def mark_failed(self, job_id: int, reason: str) -> None:
        ...

    def create_jobs(self, jobs: Sequence[NotificationJob]) -> list[NotificationJob]:
        ...

    def replace_pending_jobs(self, jobs: Sequence[NotificationJob]) -> int:
        """Upsert one pending job per ``(user_id, notification_type)``.

        Pending jobs waiting for a retry are left untouched. Returns the number
        of jobs written.
        """
        ...

    def release_stale_claims(self, older_than: datetime) -> int:
        ...

    def cleanup_old_jobs(self, retention_days: int, now: datetime) -> int:
        """Delete terminal jobs older than ``retention_days``."""
        ...

    def count_by_status(self) -> dict[str, int]:
        ...

    def list_jobs(
        self,
        *,
        status: str | None = None,
        user_id: str | None = None,
        limit: int = 100,
    ) -> list[NotificationJob]:
        ...


class SubscriptionRepository(Protocol):
    """Access to the push endpoints registered by users."""

    def list_active_for_user(self, user_id: str) -> list[PushSubscription]:
        ...

    def deactivate(self, subscription_id: int) -> None:
        ...

    def mark_used(self, subscription_id: int, used_at: datetime) -> None:
        ...


class PreferencesRepository(Protocol):
    """Read access to user notification preferences."""

    def get_for_user(self, user_id: str) -> NotificationPreferences | None:
        ...


class HistoryRepository(Protocol):
    """Append-only delivery log."""

    def create(self, record: NotificationHistory) -> NotificationHistory:
        ...

    def cleanup_older_than(self, retention_days: int, now: datetime) -> int:
        ...

    def list_for_user(self, user_id: str, limit: int = 50) -> list[NotificationHistory]:
        """Return the most recent records first."""
        ...


class UserActivityRepository(Protocol):
    """Facts computed by the statistics subsystem."""

    def get(self, user_id: str) -> UserActivity | None:
        ...

    def get_weekly_summary(self, user_id: str) -> WeeklySummaryStats:
        ...

    def list_users_with_preference(
        self, notification_type: NotificationType, offset: int, limit: int
    ) -> list[tuple[UserActivity, NotificationPreferences]]:
        """Return users that enabled ``notification_type``, ordered by id."""
        ...


class PushDeliverer(Protocol):
    """Opaque push transport."""

    def send(
        self,
        subscription: PushSubscription,
        payload: dict[str, Any],
        options: DeliveryOptions,
    ) -> None:
        """Deliver ``payload`` or raise ``PushDeliveryError``."""
        ...


__all__ = [
    "HistoryRepository",
    "JobRepository",
    "PreferencesRepository",
    "PushDeliverer",
    "SubscriptionRepository",
    "UserActivityRepository",
]
