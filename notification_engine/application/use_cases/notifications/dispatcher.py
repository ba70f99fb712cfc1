"""Periodic engine that claims due jobs and drives them to completion.

Every tick claims a batch of due jobs through the repository's atomic claim and
processes each job on a worker thread. A job that raises never affects the
others: it is either rescheduled with exponential backoff or failed for good,
and recurring types get their next local occurrence queued once they complete.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from notification_engine.application.errors import (
    DeliveryFailedError,
    NonRetryableJobError,
    UnknownNotificationTypeError,
)
from notification_engine.application.ports import (
    HistoryRepository,
    JobRepository,
    UserActivityRepository,
)
from notification_engine.domain.entities import (
    RECURRING_NOTIFICATION_TYPES,
    DeliveryResult,
    NotificationJob,
    NotificationType,
)
from notification_engine.utils import (
    UTC,
    add_local_interval,
    hours_until_local_midnight,
    is_same_local_day,
    local_day_at,
    now_utc,
    to_local,
)

from .delivery import OPT_OUT_SKIP_REASONS, SKIP_NOT_IMPROVED, DeliveryService
from .job_generator import JobGenerator, RegenerationSummary
from .messages import (
    OutgoingNotification,
    build_daily_reminder,
    build_from_event,
    build_streak_warning,
    build_tip_of_the_day,
    build_weekly_summary,
    tip_for_day,
)

logger = logging.getLogger(__name__)

SKIP_NO_USER = "no_user"
SKIP_PRACTISED_TODAY = "practised_today"
SKIP_NO_WEEKLY_ACTIVITY = "no_weekly_activity"


@dataclass(frozen=True)
class BatchResult:
    """Outcome of one dispatcher tick."""

    claimed: int = 0
    succeeded: int = 0
    failed: int = 0


@dataclass(frozen=True)
class DispatcherSettings:
    """Tunables of the dispatcher, normally taken from :class:`Settings`."""

    tick_seconds: int = 60
    batch_size: int = 100
    max_workers: int = 8
    max_attempts: int = 3
    backoff_base_minutes: int = 5
    startup_delay_seconds: int = 5
    regeneration_interval_hours: int = 24
    job_cleanup_interval_hours: int = 6
    job_retention_days: int = 7
    stale_claim_minutes: int = 30
    history_cleanup_interval_hours: int = 24
    history_retention_days: int = 30
    dedup_sweep_seconds: int = 300

    @classmethod
    def from_settings(cls, settings: Any) -> "DispatcherSettings":
        return cls(
            tick_seconds=settings.dispatcher_tick_seconds,
            batch_size=settings.dispatcher_batch_size,
            max_workers=settings.dispatcher_max_workers,
            max_attempts=settings.max_attempts,
            backoff_base_minutes=settings.backoff_base_minutes,
            startup_delay_seconds=settings.startup_delay_seconds,
            regeneration_interval_hours=settings.regeneration_interval_hours,
            job_cleanup_interval_hours=settings.job_cleanup_interval_hours,
            job_retention_days=settings.job_retention_days,
            stale_claim_minutes=settings.stale_claim_minutes,
            history_cleanup_interval_hours=settings.history_cleanup_interval_hours,
            history_retention_days=settings.history_retention_days,
            dedup_sweep_seconds=settings.dedup_sweep_seconds,
        )


def backoff_delay(attempt_count: int, base_minutes: int = 5) -> timedelta:
    """Return the retry delay after ``attempt_count`` previous attempts."""

    return timedelta(minutes=base_minutes * (2**attempt_count))


def next_occurrence(job: NotificationJob, now: datetime) -> datetime | None:
    """Return when a completed recurring job should fire again.

    The next instant is one local day (one local week for the weekly summary)
    after the job's local slot, rolled forward until it lies after ``now``.
    The slot is taken from ``slot_date`` when the job carries one, so a retry
    that crossed local midnight does not lose a day. One-shot types return
    ``None``.
    """

    try:
        notification_type = NotificationType(job.notification_type)
    except ValueError:
        return None
    if notification_type not in RECURRING_NOTIFICATION_TYPES:
        return None

    if notification_type is NotificationType.WEEKLY_SUMMARY:
        interval = {"weeks": 1}
    else:
        interval = {"days": 1}

    anchor = job.send_at_utc
    if job.slot_date is not None and job.local_time:
        anchor = local_day_at(job.slot_date, job.local_time, job.timezone)

    candidate = add_local_interval(anchor, job.timezone, local_time=job.local_time, **interval)
    while candidate <= now:
        candidate = add_local_interval(
            candidate, job.timezone, local_time=job.local_time, **interval
        )
    return candidate


class Dispatcher:
    """Tick-driven job processor owning the periodic maintenance timers."""

    def __init__(
        self,
        *,
        jobs: JobRepository,
        delivery: DeliveryService,
        activity: UserActivityRepository,
        history: HistoryRepository,
        generator: JobGenerator,
        settings: DispatcherSettings | None = None,
        clock: Callable[[], datetime] = now_utc,
        scheduler: Any | None = None,
    ) -> None:
        self._jobs = jobs
        self._delivery = delivery
        self._activity = activity
        self._history = history
        self._generator = generator
        self._settings = settings or DispatcherSettings()
        self._clock = clock
        self._scheduler = scheduler
        self._tick_lock = threading.Lock()
        self._running = False
        self._last_tick_at: datetime | None = None
        self._last_result: BatchResult | None = None

    @property
    def settings(self) -> DispatcherSettings:
        return self._settings

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def tick_in_progress(self) -> bool:
        return self._tick_lock.locked()

    def start(self) -> None:
        """Register the periodic timers and start the scheduler."""

        if self._running:
            return
        if self._scheduler is None:
            self._scheduler = BackgroundScheduler(timezone=UTC)

        config = self._settings
        now = self._clock()
        self._add_timer(
            self.regenerate_jobs,
            "notifications:regenerate",
            IntervalTrigger(hours=config.regeneration_interval_hours),
            next_run_time=now,
        )
        self._add_timer(
            self.tick,
            "notifications:tick",
            IntervalTrigger(seconds=config.tick_seconds),
            next_run_time=now + timedelta(seconds=config.startup_delay_seconds),
        )
        self._add_timer(
            self.cleanup_jobs,
            "notifications:cleanup-jobs",
            IntervalTrigger(hours=config.job_cleanup_interval_hours),
        )
        self._add_timer(
            self.cleanup_history,
            "notifications:cleanup-history",
            IntervalTrigger(hours=config.history_cleanup_interval_hours),
        )
        self._add_timer(
            self.sweep_dedup,
            "notifications:sweep-dedup",
            IntervalTrigger(seconds=config.dedup_sweep_seconds),
        )
        self._scheduler.start()
        self._running = True
        logger.info(
            "Notification dispatcher started (tick every %ss, batch size %s)",
            config.tick_seconds,
            config.batch_size,
        )

    def _add_timer(self, func: Callable[..., Any], job_id: str, trigger: Any, **kwargs: Any) -> None:
        self._scheduler.add_job(
            func,
            trigger,
            id=job_id,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            **kwargs,
        )

    def stop(self) -> None:
        if not self._running:
            return
        logger.info("Stopping notification dispatcher")
        self._scheduler.shutdown(wait=False)
        self._running = False

    def status(self) -> dict[str, Any]:
        return {
            "running": self._running,
            "tick_in_progress": self.tick_in_progress,
            "last_tick_at": self._last_tick_at,
            "last_result": self._last_result,
        }

    def tick(self) -> BatchResult | None:
        """Claim and process one batch of due jobs.

        Returns ``None`` when another tick is still running.
        """

        if not self._tick_lock.acquire(blocking=False):
            logger.debug("Previous dispatcher tick still running; skipping")
            return None

        try:
            now = self._clock()
            try:
                jobs = self._jobs.claim_due_jobs(now, self._settings.batch_size)
            except Exception:
                logger.exception("Failed to claim due notification jobs")
                result = BatchResult()
            else:
                result = self._process_batch(jobs) if jobs else BatchResult()
            self._last_tick_at = now
            self._last_result = result
            return result
        finally:
            self._tick_lock.release()

    def _process_batch(self, jobs: list[NotificationJob]) -> BatchResult:
        logger.info("Processing %s due notification jobs", len(jobs))
        succeeded = 0
        failed = 0
        workers = max(1, min(self._settings.max_workers, len(jobs)))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="notify") as pool:
            futures = [(job, pool.submit(self.process_job, job)) for job in jobs]
            for job, future in futures:
                try:
                    ok = future.result()
                except Exception:
                    logger.exception("Unhandled error while finishing job %s", job.id)
                    ok = False
                if ok:
                    succeeded += 1
                else:
                    failed += 1

        logger.info("Job batch completed: %s succeeded, %s failed", succeeded, failed)
        return BatchResult(claimed=len(jobs), succeeded=succeeded, failed=failed)

    def process_job(self, job: NotificationJob) -> bool:
        """Execute ``job`` and persist its outcome.

        Returns ``True`` when the job completed (including a deliberate skip).
        """

        try:
            result = self._execute(job)
        except NonRetryableJobError as exc:
            logger.warning("Failing notification job %s: %s", job.id, exc)
            self._jobs.mark_failed(job.id, str(exc))
            return False
        except DeliveryFailedError as exc:
            logger.warning("Notification job %s not delivered: %s", job.id, exc)
            self._retry_or_fail(job, str(exc))
            return False
        except Exception as exc:
            logger.exception("Failed to process notification job %s", job.id)
            self._retry_or_fail(job, str(exc) or exc.__class__.__name__)
            return False

        self._jobs.mark_completed(job.id)
        if result.skipped_reason in OPT_OUT_SKIP_REASONS:
            return True

        following = next_occurrence(job, self._clock())
        if following is not None:
            meta = dict(job.payload_meta or {})
            meta["slot_date"] = to_local(following, job.timezone).date().isoformat()
            self._jobs.replace_pending_jobs(
                [
                    NotificationJob(
                        id=None,
                        user_id=job.user_id,
                        notification_type=job.notification_type,
                        send_at_utc=following,
                        payload_meta=meta,
                    )
                ]
            )
            logger.debug(
                "Queued next %s for user %s at %s", job.notification_type, job.user_id, following
            )
        return True

    def _retry_or_fail(self, job: NotificationJob, reason: str) -> None:
        if job.attempt_count < self._settings.max_attempts:
            delay = backoff_delay(job.attempt_count, self._settings.backoff_base_minutes)
            retry_at = self._clock() + delay
            self._jobs.reschedule_job(job.id, retry_at, error=reason)
            logger.info(
                "Retrying notification job %s in %s minutes (attempt %s)",
                job.id,
                int(delay.total_seconds() // 60),
                job.attempt_count + 1,
            )
        else:
            self._jobs.mark_failed(job.id, reason)
            logger.error(
                "Notification job %s failed after %s attempts: %s",
                job.id,
                job.attempt_count,
                reason,
            )

    def _execute(self, job: NotificationJob) -> DeliveryResult:
        try:
            notification_type = NotificationType(job.notification_type)
        except ValueError:
            raise UnknownNotificationTypeError(job.notification_type) from None

        notification = self._render(job, notification_type)
        if isinstance(notification, DeliveryResult):
            return notification

        result = self._delivery.deliver(job.user_id, notification)
        if result.is_failure:
            raise DeliveryFailedError(job.user_id, notification_type.value, result.failed)
        return result

    def _render(
        self, job: NotificationJob, notification_type: NotificationType
    ) -> OutgoingNotification | DeliveryResult:
        """Resolve the facts a job needs, or return the reason it is skipped."""

        meta = job.payload_meta or {}
        now = self._clock()

        if notification_type is NotificationType.DAILY_REMINDER:
            activity = self._activity.get(job.user_id)
            avg_wpm = activity.average_wpm if activity else 0.0
            return build_daily_reminder(
                streak=int(meta.get("streak") or 0), avg_wpm=avg_wpm or 0.0
            )

        if notification_type is NotificationType.STREAK_WARNING:
            activity = self._activity.get(job.user_id)
            if activity is None:
                return DeliveryResult(skipped_reason=SKIP_NO_USER)
            if activity.last_test_date and is_same_local_day(
                activity.last_test_date, now, job.timezone
            ):
                logger.debug("User %s already practised today", job.user_id)
                return DeliveryResult(skipped_reason=SKIP_PRACTISED_TODAY)
            return build_streak_warning(
                streak=activity.current_streak,
                hours_left=hours_until_local_midnight(job.timezone, now),
            )

        if notification_type is NotificationType.WEEKLY_SUMMARY:
            stats = self._activity.get_weekly_summary(job.user_id)
            if stats.tests_completed <= 0:
                return DeliveryResult(skipped_reason=SKIP_NO_WEEKLY_ACTIVITY)
            return build_weekly_summary(stats)

        if notification_type is NotificationType.TIP_OF_THE_DAY:
            day_of_year = to_local(now, job.timezone).timetuple().tm_yday
            return build_tip_of_the_day(**tip_for_day(day_of_year))

        if notification_type is NotificationType.LEADERBOARD_UPDATE:
            old_rank, new_rank = meta.get("old_rank"), meta.get("new_rank")
            if old_rank is not None and new_rank is not None and new_rank >= old_rank:
                return DeliveryResult(skipped_reason=SKIP_NOT_IMPROVED)

        return build_from_event(notification_type, meta)

    def regenerate_jobs(self) -> RegenerationSummary | None:
        try:
            return self._generator.regenerate_all_jobs()
        except Exception:
            logger.exception("Notification job regeneration failed")
            return None

    def cleanup_jobs(self) -> dict[str, int]:
        """Release abandoned claims and delete old terminal jobs."""

        now = self._clock()
        config = self._settings
        try:
            released = self._jobs.release_stale_claims(
                now - timedelta(minutes=config.stale_claim_minutes)
            )
            deleted = self._generator.cleanup_old_jobs(config.job_retention_days)
        except Exception:
            logger.exception("Notification job cleanup failed")
            return {"released": 0, "deleted": 0}
        if released:
            logger.warning("Released %s notification jobs stuck in claimed state", released)
        return {"released": released, "deleted": deleted}

    def cleanup_history(self) -> int:
        try:
            deleted = self._history.cleanup_older_than(
                self._settings.history_retention_days, self._clock()
            )
        except Exception:
            logger.exception("Notification history cleanup failed")
            return 0
        logger.info("Cleaned up %s old notification history records", deleted)
        return deleted

    def sweep_dedup(self) -> int:
        removed = self._delivery.dedup.sweep()
        if removed:
            logger.debug("Expired %s dedup entries", removed)
        return removed


__all__ = [
    "BatchResult",
    "Dispatcher",
    "DispatcherSettings",
    "backoff_delay",
    "next_occurrence",
]
