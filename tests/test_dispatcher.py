"""Tests for the tick-driven dispatcher."""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta

import pytest

from fakes import make_job
from notification_engine.application.use_cases.notifications import (
    BatchResult,
    DedupCache,
    DeliveryService,
    Dispatcher,
    backoff_delay,
    next_occurrence,
)
from notification_engine.domain.entities import (
    JOB_STATUS_CLAIMED,
    JOB_STATUS_COMPLETED,
    JOB_STATUS_FAILED,
    JOB_STATUS_PENDING,
    NotificationHistory,
    NotificationType,
    UserActivity,
    WeeklySummaryStats,
)
from notification_engine.utils import UTC

ENDPOINT = "https://push.example/one"


@pytest.mark.parametrize(("attempts", "minutes"), [(0, 5), (1, 10), (2, 20), (3, 40)])
def test_backoff_doubles_from_five_minutes(attempts, minutes):
    assert backoff_delay(attempts) == timedelta(minutes=minutes)


def test_failed_delivery_backs_off_then_fails(dispatcher, jobs, register_user, deliverer, clock):
    """Retries wait 5, 10 and 20 minutes before the job is failed for good."""

    register_user(endpoints=(ENDPOINT,))
    deliverer.fail(ENDPOINT, 500)
    job = jobs.add(make_job(clock.now, local_time="12:00"))

    for attempt, minutes in enumerate((5, 10, 20), start=1):
        result = dispatcher.tick()
        stored = jobs.get(job.id)
        assert result == BatchResult(claimed=1, succeeded=0, failed=1)
        assert stored.status == JOB_STATUS_PENDING
        assert stored.attempt_count == attempt
        assert stored.send_at_utc == clock.now + timedelta(minutes=minutes)
        clock.advance(minutes=minutes)

    result = dispatcher.tick()
    stored = jobs.get(job.id)

    assert result.failed == 1
    assert stored.status == JOB_STATUS_FAILED
    assert stored.attempt_count == 3
    assert "failed on 1 endpoint" in stored.error_message
    assert jobs.pending() == []


def test_one_failing_job_does_not_affect_the_batch(dispatcher, jobs, register_user, deliverer, clock):
    """Five due jobs with one broken endpoint yield four successes."""

    for index in range(5):
        register_user(f"user-{index}", endpoints=(f"https://push.example/{index}",))
        jobs.add(make_job(clock.now, user_id=f"user-{index}", local_time="12:00"))
    deliverer.fail("https://push.example/3", 500)

    result = dispatcher.tick()

    assert result == BatchResult(claimed=5, succeeded=4, failed=1)
    (retried,) = [job for job in jobs.all() if job.attempt_count]
    assert retried.user_id == "user-3"
    assert retried.status == JOB_STATUS_PENDING
    assert len(deliverer.sent) == 4


@pytest.mark.parametrize("broken_step", ["activity", "storage"])
def test_unexpected_error_in_one_job_does_not_affect_the_batch(
    dispatcher, jobs, register_user, activity, deliverer, clock, monkeypatch, broken_step
):
    """A job raising outside delivery is counted as failed while the rest complete."""

    for index in range(5):
        register_user(f"user-{index}", endpoints=(f"https://push.example/{index}",))
    added = [
        jobs.add(make_job(clock.now, user_id=f"user-{index}", local_time="12:00"))
        for index in range(5)
    ]
    broken_id = added[3].id

    if broken_step == "activity":
        original_get = activity.get

        def get(user_id):
            if user_id == "user-3":
                raise RuntimeError("statistics service down")
            return original_get(user_id)

        monkeypatch.setattr(activity, "get", get)
    else:
        original_mark_completed = jobs.mark_completed

        def mark_completed(job_id):
            if job_id == broken_id:
                raise RuntimeError("database unavailable")
            original_mark_completed(job_id)

        monkeypatch.setattr(jobs, "mark_completed", mark_completed)

    result = dispatcher.tick()

    assert result == BatchResult(claimed=5, succeeded=4, failed=1)
    for job in added:
        if job.id != broken_id:
            assert jobs.get(job.id).status == JOB_STATUS_COMPLETED
    broken = jobs.get(broken_id)
    if broken_step == "activity":
        assert broken.status == JOB_STATUS_PENDING
        assert broken.attempt_count == 1
    else:
        assert broken.status == JOB_STATUS_CLAIMED


def test_gone_endpoint_alone_completes_the_job(
    dispatcher, jobs, register_user, deliverer, subscriptions, clock
):
    """A 410 endpoint is deactivated and the job is not retried."""

    register_user(endpoints=(ENDPOINT,))
    deliverer.fail(ENDPOINT, 410)
    job = jobs.add(make_job(clock.now, local_time="12:00"))

    result = dispatcher.tick()

    stored = jobs.get(job.id)
    assert result == BatchResult(claimed=1, succeeded=1, failed=0)
    assert stored.status == JOB_STATUS_COMPLETED
    assert stored.attempt_count == 0
    assert subscriptions.get(1).is_active is False
    (following,) = jobs.pending()
    assert following.send_at_utc == clock.now + timedelta(days=1)


def test_partial_fan_out_completes_the_job(
    dispatcher, jobs, register_user, deliverer, subscriptions, clock
):
    """One gone endpoint and one healthy endpoint still count as delivered."""

    register_user(endpoints=(ENDPOINT, "https://push.example/two"))
    deliverer.fail("https://push.example/two", 410)
    job = jobs.add(make_job(clock.now, local_time="12:00"))

    result = dispatcher.tick()

    assert result == BatchResult(claimed=1, succeeded=1, failed=0)
    assert jobs.get(job.id).status == JOB_STATUS_COMPLETED
    assert [endpoint for endpoint, _, _ in deliverer.sent] == [ENDPOINT]
    assert subscriptions.get(1).is_active is True
    assert subscriptions.get(2).is_active is False


def test_gone_and_transient_endpoints_still_retry(dispatcher, jobs, register_user, deliverer, clock):
    """Only an endpoint that may recover makes the job worth retrying."""

    register_user(endpoints=(ENDPOINT, "https://push.example/two"))
    deliverer.fail(ENDPOINT, 410)
    deliverer.fail("https://push.example/two", 503)
    job = jobs.add(make_job(clock.now, local_time="12:00"))

    result = dispatcher.tick()

    stored = jobs.get(job.id)
    assert result.failed == 1
    assert stored.status == JOB_STATUS_PENDING
    assert stored.attempt_count == 1


def test_completed_daily_reminder_recurs_at_the_same_local_time(
    dispatcher, jobs, register_user, clock
):
    """The next reminder stays at 09:00 New York across the DST change."""

    register_user(timezone="America/New_York")
    clock.now = datetime(2024, 3, 9, 14, 0, 30, tzinfo=UTC)
    job = jobs.add(
        make_job(
            datetime(2024, 3, 9, 14, 0, tzinfo=UTC),
            timezone="America/New_York",
            local_time="09:00",
            streak=5,
        )
    )

    result = dispatcher.tick()

    assert result.succeeded == 1
    assert jobs.get(job.id).status == JOB_STATUS_COMPLETED
    (following,) = jobs.pending(NotificationType.DAILY_REMINDER)
    assert following.send_at_utc == datetime(2024, 3, 10, 13, 0, tzinfo=UTC)
    assert following.attempt_count == 0
    assert following.payload_meta["local_time"] == "09:00"


def test_next_occurrence_ignores_retry_delay_and_rolls_forward():
    """A late retry neither drifts the slot nor schedules in the past."""

    job = make_job(
        datetime(2024, 3, 4, 9, 35, tzinfo=UTC),
        notification_type=NotificationType.TIP_OF_THE_DAY,
        local_time="09:00",
    )

    on_time = next_occurrence(job, datetime(2024, 3, 4, 9, 36, tzinfo=UTC))
    very_late = next_occurrence(job, datetime(2024, 3, 6, 10, 0, tzinfo=UTC))

    assert on_time == datetime(2024, 3, 5, 9, 0, tzinfo=UTC)
    assert very_late == datetime(2024, 3, 7, 9, 0, tzinfo=UTC)


def test_weekly_summary_recurs_one_week_later():
    job = make_job(
        datetime(2024, 3, 10, 19, 0, tzinfo=UTC),
        notification_type=NotificationType.WEEKLY_SUMMARY,
        local_time="19:00",
    )

    assert next_occurrence(job, datetime(2024, 3, 10, 19, 1, tzinfo=UTC)) == datetime(
        2024, 3, 17, 19, 0, tzinfo=UTC
    )


def test_retry_across_midnight_keeps_the_next_day(dispatcher, jobs, register_user, clock):
    """A 23:45 reminder retried at 00:05 recurs that same evening."""

    register_user()
    clock.now = datetime(2024, 3, 5, 0, 5, 30, tzinfo=UTC)
    job = jobs.add(
        make_job(
            datetime(2024, 3, 5, 0, 5, tzinfo=UTC),
            attempt_count=1,
            local_time="23:45",
            slot_date="2024-03-04",
        )
    )

    result = dispatcher.tick()

    assert result.succeeded == 1
    assert jobs.get(job.id).status == JOB_STATUS_COMPLETED
    (following,) = jobs.pending(NotificationType.DAILY_REMINDER)
    assert following.send_at_utc == datetime(2024, 3, 5, 23, 45, tzinfo=UTC)
    assert following.payload_meta["slot_date"] == "2024-03-05"


def test_next_occurrence_is_anchored_on_the_slot_date():
    job = make_job(
        datetime(2024, 3, 5, 0, 5, tzinfo=UTC),
        notification_type=NotificationType.STREAK_WARNING,
        attempt_count=1,
        local_time="23:45",
        slot_date="2024-03-04",
    )

    assert next_occurrence(job, datetime(2024, 3, 5, 0, 5, tzinfo=UTC)) == datetime(
        2024, 3, 5, 23, 45, tzinfo=UTC
    )


def test_one_shot_types_do_not_recur():
    job = make_job(
        datetime(2024, 3, 4, 12, 0, tzinfo=UTC),
        notification_type=NotificationType.ACHIEVEMENT_UNLOCK,
    )

    assert next_occurrence(job, datetime(2024, 3, 4, 12, 0, tzinfo=UTC)) is None


def test_unknown_type_fails_without_retry(dispatcher, jobs, clock, caplog):
    """A job the engine cannot interpret is failed on the first attempt."""

    job = jobs.add(make_job(clock.now, notification_type="carrier_pigeon"))

    with caplog.at_level(logging.WARNING):
        result = dispatcher.tick()

    stored = jobs.get(job.id)
    assert result.failed == 1
    assert stored.status == JOB_STATUS_FAILED
    assert stored.attempt_count == 0
    assert "Unknown notification type: carrier_pigeon" in stored.error_message
    assert "Failing notification job" in caplog.text


def test_one_shot_job_without_facts_fails_immediately(dispatcher, jobs, register_user, clock):
    register_user()
    job = jobs.add(
        make_job(clock.now, notification_type=NotificationType.RACE_INVITE, room_code="XYZ")
    )

    dispatcher.tick()

    stored = jobs.get(job.id)
    assert stored.status == JOB_STATUS_FAILED
    assert "inviter_name" in stored.error_message


def test_queued_one_shot_job_is_rendered_from_its_facts(
    dispatcher, jobs, register_user, deliverer, clock
):
    """Event facts stored on the job produce the matching payload."""

    register_user()
    job = jobs.add(
        make_job(
            clock.now,
            notification_type=NotificationType.PERSONAL_RECORD,
            wpm=104.0,
            previous_best=98.0,
            accuracy=97.25,
            mode="words",
        )
    )

    result = dispatcher.tick()

    assert result.succeeded == 1
    assert jobs.get(job.id).status == JOB_STATUS_COMPLETED
    assert jobs.pending() == []
    payload = deliverer.sent[0][1]
    assert payload["title"] == "🏆 New Personal Record!"
    assert payload["body"] == "104 WPM (+6 WPM) with 97.2% accuracy in words mode!"


@pytest.mark.parametrize(("old_rank", "new_rank", "delivered"), [(3, 5, 0), (4, 4, 0), (9, 2, 1)])
def test_queued_leaderboard_update_needs_a_climb(
    dispatcher, jobs, register_user, deliverer, clock, old_rank, new_rank, delivered
):
    """Rank drops and unchanged ranks complete without a notification."""

    register_user(leaderboard_change=True)
    job = jobs.add(
        make_job(
            clock.now,
            notification_type=NotificationType.LEADERBOARD_UPDATE,
            category="words",
            old_rank=old_rank,
            new_rank=new_rank,
            total_users=120,
        )
    )

    result = dispatcher.tick()

    assert result.succeeded == 1
    assert jobs.get(job.id).status == JOB_STATUS_COMPLETED
    assert len(deliverer.sent) == delivered


def test_opted_out_recurring_job_completes_without_next_occurrence(
    dispatcher, jobs, register_user, deliverer, clock
):
    """Disabled types stop recurring until regeneration brings them back."""

    register_user(daily_reminder=False)
    job = jobs.add(make_job(clock.now, local_time="12:00"))

    result = dispatcher.tick()

    assert result.succeeded == 1
    assert jobs.get(job.id).status == JOB_STATUS_COMPLETED
    assert jobs.pending() == []
    assert deliverer.sent == []


def test_quiet_hours_skip_still_schedules_tomorrow(dispatcher, jobs, register_user, deliverer, clock):
    register_user(quiet_hours_start="11:00", quiet_hours_end="13:00")
    jobs.add(make_job(clock.now, local_time="12:00"))

    dispatcher.tick()

    assert deliverer.sent == []
    (following,) = jobs.pending()
    assert following.send_at_utc == clock.now + timedelta(days=1)


def test_streak_warning_skipped_when_user_practised_today(
    dispatcher, jobs, register_user, activity, deliverer, clock
):
    register_user()
    activity.save(
        UserActivity(
            user_id="user-1",
            current_streak=9,
            last_test_date=clock.now - timedelta(hours=2),
        )
    )
    jobs.add(
        make_job(clock.now, notification_type=NotificationType.STREAK_WARNING, local_time="12:00")
    )

    result = dispatcher.tick()

    assert result.succeeded == 1
    assert deliverer.sent == []
    assert len(jobs.pending(NotificationType.STREAK_WARNING)) == 1


def test_streak_warning_reports_hours_left(dispatcher, jobs, register_user, activity, deliverer, clock):
    register_user()
    activity.save(
        UserActivity(
            user_id="user-1",
            current_streak=9,
            last_test_date=clock.now - timedelta(days=1),
        )
    )
    jobs.add(
        make_job(clock.now, notification_type=NotificationType.STREAK_WARNING, local_time="12:00")
    )

    dispatcher.tick()

    payload = deliverer.sent[0][1]
    assert payload["title"] == "⚠️ Streak Alert: 9 Days at Risk!"
    assert payload["data"]["hoursLeft"] == 12
    assert deliverer.sent[0][2].urgency == "high"


def test_weekly_summary_needs_activity(dispatcher, jobs, register_user, activity, deliverer, clock):
    """Weeks without tests are skipped; active weeks report their stats."""

    register_user("idle")
    register_user("busy", endpoints=("https://push.example/busy",))
    activity.save(
        UserActivity(
            user_id="busy",
            weekly=WeeklySummaryStats(
                tests_completed=12, avg_wpm=71.6, avg_accuracy=96.44, improvement=3.25, rank=8
            ),
        )
    )
    for user_id in ("idle", "busy"):
        jobs.add(
            make_job(
                clock.now,
                user_id=user_id,
                notification_type=NotificationType.WEEKLY_SUMMARY,
                local_time="12:00",
            )
        )

    result = dispatcher.tick()

    assert result.succeeded == 2
    assert len(deliverer.sent) == 1
    assert deliverer.sent[0][1]["body"] == (
        "12 tests completed | 72 WPM avg | 96.4% accuracy | +3.2 WPM improvement! 📈"
    )


def test_tip_of_the_day_follows_the_local_calendar(dispatcher, jobs, register_user, deliverer, clock):
    """4 March is day 64 of 2024, which selects the fifth curated tip."""

    register_user()
    jobs.add(
        make_job(clock.now, notification_type=NotificationType.TIP_OF_THE_DAY, local_time="12:00")
    )

    dispatcher.tick()

    assert deliverer.sent[0][1]["title"] == "📚 Tip: Regular Breaks"


def test_unexpected_error_is_retried(dispatcher, jobs, register_user, activity, clock, monkeypatch):
    """Errors outside delivery still go through the backoff path."""

    register_user()

    def broken(user_id):
        raise RuntimeError("statistics service down")

    monkeypatch.setattr(activity, "get", broken)
    job = jobs.add(make_job(clock.now, local_time="12:00"))

    result = dispatcher.tick()

    stored = jobs.get(job.id)
    assert result.failed == 1
    assert stored.status == JOB_STATUS_PENDING
    assert stored.attempt_count == 1
    assert stored.error_message == "statistics service down"


def test_tick_without_due_jobs_returns_empty_result(dispatcher, jobs, clock, deliverer):
    jobs.add(make_job(clock.now + timedelta(minutes=1)))

    assert dispatcher.tick() == BatchResult()
    assert deliverer.sent == []


def test_claim_failure_is_logged_and_the_tick_ends(dispatcher, jobs, caplog):
    """A storage error aborts only the current tick."""

    jobs.fail_claims = True

    with caplog.at_level(logging.ERROR):
        result = dispatcher.tick()

    assert result == BatchResult()
    assert "Failed to claim due notification jobs" in caplog.text
    assert dispatcher.status()["last_result"] == BatchResult()


class _BlockingDeliverer:
    def __init__(self) -> None:
        self.entered = threading.Event()
        self.release = threading.Event()

    def send(self, subscription, payload, options) -> None:
        self.entered.set()
        self.release.wait(timeout=5)


def test_overlapping_tick_is_a_no_op(
    jobs, subscriptions, preferences, history, activity, generator, clock, register_user
):
    """A tick started while another is running returns ``None`` at once."""

    blocking = _BlockingDeliverer()
    delivery = DeliveryService(
        subscriptions=subscriptions,
        preferences=preferences,
        history=history,
        deliverer=blocking,
        dedup=DedupCache(60, clock=clock),
        clock=clock,
    )
    dispatcher = Dispatcher(
        jobs=jobs,
        delivery=delivery,
        activity=activity,
        history=history,
        generator=generator,
        clock=clock,
    )
    register_user()
    jobs.add(make_job(clock.now, local_time="12:00"))

    results: list[BatchResult | None] = []
    worker = threading.Thread(target=lambda: results.append(dispatcher.tick()))
    worker.start()
    assert blocking.entered.wait(timeout=5)

    assert dispatcher.tick_in_progress is True
    assert dispatcher.tick() is None

    blocking.release.set()
    worker.join(timeout=5)
    assert results == [BatchResult(claimed=1, succeeded=1, failed=0)]
    assert dispatcher.tick_in_progress is False


def test_start_registers_timers_and_stop_shuts_them_down(dispatcher, scheduler, clock):
    """Regeneration runs immediately and the first tick after the startup delay."""

    dispatcher.start()

    assert scheduler.started is True
    assert set(scheduler.jobs) == {
        "notifications:regenerate",
        "notifications:tick",
        "notifications:cleanup-jobs",
        "notifications:cleanup-history",
        "notifications:sweep-dedup",
    }
    assert scheduler.jobs["notifications:regenerate"]["next_run_time"] == clock.now
    assert scheduler.jobs["notifications:tick"]["next_run_time"] == clock.now + timedelta(seconds=5)
    assert scheduler.jobs["notifications:tick"]["trigger"].interval == timedelta(seconds=60)
    assert scheduler.jobs["notifications:cleanup-jobs"]["trigger"].interval == timedelta(hours=6)
    assert dispatcher.status()["running"] is True

    dispatcher.stop()

    assert scheduler.shutdown_called is True
    assert dispatcher.is_running is False


def test_cleanup_releases_stale_claims_and_prunes_old_jobs(dispatcher, jobs, clock):
    stale = jobs.add(make_job(clock.now - timedelta(hours=1)))
    jobs.claim_due_jobs(clock.now - timedelta(minutes=45), 10)
    finished = jobs.add(make_job(clock.now - timedelta(days=10)))
    jobs.claim_due_jobs(clock.now - timedelta(days=10), 10)
    jobs.mark_completed(finished.id)

    outcome = dispatcher.cleanup_jobs()

    assert outcome == {"released": 1, "deleted": 1}
    released = jobs.get(stale.id)
    assert released.status == JOB_STATUS_PENDING
    assert released.attempt_count == 1
    assert [job.id for job in jobs.all()] == [stale.id]
    assert JOB_STATUS_CLAIMED not in jobs.count_by_status()


def test_cleanup_history_keeps_thirty_days(dispatcher, history, clock):
    for days in (40, 31, 2):
        history.create(
            NotificationHistory(
                id=None,
                user_id="user-1",
                type="daily_reminder",
                title="t",
                body="b",
                status="sent",
                sent_at=clock.now - timedelta(days=days),
            )
        )

    assert dispatcher.cleanup_history() == 2
    assert len(history.records) == 1
