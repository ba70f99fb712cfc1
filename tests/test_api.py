"""Integration tests for the scheduler and history API endpoints."""

from __future__ import annotations

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from fakes import FakeClock, FakeScheduler, RecordingDeliverer, make_job
from notification_engine.config import Settings
from notification_engine.domain.entities import (
    NotificationPreferences,
    PushSubscription,
    UserActivity,
)
from notification_engine.infrastructure.repositories import (
    NotificationPreferencesRepository,
    PushSubscriptionRepository,
    UserActivityRepository,
)
from notification_engine.main import create_app
from notification_engine.runtime import build_runtime


@pytest.fixture()
def runtime(session_factory):
    """Engine wired to SQLite, a recording transport and a manual clock."""

    settings = Settings(scheduler_enabled=False, push_icon="/icon.png")
    return build_runtime(
        settings,
        session_factory=session_factory,
        deliverer=RecordingDeliverer(),
        clock=FakeClock(),
        scheduler=FakeScheduler(),
    )


@pytest.fixture()
def client(runtime):
    """Return a test client bound to an application using ``runtime``."""

    app = create_app(Settings(scheduler_enabled=False), runtime=runtime)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def seeded_user(session_factory):
    """Persist preferences, activity and one subscription for ``user-1``."""

    NotificationPreferencesRepository(session_factory).save(NotificationPreferences(user_id="user-1"))
    UserActivityRepository(session_factory).save(
        UserActivity(user_id="user-1", username="typist", current_streak=3, average_wpm=55.0)
    )
    PushSubscriptionRepository(session_factory).save(
        PushSubscription(id=None, user_id="user-1", endpoint="https://push.example/one")
    )
    return "user-1"


def test_status_reports_an_idle_dispatcher(client: TestClient) -> None:
    response = client.get("/scheduler/status")

    assert response.status_code == 200
    assert response.json() == {
        "running": False,
        "tick_in_progress": False,
        "last_tick_at": None,
        "last_result": None,
        "jobs_by_status": {},
    }


def test_tick_delivers_due_jobs_and_records_history(
    client: TestClient, runtime, seeded_user
) -> None:
    """A manual tick processes the due job and the attempt shows in the history."""

    now = runtime.dispatcher._clock()
    runtime.jobs.create_jobs([make_job(now - timedelta(minutes=1), local_time="12:00", streak=3)])

    response = client.post("/scheduler/tick")

    assert response.status_code == 200
    assert response.json() == {"claimed": 1, "succeeded": 1, "failed": 0}

    completed = client.get("/scheduler/jobs", params={"status": "completed"})
    assert completed.status_code == 200
    assert [job["user_id"] for job in completed.json()] == [seeded_user]

    pending = client.get("/scheduler/jobs", params={"status": "pending", "user_id": seeded_user})
    assert len(pending.json()) == 1
    assert pending.json()[0]["payload_meta"]["local_time"] == "12:00"

    history = client.get(f"/notifications/history/{seeded_user}")
    assert history.status_code == 200
    (record,) = history.json()
    assert record["status"] == "sent"
    assert record["title"] == "Daily Practice Reminder"
    assert runtime.deliverer.sent[0][1]["icon"] == "/icon.png"

    status_body = client.get("/scheduler/status").json()
    assert status_body["last_result"] == {"claimed": 1, "succeeded": 1, "failed": 0}
    assert status_body["jobs_by_status"] == {"completed": 1, "pending": 1}


def test_tick_conflicts_with_a_running_tick(client: TestClient, runtime) -> None:
    """A tick requested while another runs is rejected instead of queued."""

    lock = runtime.dispatcher._tick_lock
    lock.acquire()
    try:
        response = client.post("/scheduler/tick")
    finally:
        lock.release()

    assert response.status_code == 409
    assert response.json()["detail"] == "A dispatcher tick is already running"


def test_regenerate_returns_the_counts(client: TestClient, seeded_user) -> None:
    response = client.post("/scheduler/regenerate")

    assert response.status_code == 200
    assert response.json() == {"daily": 1, "streak": 1, "weekly": 1, "tips": 1, "total": 4}
    assert len(client.get("/scheduler/jobs", params={"user_id": seeded_user}).json()) == 4


def test_unknown_job_status_is_rejected(client: TestClient) -> None:
    response = client.get("/scheduler/jobs", params={"status": "exploded"})

    assert response.status_code == 422


def test_history_limit_is_validated(client: TestClient) -> None:
    assert client.get("/notifications/history/user-1", params={"limit": 0}).status_code == 422
    assert client.get("/notifications/history/user-1").json() == []


def test_requests_before_startup_are_unavailable(runtime) -> None:
    """Without the lifespan the engine is not attached to the application."""

    app = create_app(Settings(scheduler_enabled=False), runtime=runtime)
    test_client = TestClient(app)

    response = test_client.get("/scheduler/status")

    assert response.status_code == 503


def test_lifespan_starts_and_stops_the_dispatcher(runtime) -> None:
    """With the scheduler enabled the timers live exactly as long as the app."""

    app = create_app(Settings(scheduler_enabled=True), runtime=runtime)
    scheduler = runtime.dispatcher._scheduler

    with TestClient(app) as test_client:
        assert test_client.get("/scheduler/status").json()["running"] is True
        assert scheduler.started is True

    assert scheduler.shutdown_called is True
    assert runtime.dispatcher.is_running is False
