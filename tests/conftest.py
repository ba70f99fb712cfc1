"""Shared fixtures wiring the engine services to in-memory doubles."""

from __future__ import annotations

import pytest

from fakes import (
    FakeClock,
    FakeScheduler,
    InMemoryHistoryRepository,
    InMemoryJobRepository,
    InMemoryPreferencesRepository,
    InMemorySubscriptionRepository,
    InMemoryUserActivityRepository,
    RecordingDeliverer,
)
from notification_engine.application.use_cases.notifications import (
    DedupCache,
    DeliveryService,
    Dispatcher,
    DispatcherSettings,
    JobGenerator,
)
from notification_engine.config import reset_settings_cache
from notification_engine.domain.entities import (
    NotificationPreferences,
    UserActivity,
)
from notification_engine.infrastructure.database import (
    build_engine,
    build_session_factory,
    initialize_database,
)


@pytest.fixture(autouse=True)
def _fresh_settings():
    reset_settings_cache()
    yield
    reset_settings_cache()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def jobs() -> InMemoryJobRepository:
    return InMemoryJobRepository()


@pytest.fixture()
def subscriptions() -> InMemorySubscriptionRepository:
    return InMemorySubscriptionRepository()


@pytest.fixture()
def preferences() -> InMemoryPreferencesRepository:
    return InMemoryPreferencesRepository()


@pytest.fixture()
def history() -> InMemoryHistoryRepository:
    return InMemoryHistoryRepository()


@pytest.fixture()
def activity(preferences) -> InMemoryUserActivityRepository:
    return InMemoryUserActivityRepository(preferences)


@pytest.fixture()
def deliverer() -> RecordingDeliverer:
    return RecordingDeliverer()


@pytest.fixture()
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture()
def delivery(subscriptions, preferences, history, deliverer, clock) -> DeliveryService:
    return DeliveryService(
        subscriptions=subscriptions,
        preferences=preferences,
        history=history,
        deliverer=deliverer,
        dedup=DedupCache(60, clock=clock),
        clock=clock,
        icon="/icon.png",
        badge="/badge.png",
    )


@pytest.fixture()
def generator(jobs, activity, clock) -> JobGenerator:
    return JobGenerator(jobs=jobs, activity=activity, clock=clock)


@pytest.fixture()
def dispatcher(jobs, delivery, activity, history, generator, clock, scheduler) -> Dispatcher:
    return Dispatcher(
        jobs=jobs,
        delivery=delivery,
        activity=activity,
        history=history,
        generator=generator,
        settings=DispatcherSettings(max_workers=4),
        clock=clock,
        scheduler=scheduler,
    )


@pytest.fixture()
def register_user(preferences, activity, subscriptions):
    """Create a user with preferences, activity facts and push endpoints."""

    def _register(
        user_id: str = "user-1",
        *,
        endpoints: tuple[str, ...] = ("https://push.example/one",),
        timezone: str = "UTC",
        streak: int = 5,
        **preference_overrides,
    ) -> NotificationPreferences:
        saved = preferences.save(
            NotificationPreferences(user_id=user_id, timezone=timezone, **preference_overrides)
        )
        activity.save(
            UserActivity(
                user_id=user_id,
                username=f"typist-{user_id}",
                timezone=timezone,
                current_streak=streak,
                average_wpm=72.4,
            )
        )
        for endpoint in endpoints:
            subscriptions.add(user_id, endpoint)
        return saved

    return _register


@pytest.fixture()
def session_factory(tmp_path):
    """Session factory bound to a throwaway SQLite file with every table created."""

    engine = build_engine(f"sqlite:///{tmp_path / 'notifications.db'}")
    initialize_database(engine)
    try:
        yield build_session_factory(engine)
    finally:
        engine.dispose()
