"""Assemble the repositories, services and dispatcher of a running engine."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session, sessionmaker

from notification_engine.application.ports import PushDeliverer
from notification_engine.application.use_cases.notifications import (
    DedupCache,
    DeliveryService,
    Dispatcher,
    DispatcherSettings,
    JobGenerator,
)
from notification_engine.config import Settings, get_settings
from notification_engine.infrastructure.database import get_session_factory
from notification_engine.infrastructure.push import build_push_deliverer
from notification_engine.infrastructure.repositories import (
    NotificationHistoryRepository,
    NotificationJobRepository,
    NotificationPreferencesRepository,
    PushSubscriptionRepository,
    UserActivityRepository,
)
from notification_engine.utils import now_utc

logger = logging.getLogger(__name__)


@dataclass
class NotificationRuntime:
    """Everything a process needs to schedule and deliver notifications."""

    dispatcher: Dispatcher
    generator: JobGenerator
    delivery: DeliveryService
    jobs: NotificationJobRepository
    history: NotificationHistoryRepository
    deliverer: PushDeliverer | None = None

    def close(self) -> None:
        self.dispatcher.stop()
        close = getattr(self.deliverer, "close", None)
        if callable(close):
            close()


def build_runtime(
    settings: Settings | None = None,
    *,
    session_factory: sessionmaker[Session] | None = None,
    deliverer: PushDeliverer | None = None,
    clock: Callable[[], datetime] = now_utc,
    scheduler: Any | None = None,
) -> NotificationRuntime:
    """Wire the SQLAlchemy repositories and the push transport together."""

    settings = settings or get_settings()
    session_factory = session_factory or get_session_factory(settings)
    if deliverer is None:
        deliverer = build_push_deliverer(settings)
        if deliverer is None:
            logger.warning("Push delivery is disabled; notifications will be skipped")

    jobs = NotificationJobRepository(session_factory)
    history = NotificationHistoryRepository(session_factory)
    activity = UserActivityRepository(session_factory)

    delivery = DeliveryService(
        subscriptions=PushSubscriptionRepository(session_factory),
        preferences=NotificationPreferencesRepository(session_factory),
        history=history,
        deliverer=deliverer,
        dedup=DedupCache(settings.dedup_window_seconds, clock=clock),
        clock=clock,
        icon=settings.push_icon,
        badge=settings.push_badge,
    )
    generator = JobGenerator(jobs=jobs, activity=activity, clock=clock)
    dispatcher = Dispatcher(
        jobs=jobs,
        delivery=delivery,
        activity=activity,
        history=history,
        generator=generator,
        settings=DispatcherSettings.from_settings(settings),
        clock=clock,
        scheduler=scheduler,
    )
    return NotificationRuntime(
        dispatcher=dispatcher,
        generator=generator,
        delivery=delivery,
        jobs=jobs,
        history=history,
        deliverer=deliverer,
    )


__all__ = ["NotificationRuntime", "build_runtime"]
