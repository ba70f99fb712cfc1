"""Read model over the typing facts maintained outside the engine."""

from __future__ import annotations

from sqlalchemy.orm import Session, sessionmaker

from notification_engine.domain.entities import (
    PREFERENCE_FLAG_BY_TYPE,
    NotificationPreferences,
    NotificationType,
    UserActivity,
    WeeklySummaryStats,
)
from notification_engine.infrastructure.models import (
    NotificationPreferencesModel,
    UserActivityModel,
)
from notification_engine.infrastructure.repositories.notification_preferences_repository import (
    NotificationPreferencesRepository,
)
from notification_engine.utils import ensure_utc, ensure_utc_naive


class UserActivityRepository:
    """Expose streaks, averages and weekly statistics per user."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def get(self, user_id: str) -> UserActivity | None:
        with self._session_factory() as session:
            model = session.get(UserActivityModel, user_id)
            return self._to_entity(model) if model is not None else None

    def get_weekly_summary(self, user_id: str) -> WeeklySummaryStats:
        activity = self.get(user_id)
        if activity is None or activity.weekly is None:
            return WeeklySummaryStats()
        return activity.weekly

    def list_users_with_preference(
        self, notification_type: NotificationType, offset: int, limit: int
    ) -> list[tuple[UserActivity, NotificationPreferences]]:
        flag = getattr(
            NotificationPreferencesModel,
            PREFERENCE_FLAG_BY_TYPE[NotificationType(notification_type)],
        )
        with self._session_factory() as session:
            rows = (
                session.query(UserActivityModel, NotificationPreferencesModel)
                .join(
                    NotificationPreferencesModel,
                    NotificationPreferencesModel.user_id == UserActivityModel.user_id,
                )
                .filter(flag.is_(True))
                .order_by(UserActivityModel.user_id)
                .offset(offset)
                .limit(limit)
                .all()
            )
            return [
                (
                    self._to_entity(activity),
                    NotificationPreferencesRepository._to_entity(preferences),
                )
                for activity, preferences in rows
            ]

    def save(self, activity: UserActivity) -> UserActivity:
        with self._session_factory() as session:
            model = session.get(UserActivityModel, activity.user_id)
            if model is None:
                model = UserActivityModel(user_id=activity.user_id)
                session.add(model)
            weekly = activity.weekly or WeeklySummaryStats()
            model.username = activity.username
            model.timezone = activity.timezone
            model.current_streak = activity.current_streak
            model.last_test_date = ensure_utc_naive(activity.last_test_date)
            model.average_wpm = activity.average_wpm
            model.weekly_tests_completed = weekly.tests_completed
            model.weekly_avg_wpm = weekly.avg_wpm
            model.weekly_avg_accuracy = weekly.avg_accuracy
            model.weekly_improvement = weekly.improvement
            model.weekly_rank = weekly.rank
            session.commit()
            return self._to_entity(model)

    @staticmethod
    def _to_entity(model: UserActivityModel) -> UserActivity:
        return UserActivity(
            user_id=model.user_id,
            username=model.username,
            timezone=model.timezone,
            current_streak=model.current_streak or 0,
            last_test_date=ensure_utc(model.last_test_date),
            average_wpm=model.average_wpm or 0.0,
            weekly=WeeklySummaryStats(
                tests_completed=model.weekly_tests_completed or 0,
                avg_wpm=model.weekly_avg_wpm or 0.0,
                avg_accuracy=model.weekly_avg_accuracy or 0.0,
                improvement=model.weekly_improvement or 0.0,
                rank=model.weekly_rank or 0,
            ),
        )


__all__ = ["UserActivityRepository"]
