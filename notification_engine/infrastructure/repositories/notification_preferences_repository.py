"""Persistence helpers for notification preferences."""

from __future__ import annotations

from dataclasses import fields

from sqlalchemy.orm import Session, sessionmaker

from notification_engine.domain.entities import NotificationPreferences
from notification_engine.infrastructure.models import NotificationPreferencesModel

_PREFERENCE_FIELDS = tuple(field.name for field in fields(NotificationPreferences))


class NotificationPreferencesRepository:
    """Load and store the notification settings of a user."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def get_for_user(self, user_id: str) -> NotificationPreferences | None:
        with self._session_factory() as session:
            model = session.get(NotificationPreferencesModel, user_id)
            return self._to_entity(model) if model is not None else None

    def save(self, preferences: NotificationPreferences) -> NotificationPreferences:
        with self._session_factory() as session:
            model = session.get(NotificationPreferencesModel, preferences.user_id)
            if model is None:
                model = NotificationPreferencesModel()
                session.add(model)
            for name in _PREFERENCE_FIELDS:
                setattr(model, name, getattr(preferences, name))
            session.commit()
            return self._to_entity(model)

    @staticmethod
    def _to_entity(model: NotificationPreferencesModel) -> NotificationPreferences:
        return NotificationPreferences(
            **{name: getattr(model, name) for name in _PREFERENCE_FIELDS}
        )


__all__ = ["NotificationPreferencesRepository"]
