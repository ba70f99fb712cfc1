"""Persistence helpers for the notification delivery log."""

from __future__ import annotations

from datetime import datetime, timedelta

from sqlalchemy import delete
from sqlalchemy.orm import Session, sessionmaker

from notification_engine.domain.entities import NotificationHistory
from notification_engine.infrastructure.models import NotificationHistoryModel
from notification_engine.utils import ensure_utc, ensure_utc_naive, now_utc


class NotificationHistoryRepository:
    """Append delivery attempts and prune the old ones."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def create(self, record: NotificationHistory) -> NotificationHistory:
        with self._session_factory() as session:
            model = NotificationHistoryModel(
                user_id=record.user_id,
                type=record.type,
                title=record.title,
                body=record.body,
                data=dict(record.data or {}),
                status=record.status,
                error_message=record.error_message,
                sent_at=ensure_utc_naive(record.sent_at or now_utc()),
            )
            session.add(model)
            session.commit()
            return self._to_entity(model)

    def list_for_user(self, user_id: str, limit: int = 50) -> list[NotificationHistory]:
        with self._session_factory() as session:
            query = (
                session.query(NotificationHistoryModel)
                .filter(NotificationHistoryModel.user_id == user_id)
                .order_by(
                    NotificationHistoryModel.sent_at.desc(), NotificationHistoryModel.id.desc()
                )
                .limit(limit)
            )
            return [self._to_entity(model) for model in query.all()]

    def cleanup_older_than(self, retention_days: int, now: datetime) -> int:
        cutoff = ensure_utc_naive(now - timedelta(days=retention_days))
        with self._session_factory() as session:
            result = session.execute(
                delete(NotificationHistoryModel).where(NotificationHistoryModel.sent_at < cutoff)
            )
            session.commit()
            return result.rowcount or 0

    @staticmethod
    def _to_entity(model: NotificationHistoryModel) -> NotificationHistory:
        return NotificationHistory(
            id=model.id,
            user_id=model.user_id,
            type=model.type,
            title=model.title,
            body=model.body,
            status=model.status,
            sent_at=ensure_utc(model.sent_at),
            data=dict(model.data or {}),
            error_message=model.error_message,
        )


__all__ = ["NotificationHistoryRepository"]
