"""Persistence helpers for push subscriptions."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy.orm import Session, sessionmaker

from notification_engine.domain.entities import PushSubscription
from notification_engine.infrastructure.models import PushSubscriptionModel
from notification_engine.utils import ensure_utc, ensure_utc_naive


class PushSubscriptionRepository:
    """Read and invalidate the devices registered by users."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def list_active_for_user(self, user_id: str) -> list[PushSubscription]:
        with self._session_factory() as session:
            query = (
                session.query(PushSubscriptionModel)
                .filter(PushSubscriptionModel.user_id == user_id)
                .filter(PushSubscriptionModel.is_active.is_(True))
                .order_by(PushSubscriptionModel.id)
            )
            return [self._to_entity(model) for model in query.all()]

    def save(self, subscription: PushSubscription) -> PushSubscription:
        """Insert ``subscription`` or refresh the row owning its endpoint."""

        with self._session_factory() as session:
            model = (
                session.query(PushSubscriptionModel)
                .filter(PushSubscriptionModel.endpoint == subscription.endpoint)
                .one_or_none()
            )
            if model is None:
                model = PushSubscriptionModel()
                session.add(model)
            self._apply_entity_to_model(model, subscription)
            session.commit()
            return self._to_entity(model)

    def deactivate(self, subscription_id: int) -> None:
        with self._session_factory() as session:
            model = session.get(PushSubscriptionModel, subscription_id)
            if model is None:
                return
            model.is_active = False
            session.commit()

    def mark_used(self, subscription_id: int, used_at: datetime) -> None:
        with self._session_factory() as session:
            model = session.get(PushSubscriptionModel, subscription_id)
            if model is None:
                return
            model.last_used = ensure_utc_naive(used_at)
            session.commit()

    @staticmethod
    def _apply_entity_to_model(
        model: PushSubscriptionModel, subscription: PushSubscription
    ) -> None:
        model.user_id = subscription.user_id
        model.endpoint = subscription.endpoint
        model.keys = dict(subscription.keys or {})
        model.is_active = subscription.is_active
        model.user_agent = subscription.user_agent
        model.expiration_time = subscription.expiration_time
        model.last_used = ensure_utc_naive(subscription.last_used)

    @staticmethod
    def _to_entity(model: PushSubscriptionModel) -> PushSubscription:
        return PushSubscription(
            id=model.id,
            user_id=model.user_id,
            endpoint=model.endpoint,
            keys=dict(model.keys or {}),
            is_active=bool(model.is_active),
            user_agent=model.user_agent,
            expiration_time=model.expiration_time,
            last_used=ensure_utc(model.last_used),
            created_at=ensure_utc(model.created_at),
            updated_at=ensure_utc(model.updated_at),
        )


__all__ = ["PushSubscriptionRepository"]
