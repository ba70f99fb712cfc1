"""SQLAlchemy model for registered push endpoints."""

from sqlalchemy import JSON, BigInteger, Boolean, Column, DateTime, Integer, String, Text

from notification_engine.infrastructure.database import Base
from notification_engine.utils import now_utc_naive


class PushSubscriptionModel(Base):
    """Database representation of a device subscribed to push messages."""

    __tablename__ = "push_subscriptions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    endpoint = Column(Text, nullable=False, unique=True)
    keys = Column(JSON, nullable=False, default=dict)
    is_active = Column(Boolean, nullable=False, default=True)
    user_agent = Column(Text, nullable=True)
    expiration_time = Column(BigInteger, nullable=True)
    last_used = Column(DateTime(), nullable=True)
    created_at = Column(DateTime(), nullable=False, default=now_utc_naive)
    updated_at = Column(
        DateTime(), nullable=False, default=now_utc_naive, onupdate=now_utc_naive
    )


__all__ = ["PushSubscriptionModel"]
