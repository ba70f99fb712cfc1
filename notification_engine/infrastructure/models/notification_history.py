"""SQLAlchemy model for the delivery log."""

from sqlalchemy import JSON, Column, DateTime, Integer, String, Text

from notification_engine.infrastructure.database import Base
from notification_engine.utils import now_utc_naive


class NotificationHistoryModel(Base):
    """One row per push attempt against a single subscription."""

    __tablename__ = "notification_history"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    type = Column(String(40), nullable=False)
    title = Column(String(200), nullable=False)
    body = Column(Text, nullable=False)
    data = Column(JSON, nullable=False, default=dict)
    status = Column(String(16), nullable=False)
    error_message = Column(Text, nullable=True)
    sent_at = Column(DateTime(), nullable=False, default=now_utc_naive, index=True)


__all__ = ["NotificationHistoryModel"]
