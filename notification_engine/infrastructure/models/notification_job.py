"""SQLAlchemy model for scheduled notification jobs."""

from sqlalchemy import JSON, Column, DateTime, Index, Integer, String, Text

from notification_engine.domain.entities import JOB_STATUS_PENDING
from notification_engine.infrastructure.database import Base
from notification_engine.utils import now_utc_naive


class NotificationJobModel(Base):
    """Database representation of a pending or processed notification job."""

    __tablename__ = "notification_jobs"
    __table_args__ = (
        Index("ix_notification_jobs_status_send_at", "status", "send_at_utc"),
        Index("ix_notification_jobs_user_type", "user_id", "notification_type"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    notification_type = Column(String(40), nullable=False)
    send_at_utc = Column(DateTime(), nullable=False)
    status = Column(String(16), nullable=False, default=JOB_STATUS_PENDING)
    attempt_count = Column(Integer, nullable=False, default=0)
    payload_meta = Column(JSON, nullable=False, default=dict)
    last_attempt_at = Column(DateTime(), nullable=True)
    error_message = Column(Text, nullable=True)
    claimed_at = Column(DateTime(), nullable=True)
    completed_at = Column(DateTime(), nullable=True)
    created_at = Column(DateTime(), nullable=False, default=now_utc_naive)


__all__ = ["NotificationJobModel"]
