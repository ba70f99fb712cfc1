"""SQLAlchemy model for per-user notification preferences."""

from sqlalchemy import Boolean, Column, DateTime, String

from notification_engine.domain.entities import (
    DEFAULT_DAILY_REMINDER_TIME,
    DEFAULT_WEEKLY_SUMMARY_DAY,
)
from notification_engine.infrastructure.database import Base
from notification_engine.utils import now_utc_naive


class NotificationPreferencesModel(Base):
    """One row of switches, quiet hours and timezone per user."""

    __tablename__ = "notification_preferences"

    user_id = Column(String(64), primary_key=True)
    daily_reminder = Column(Boolean, nullable=False, default=True)
    daily_reminder_time = Column(String(5), nullable=True, default=DEFAULT_DAILY_REMINDER_TIME)
    streak_warning = Column(Boolean, nullable=False, default=True)
    streak_milestone = Column(Boolean, nullable=False, default=True)
    weekly_summary = Column(Boolean, nullable=False, default=True)
    weekly_summary_day = Column(String(10), nullable=True, default=DEFAULT_WEEKLY_SUMMARY_DAY)
    achievement_unlocked = Column(Boolean, nullable=False, default=True)
    challenge_invite = Column(Boolean, nullable=False, default=True)
    challenge_complete = Column(Boolean, nullable=False, default=True)
    leaderboard_change = Column(Boolean, nullable=False, default=False)
    new_personal_record = Column(Boolean, nullable=False, default=True)
    race_invite = Column(Boolean, nullable=False, default=True)
    race_starting = Column(Boolean, nullable=False, default=True)
    tip_of_the_day = Column(Boolean, nullable=False, default=True)
    timezone = Column(String(64), nullable=True, default="UTC")
    quiet_hours_start = Column(String(5), nullable=True)
    quiet_hours_end = Column(String(5), nullable=True)
    updated_at = Column(
        DateTime(), nullable=False, default=now_utc_naive, onupdate=now_utc_naive
    )


__all__ = ["NotificationPreferencesModel"]
