"""SQLAlchemy model for the typing facts notifications are built from."""

from sqlalchemy import Column, DateTime, Float, Integer, String

from notification_engine.infrastructure.database import Base


class UserActivityModel(Base):
    """Streak and weekly statistics maintained by the statistics subsystem."""

    __tablename__ = "user_activity"

    user_id = Column(String(64), primary_key=True)
    username = Column(String(120), nullable=True)
    timezone = Column(String(64), nullable=True, default="UTC")
    current_streak = Column(Integer, nullable=False, default=0)
    last_test_date = Column(DateTime(), nullable=True)
    average_wpm = Column(Float, nullable=False, default=0.0)
    weekly_tests_completed = Column(Integer, nullable=False, default=0)
    weekly_avg_wpm = Column(Float, nullable=False, default=0.0)
    weekly_avg_accuracy = Column(Float, nullable=False, default=0.0)
    weekly_improvement = Column(Float, nullable=False, default=0.0)
    weekly_rank = Column(Integer, nullable=False, default=0)


__all__ = ["UserActivityModel"]
