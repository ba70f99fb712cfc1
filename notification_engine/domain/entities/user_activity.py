"""Read model of the behavioural facts computed outside the engine."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class WeeklySummaryStats:
    """Aggregated typing statistics for the last seven days."""

    tests_completed: int = 0
    avg_wpm: float = 0.0
    avg_accuracy: float = 0.0
    improvement: float = 0.0
    rank: int = 0


@dataclass
class UserActivity:
    """Snapshot of the facts notifications are built from."""

    user_id: str
    username: str | None = None
    timezone: str | None = "UTC"
    current_streak: int = 0
    last_test_date: datetime | None = None
    average_wpm: float = 0.0
    weekly: WeeklySummaryStats | None = None
