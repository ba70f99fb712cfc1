"""Application configuration settings."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_FILE = ".env"
ENV_FILE_ENCODING = "utf-8"


class Settings(BaseSettings):
    """Engine configuration values loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=ENV_FILE, env_file_encoding=ENV_FILE_ENCODING, extra="ignore"
    )

    database_url: str = Field(
        default="sqlite:///./notifications.db",
        description="Database connection URL used by SQLAlchemy to connect to the DB",
        min_length=1,
    )
    log_level: str = Field(default="INFO", description="Root logging level")
    scheduler_enabled: bool = Field(
        default=True,
        description="Start the dispatcher timers when the application boots",
    )

    dispatcher_tick_seconds: int = Field(default=60, gt=0)
    dispatcher_batch_size: int = Field(default=100, gt=0)
    dispatcher_max_workers: int = Field(default=8, gt=0)
    max_attempts: int = Field(
        default=3,
        ge=0,
        description="Retries allowed before a job is marked as permanently failed",
    )
    backoff_base_minutes: int = Field(default=5, gt=0)
    startup_delay_seconds: int = Field(default=5, ge=0)

    regeneration_interval_hours: int = Field(default=24, gt=0)
    job_cleanup_interval_hours: int = Field(default=6, gt=0)
    job_retention_days: int = Field(default=7, gt=0)
    stale_claim_minutes: int = Field(
        default=30,
        gt=0,
        description="Minutes after which a claimed job is considered abandoned",
    )
    history_cleanup_interval_hours: int = Field(default=24, gt=0)
    history_retention_days: int = Field(default=30, gt=0)

    dedup_window_seconds: int = Field(default=60, gt=0)
    dedup_sweep_seconds: int = Field(default=300, gt=0)

    push_enabled: bool = Field(
        default=True, description="Deliver notifications through the push transport"
    )
    push_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Timeout applied to every single push endpoint request",
    )
    push_icon: str = Field(default="/icon-192x192.png")
    push_badge: str = Field(default="/icon-72x72.png")

    @model_validator(mode="after")
    def _validate_intervals(self) -> "Settings":
        if self.dedup_sweep_seconds < self.dedup_window_seconds:
            raise ValueError(
                "DEDUP_SWEEP_SECONDS must not be shorter than DEDUP_WINDOW_SECONDS"
            )
        return self


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings instance."""

    return Settings()


def reset_settings_cache() -> None:
    """Clear the settings cache to force reloading from the environment."""

    get_settings.cache_clear()


__all__ = ["Settings", "get_settings", "reset_settings_cache"]
