"""Application configuration powered by Pydantic settings."""

from __future__ import annotations

from functools import lru_cache
from typing import Final, Literal
from urllib.parse import quote_plus

from pydantic import AnyUrl, Field, computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Centralized configuration object with environment fallbacks."""

    model_config = SettingsConfigDict(env_prefix="HEARTH_", env_file=".env", extra="allow")

    # App
    app_name: str = "Hearth"
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 8430
    debug: bool = False
    log_level: str = Field(default="info")

    # API key authentication (empty = no auth required)
    api_key: str = Field(default="")
    # Shared secret for the cycle trigger routes (empty = unprotected)
    cron_secret: str = Field(default="")
    # Run the cycles in-process instead of waiting for an external trigger
    internal_scheduler: bool = Field(default=False)

    # State store
    state_backend: Literal["sql", "memory"] = Field(default="sql")
    db_host: str = Field(default="localhost")
    db_port: int = Field(default=5432)
    db_name: str = Field(default="hearth")
    db_user: str = Field(default="hearth")
    db_password: str = Field(default="hearth")
    db_url: AnyUrl | str | None = Field(default=None)

    # Collaborators
    stove_api_url: AnyUrl | str = Field(default="http://localhost:8081")
    stove_api_key: str = Field(default="")
    stove_timeout: float = Field(default=10.0)
    thermostat_api_url: AnyUrl | str = Field(default="http://localhost:8082")
    thermostat_token: str = Field(default="")
    thermostat_timeout: float = Field(default=10.0)
    home_id: str = Field(default="")
    admin_user_id: str = Field(default="")
    notification_webhook_url: str = Field(default="")

    # Local time used to read the weekly schedule
    timezone: str = Field(default="Europe/Rome")

    # Coordination tunables
    coordination_reapply_minutes: float = Field(default=10.0, gt=0)
    default_boost_c: float = Field(default=2.0, ge=0.5, le=5.0)
    max_setpoint_c: float = Field(default=30.0)
    manual_setpoint_hours: float = Field(default=8.0)
    default_pause_minutes: int = Field(default=60)
    intent_tolerance_c: float = Field(default=0.5)
    notification_throttle_minutes: float = Field(default=30.0)
    cycle_timeout_seconds: float = Field(default=45.0)

    # PID tunables
    pid_integral_limit: float = Field(default=10.0, gt=0)
    pid_output_min: int = Field(default=1)
    pid_output_max: int = Field(default=5)
    pid_control_interval_minutes: float = Field(default=5.0, gt=0)
    pid_dt_min_minutes: float = Field(default=1.0)
    pid_dt_max_minutes: float = Field(default=30.0)

    @field_validator("stove_api_url", "thermostat_api_url", mode="after")
    @classmethod
    def _strip_trailing_slash(cls, v: AnyUrl | str) -> str:
        return str(v).rstrip("/")

    @computed_field  # type: ignore[prop-decorator]
    @property
    def database_url(self) -> str:
        """Return a fully qualified async SQLAlchemy database URL."""

        if self.db_url:
            return str(self.db_url)
        return (
            f"postgresql+psycopg://{quote_plus(self.db_user)}:{quote_plus(self.db_password)}@"
            f"{self.db_host}:{self.db_port}/{self.db_name}"
        )


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""

    return Settings()


SETTINGS: Final[Settings] = get_settings()
