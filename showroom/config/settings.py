"""Application settings using Pydantic BaseSettings."""

import os
from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _get_default_state_path() -> str:
    """Get absolute path to the default persistent state file."""
    package_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    return os.path.join(package_dir, "data", "state.json")


class Settings(BaseSettings):
    """Admin client configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    environment: str = Field(default="development")
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO")
    log_file: Optional[str] = Field(default=None)

    # Hosted backend
    backend_url: str = Field(default="http://127.0.0.1:54321")
    backend_anon_key: str = Field(default="")
    backend_timeout_seconds: int = Field(default=15)
    backend_max_retries: int = Field(default=1)
    realtime_heartbeat_seconds: int = Field(default=30)

    # Session inactivity
    session_timeout_seconds: int = Field(default=60 * 60)
    session_warning_seconds: int = Field(default=2 * 60)
    session_red_seconds: int = Field(default=10 * 60)
    session_check_interval_seconds: float = Field(default=1.0)

    # Login lockout
    max_login_attempts: int = Field(default=5)
    lockout_duration_seconds: int = Field(default=15 * 60)
    password_min_length: int = Field(default=8)

    # Daily stats
    stats_reset_interval_seconds: int = Field(default=24 * 60 * 60)
    stats_reset_check_interval_seconds: int = Field(default=60 * 60)
    analytics_dedupe_local_events: bool = Field(default=True)

    # Browser-local storage replacement
    state_file: str = Field(default_factory=_get_default_state_path)

    # Tables
    cars_table: str = Field(default="cars")
    analytics_table: str = Field(default="analytics")
    messages_table: str = Field(default="messages")
    users_table: str = Field(default="users")
    admin_logs_table: str = Field(default="admin_logs")

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment.lower() == "production"

    @property
    def realtime_url(self) -> str:
        """WebSocket endpoint of the realtime service."""
        base = self.backend_url.rstrip("/")
        if base.startswith("https://"):
            base = "wss://" + base[len("https://"):]
        elif base.startswith("http://"):
            base = "ws://" + base[len("http://"):]
        return f"{base}/realtime/v1/websocket"

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return upper

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        vv = (v or "").strip().lower()
        if vv not in {"development", "staging", "production"}:
            raise ValueError("ENVIRONMENT must be one of: development, staging, production")
        return vv

    @model_validator(mode="after")
    def validate_cross_field_constraints(self) -> "Settings":
        if self.session_warning_seconds >= self.session_timeout_seconds:
            raise ValueError("SESSION_WARNING_SECONDS must be below SESSION_TIMEOUT_SECONDS")
        if self.max_login_attempts < 1:
            raise ValueError("MAX_LOGIN_ATTEMPTS must be at least 1")
        # Credentials travel over this connection.
        if self.is_production and not self.backend_url.startswith("https://"):
            raise ValueError("In production, BACKEND_URL must use https")
        return self


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
