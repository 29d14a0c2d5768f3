"""Application settings for backend runtime and tests."""

from __future__ import annotations

from pydantic import Field
from pydantic import field_validator
from pydantic import model_validator
from pydantic_settings import BaseSettings

MIN_JWT_SECRET_BYTES = 32


class Settings(BaseSettings):
    """Typed settings loaded from environment variables or explicit kwargs."""

    huddle_app_env: str = "dev"
    huddle_app_host: str = "127.0.0.1"
    huddle_app_port: int = Field(default=8000, ge=1)
    huddle_log_level: str = "INFO"
    huddle_cors_allow_origins: str = "*"

    huddle_jwt_secret: str = Field(min_length=1)
    huddle_token_expire_seconds: int = Field(default=86400, ge=1)

    huddle_max_members: int = Field(default=50, ge=1)
    huddle_max_message_length: int = Field(default=500, ge=1)
    huddle_max_username_length: int = Field(default=30, ge=1)
    huddle_code_attempts: int = Field(default=10, ge=1)

    huddle_empty_grace_seconds: float = Field(default=300.0, gt=0)
    huddle_max_session_age_seconds: float = Field(default=86400.0, gt=0)
    huddle_sweep_interval_seconds: float = Field(default=3600.0, gt=0)
    huddle_end_disconnect_delay_seconds: float = Field(default=2.0, ge=0)

    huddle_heartbeat_interval_seconds: float = Field(default=30.0, gt=0)
    huddle_heartbeat_timeout_seconds: float = Field(default=10.0, gt=0)

    @field_validator("huddle_jwt_secret")
    @classmethod
    def validate_jwt_secret(cls, value: str) -> str:
        """Reject signing keys too short for HS256."""
        if len(value.encode("utf-8")) < MIN_JWT_SECRET_BYTES:
            raise ValueError(f"HUDDLE_JWT_SECRET must be at least {MIN_JWT_SECRET_BYTES} bytes")
        return value

    @model_validator(mode="after")
    def validate_heartbeat_window(self) -> "Settings":
        """Ensure the pong wait fits inside one heartbeat interval."""
        if self.huddle_heartbeat_timeout_seconds >= self.huddle_heartbeat_interval_seconds:
            raise ValueError(
                "HUDDLE_HEARTBEAT_TIMEOUT_SECONDS must be less than "
                "HUDDLE_HEARTBEAT_INTERVAL_SECONDS"
            )
        return self

    @property
    def cors_origins(self) -> list[str]:
        """Comma-separated HUDDLE_CORS_ALLOW_ORIGINS as a list."""
        return [origin.strip() for origin in self.huddle_cors_allow_origins.split(",") if origin.strip()]


def load_settings() -> Settings:
    """Load settings from process environment."""
    return Settings()
