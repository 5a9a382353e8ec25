"""Engine settings using pydantic-settings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class RiggingSettings(BaseSettings):
    """Fixture engine configuration from RIGGING_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="RIGGING_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", description="Minimum level of emitted log events"
    )
    debug: bool = Field(
        default=False, description="Render logs for humans instead of as JSON lines"
    )

    # Lifecycle
    validate_on_init: bool = Field(
        default=True,
        description="Run the static validation pass over the registry when the engine starts",
    )
    case_timeout: float | None = Field(
        default=None,
        description="Seconds allowed for fixture setup plus the test body (None = unbounded)",
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: object) -> object:
        """Accept lower-case level names."""
        if isinstance(v, str):
            return v.upper()
        return v

    @field_validator("case_timeout")
    @classmethod
    def validate_case_timeout(cls, v: float | None) -> float | None:
        """Validate that the timeout is positive when set."""
        if v is not None and v <= 0:
            raise ValueError("case_timeout must be greater than zero")
        return v


@lru_cache
def get_settings() -> RiggingSettings:
    """Get cached settings instance."""
    return RiggingSettings()
