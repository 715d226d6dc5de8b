"""
Core configuration module for the timetable optimization engine.

This module manages all application settings using Pydantic Settings,
providing type-safe configuration with environment variable support.
"""

from typing import Any, Dict, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings with environment variable support.

    All settings can be overridden via environment variables or a `.env` file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application settings
    app_name: str = "Timetable Optimization Engine"
    app_version: str = "1.0.0"
    debug: bool = False
    environment: str = "development"

    # Logfire settings
    logfire_token: str = ""
    logfire_service_name: str = "timetabling-engine"
    logfire_environment: str = "development"
    logfire_console: bool = False

    # Scheduler settings
    scheduler_max_concurrent_runs: int = Field(default=2, ge=1, le=64)
    scheduler_num_workers: Optional[int] = Field(default=None, ge=1)
    scheduler_default_time_budget_seconds: Optional[float] = Field(default=None, gt=0)
    scheduler_log_level: str = "INFO"

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Restrict environment to known deployment stages."""
        allowed = {"development", "testing", "staging", "production"}
        if v.lower() not in allowed:
            raise ValueError(f"environment must be one of {sorted(allowed)}")
        return v.lower()

    @field_validator("scheduler_log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize log level names."""
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR"}:
            raise ValueError(f"Invalid log level: {v}")
        return level

    def get_logfire_settings(self) -> Dict[str, Any]:
        """Get Logfire configuration."""
        return {
            "token": self.logfire_token or None,
            "service_name": self.logfire_service_name,
            "environment": self.logfire_environment,
            "send_to_logfire": "if-token-present",
            "console": None if self.logfire_console or self.debug else False,
        }


# Create global settings instance
settings = Settings()

