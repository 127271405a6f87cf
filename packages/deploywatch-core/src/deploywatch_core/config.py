"""Environment-based configuration for deploywatch."""

from pydantic import field_validator
from pydantic_settings import BaseSettings

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class Settings(BaseSettings):
    """deploywatch configuration.

    All settings can be overridden via environment variables with
    DEPLOYWATCH_ prefix. For example:
        DEPLOYWATCH_ACCESS_TOKEN=eyJ0eXAi...
        DEPLOYWATCH_POLL_INTERVAL_SECONDS=10
    """

    # Orchestration service
    arm_endpoint: str = "https://management.azure.com"
    api_version: str = "2024-03-01"
    access_token: str = ""
    http_timeout_seconds: float = 30.0

    # Portal links on error lines
    tenant_id: str = "common"

    # Loop cadence
    poll_interval_seconds: float = 5.0
    render_interval_seconds: float = 0.05

    log_level: str = "WARNING"

    model_config = {"env_prefix": "DEPLOYWATCH_"}

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"Invalid log level: {v}. Must be one of {LOG_LEVELS}")
        return level
