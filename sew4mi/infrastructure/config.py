"""Application configuration.

Loads settings from environment variables with sensible defaults.
"""

from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API
    api_version: str = "0.1.0"
    debug: bool = False
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # Persistence
    persistence_backend: Literal["memory", "database"] = "memory"
    database_url: str = "postgresql+asyncpg://sew4mi:sew4mi_dev_password@db:5432/sew4mi"

    # Authentication
    api_key: str = "dev-api-key-change-in-production"
    cron_secret: str = "dev-cron-secret-change-in-production"

    # Payment release (empty URL releases through the local escrow ledger)
    payment_release_url: str = ""
    payment_release_timeout_seconds: float = 5.0

    # Milestone review
    auto_approval_hours: int = 48
    auto_approval_batch_size: int = 100

    # Rate limiting (empty Redis URL keeps counters in process memory)
    rate_limit_max_requests: int = 10
    rate_limit_window_seconds: int = 60
    redis_url: str = ""

    # Logging
    log_level: str = "INFO"

    class Config:
        """Pydantic configuration."""

        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
