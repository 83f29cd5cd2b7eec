"""Controller configuration — env-driven.

Centralized config using pydantic-settings for environment variable support.
Reads from a .env file and HTTPSOURCE_* environment variables.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ControllerConfig(BaseSettings):
    """Controller configuration with environment variable overrides.

    Examples
    --------
    Override via environment::

        export HTTPSOURCE_STORAGE_HOSTNAME=artifacts.internal:9090
        export HTTPSOURCE_LOG_LEVEL=DEBUG
        export HTTPSOURCE_STORE_PATH=/data/store.db

    Or via .env file::

        HTTPSOURCE_ENVIRONMENT=production
        HTTPSOURCE_OWNER_SCAN_FALLBACK=true
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="HTTPSOURCE_",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Runtime environment
    environment: str = "development"
    log_level: str = "INFO"

    # Object store and artifact storage
    store_path: Path = Path(".httpsource/store.db")
    storage_path: Path = Path(".httpsource/artifacts")
    storage_hostname: str = "localhost"
    artifact_retention: int = Field(default=2, ge=1)

    # Reconciliation
    workspace_root: Path | None = None  # system temp dir when unset
    fetch_timeout_seconds: float = 60.0
    conflict_retries: int = Field(default=5, ge=0)
    owner_scan_fallback: bool = False
    resync_interval_seconds: float = 300.0

    @property
    def is_production(self) -> bool:
        """Whether running in production mode."""
        return self.environment == "production"
