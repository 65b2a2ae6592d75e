"""Controller configuration — env-driven.

Centralized config using pydantic-settings. Reads from a .env file and
DEFREV_* environment variables.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ControllerConfig(BaseSettings):
    """Controller configuration with environment variable overrides.

    All settings can be overridden via DEFREV_* environment variables
    or a .env file in the working directory.

    Examples
    --------
    Override via environment::

        export DEFREV_LOG_LEVEL=DEBUG
        export DEFREV_DEF_REVISION_LIMIT=10
        export DEFREV_STORE_PATH=/data/objects.db

    Or via .env file::

        DEFREV_CONCURRENT_RECONCILES=8
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="DEFREV_",
        env_file_encoding="utf-8",
    )

    # Runtime environment
    environment: str = "development"
    log_level: str = "INFO"
    namespace: str = "default"

    # Storage paths
    store_path: Path = Path(".defrev/objects.db")
    schema_store_path: Path = Path(".defrev/schemas")

    # Revision history; <= 0 disables garbage collection
    def_revision_limit: int = 50

    # Worker pool
    concurrent_reconciles: int = 4
    resync_period_seconds: float = 300.0

    # Status write retry on conflict (attempts, first delay, growth, jitter)
    status_retry_steps: int = 4
    status_retry_duration: float = 0.01
    status_retry_factor: float = 5.0
    status_retry_jitter: float = 0.1

    # Per-key requeue backoff after a failed pass
    requeue_base_delay: float = Field(default=0.005, gt=0)
    requeue_max_delay: float = Field(default=1000.0, gt=0)

    @property
    def is_production(self) -> bool:
        """Whether running in production mode."""
        return self.environment == "production"


# Module-level singleton; import as `from defrev.config import config`
config = ControllerConfig()
