"""Pydantic Settings for the relay service.

All environment variables use the RELAY_ prefix.
Example: RELAY_PORT=8002, RELAY_SURFACE_URL=http://surface:3000
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings

DEFAULT_ENDPOINTS_PATH = str(Path(__file__).with_name("endpoints.yaml"))


class RelaySettings(BaseSettings):
    """Relay service configuration validated from environment variables."""

    # Service
    port: int = 8002
    log_level: str = "INFO"
    log_json: bool = True

    # Endpoint catalogue
    endpoints_path: str = DEFAULT_ENDPOINTS_PATH

    # Embedding surface (None = commands are not delivered anywhere)
    surface_url: str | None = None
    surface_timeout_seconds: float = Field(default=5.0, gt=0)

    # Session lifecycle
    load_timeout_seconds: float = Field(default=15.0, gt=0)
    max_retries: int = Field(default=3, ge=0)
    retry_backoff_min_ms: int = Field(default=2000, ge=0)
    retry_backoff_max_ms: int = Field(default=5000, ge=0)
    tick_interval_seconds: float = Field(default=1.0, gt=0)
    view_interval_seconds: int = Field(default=30, ge=1)

    # Endpoint health
    block_threshold: int = Field(default=3, ge=1)
    block_cooldown_seconds: float = Field(default=60.0, gt=0)
    recovery_idle_seconds: float = Field(default=300.0, ge=0)
    optimize_interval_seconds: float = Field(default=30.0, gt=0)

    # Shutdown
    graceful_shutdown_seconds: float = Field(default=5.0, ge=0)

    model_config = {"env_prefix": "RELAY_"}

    @model_validator(mode="after")
    def _check_backoff_window(self) -> "RelaySettings":
        if self.retry_backoff_max_ms < self.retry_backoff_min_ms:
            raise ValueError("retry_backoff_max_ms must be >= retry_backoff_min_ms")
        return self
