"""
Application configuration using Pydantic Settings.
Loads configuration from environment variables with sensible defaults.
"""

from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from jobqueue.constants import (
    DEFAULT_CONCURRENCY,
    DEFAULT_HEARTBEAT_INTERVAL_SECONDS,
    DEFAULT_HEARTBEAT_TIMEOUT_SECONDS,
    DEFAULT_IDLE_BACKOFF_SECONDS,
    DEFAULT_QUEUES,
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Shared store
    store_backend: str = "redis"  # redis or memory
    redis_url: str = "redis://localhost:6379/0"
    redis_socket_timeout_seconds: float = 5.0

    # API Configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # Worker Configuration
    worker_id: str | None = None
    worker_queues: list[str] = list(DEFAULT_QUEUES)
    worker_concurrency: int = DEFAULT_CONCURRENCY
    worker_idle_backoff_seconds: float = DEFAULT_IDLE_BACKOFF_SECONDS
    worker_heartbeat_interval_seconds: float = DEFAULT_HEARTBEAT_INTERVAL_SECONDS
    worker_heartbeat_timeout_seconds: float = DEFAULT_HEARTBEAT_TIMEOUT_SECONDS

    # Escalation policy: move a failed job to the dead-letter structure once
    # its attempts reach this value. 0 disables automatic escalation.
    dead_letter_after_attempts: int = 0

    # Observability
    tracing_enabled: bool = False
    otel_exporter_otlp_endpoint: str = "http://localhost:4317"
    otel_service_name: str = "jobqueue"
    log_level: str = "INFO"
    log_format: str = "json"  # json or console

    @model_validator(mode="after")
    def _check_worker_timing(self) -> "Settings":
        if self.worker_concurrency < 1:
            raise ValueError("worker_concurrency must be at least 1")
        if self.worker_heartbeat_timeout_seconds <= self.worker_heartbeat_interval_seconds:
            raise ValueError(
                "worker_heartbeat_timeout_seconds must be greater than "
                "worker_heartbeat_interval_seconds"
            )
        if self.dead_letter_after_attempts < 0:
            raise ValueError("dead_letter_after_attempts must not be negative")
        return self


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
