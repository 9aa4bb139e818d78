"""
Application Configuration Module

Centralizes all configuration using environment variables with Pydantic Settings.
Supports two kinds of mode:
    - DEVELOPMENT: Mock transport and manual connectivity (no server needed)
    - STAGING / PRODUCTION: Real HTTP transport against the food truck API
      and an HTTP reachability probe

The ENV_MODE variable controls which collaborators are instantiated for the
sync engine, while STORAGE_BACKEND selects where the queue is persisted.

Usage:
    from offline_sync.core.config import get_settings

    settings = get_settings()
    if settings.is_development:
        # Use mock transport
    else:
        # Use real API

Author: Khalil Bannouri
Version: 1.0.0
"""

import logging
import sys
from enum import Enum
from typing import Optional
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class EnvironmentMode(str, Enum):
    """
    Application environment modes.

    Attributes:
        DEVELOPMENT: Local testing with mock transport
        PRODUCTION: Live environment against the real API server
        STAGING: Pre-production API server
    """
    DEVELOPMENT = "development"
    PRODUCTION = "production"
    STAGING = "staging"


class StorageBackend(str, Enum):
    """
    Durable storage engines for the offline queue.

    Attributes:
        MEMORY: Process-local only (tests, demos)
        FILE: JSON document on disk guarded by a file lock
        DATABASE: SQL tables through SQLAlchemy (SQLite by default)
        REDIS: Key-value documents in Redis
    """
    MEMORY = "memory"
    FILE = "file"
    DATABASE = "database"
    REDIS = "redis"


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables or .env file.
    Access tokens should NEVER be committed to version control.

    Attributes:
        env_mode: Current environment (development/production/staging)
        debug: Enable verbose logging and error details

        # Control API
        api_host: Host to bind the local control API
        api_port: Port for the local control API

        # Food truck API server
        api_base_url: Base URL of the authoritative server
        request_timeout_seconds: Per-request httpx timeout
        access_token: Static bearer token for headless clients

        # Persistence
        storage_backend: memory / file / database / redis
        database_url: SQLAlchemy async URL for the database backend
        redis_url: Redis URL for the redis backend

        # Sync tuning
        sync_interval_ms: Auto-sync period
        backoff_base_ms / backoff_jitter_ms / backoff_cap_ms: Retry backoff
        default_max_retries: Attempt budget for new Actions
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==========================================================================
    # ENVIRONMENT
    # ==========================================================================

    env_mode: EnvironmentMode = Field(
        default=EnvironmentMode.DEVELOPMENT,
        description="Application environment mode"
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode with verbose logging"
    )

    # ==========================================================================
    # APPLICATION
    # ==========================================================================

    app_name: str = Field(
        default="Food Truck Offline Sync",
        description="Application display name"
    )
    app_version: str = Field(
        default="1.0.0",
        description="Application version"
    )
    api_host: str = Field(
        default="127.0.0.1",
        description="Control API host"
    )
    api_port: int = Field(
        default=8002,
        description="Control API port"
    )

    # ==========================================================================
    # FOOD TRUCK API SERVER
    # ==========================================================================

    api_base_url: str = Field(
        default="http://localhost:3001",
        description="Base URL of the food truck API server"
    )
    request_timeout_seconds: float = Field(
        default=15.0,
        description="Timeout for a single request to the API server"
    )
    health_path: str = Field(
        default="/health",
        description="Path probed to decide whether the server is reachable"
    )
    cart_path: str = Field(
        default="/api/cart",
        description="Path receiving replayed cart mutations"
    )

    # ==========================================================================
    # CREDENTIALS
    # ==========================================================================

    access_token: Optional[str] = Field(
        default=None,
        description="Bearer token used when replaying queued Actions"
    )

    # ==========================================================================
    # STORAGE
    # ==========================================================================

    storage_backend: StorageBackend = Field(
        default=StorageBackend.FILE,
        description="Where the queue and conflicts are persisted"
    )
    data_directory: str = Field(
        default="data",
        description="Directory for data files"
    )
    queue_filename: str = Field(
        default="offline_queue.json",
        description="Document name for the file backend"
    )
    file_lock_timeout: int = Field(
        default=30,
        description="Seconds to wait for the queue file lock"
    )
    database_url: str = Field(
        default="sqlite+aiosqlite:///data/offline_queue.db",
        description="SQLAlchemy async connection URL"
    )
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL"
    )
    redis_key_prefix: str = Field(
        default="offline_sync",
        description="Namespace for Redis keys"
    )

    # ==========================================================================
    # SYNC TUNING
    # ==========================================================================

    sync_interval_ms: int = Field(
        default=30000,
        gt=0,
        description="Auto-sync period in milliseconds"
    )
    backoff_base_ms: float = Field(
        default=1000.0,
        ge=0,
        description="Base retry delay in milliseconds"
    )
    backoff_jitter_ms: float = Field(
        default=500.0,
        ge=0,
        description="Upper bound (exclusive) of random jitter"
    )
    backoff_cap_ms: float = Field(
        default=30000.0,
        ge=0,
        description="Maximum retry delay in milliseconds"
    )
    default_max_retries: int = Field(
        default=3,
        ge=0,
        description="Attempt budget for newly enqueued Actions"
    )
    auto_sync_on_startup: bool = Field(
        default=True,
        description="Start the periodic sync timer when the control API starts"
    )

    # ==========================================================================
    # CONNECTIVITY
    # ==========================================================================

    connectivity_poll_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Interval between reachability probes"
    )
    start_online: bool = Field(
        default=False,
        description="Initial state of the manual connectivity monitor"
    )

    # ==========================================================================
    # OBSERVABILITY
    # ==========================================================================

    event_history_size: int = Field(
        default=200,
        ge=1,
        description="Number of sync events kept for the control API"
    )

    # ==========================================================================
    # VALIDATORS
    # ==========================================================================

    @field_validator("env_mode", mode="before")
    @classmethod
    def validate_env_mode(cls, v: str) -> EnvironmentMode:
        """Convert string to EnvironmentMode enum."""
        if isinstance(v, EnvironmentMode):
            return v
        try:
            return EnvironmentMode(v.lower())
        except ValueError:
            valid = [e.value for e in EnvironmentMode]
            raise ValueError(f"Invalid env_mode. Must be one of: {valid}")

    @field_validator("storage_backend", mode="before")
    @classmethod
    def validate_storage_backend(cls, v: str) -> StorageBackend:
        """Convert string to StorageBackend enum."""
        if isinstance(v, StorageBackend):
            return v
        try:
            return StorageBackend(v.lower())
        except ValueError:
            valid = [e.value for e in StorageBackend]
            raise ValueError(f"Invalid storage_backend. Must be one of: {valid}")

    @field_validator("api_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    # ==========================================================================
    # COMPUTED PROPERTIES
    # ==========================================================================

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.env_mode == EnvironmentMode.DEVELOPMENT

    @property
    def use_real_services(self) -> bool:
        """Check if the real API server should be used."""
        return self.env_mode in (EnvironmentMode.PRODUCTION, EnvironmentMode.STAGING)

    @property
    def queue_file_path(self) -> Path:
        """Full path of the file backend document."""
        return Path(self.data_directory) / self.queue_filename

    # ==========================================================================
    # VALIDATION METHODS
    # ==========================================================================

    def validate_production_config(self) -> list[str]:
        """
        Validate that all required production settings are configured.

        Returns:
            List of missing configuration keys (empty if all present)
        """
        missing = []

        if self.use_real_services:
            if not self.access_token:
                missing.append("ACCESS_TOKEN")
            if self.storage_backend == StorageBackend.MEMORY:
                missing.append("STORAGE_BACKEND (memory is not durable)")

        return missing


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Uses LRU cache to ensure settings are loaded only once,
    keeping configuration consistent across the process lifetime.

    Returns:
        Settings: Configured application settings

    Example:
        >>> settings = get_settings()
        >>> print(settings.storage_backend)
        StorageBackend.FILE
    """
    return Settings()


# =============================================================================
# LOGGING CONFIGURATION
# =============================================================================

def setup_logging(level: int = logging.INFO) -> logging.Logger:
    """
    Configure application-wide logging.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR)

    Returns:
        Configured package logger
    """
    settings = get_settings()

    if settings.debug:
        level = logging.DEBUG

    log_format = "%(asctime)s │ %(levelname)-8s │ %(name)-25s │ %(message)s"
    date_format = "%Y-%m-%d %H:%M:%S"

    logging.basicConfig(
        level=level,
        format=log_format,
        datefmt=date_format,
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("filelock").setLevel(logging.WARNING)

    return logging.getLogger("offline_sync")

