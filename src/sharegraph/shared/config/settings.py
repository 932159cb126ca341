"""
Centralized configuration management for ShareGraph.

All environment variables and settings are managed here so that every
concurrency ceiling, storage endpoint and rate limit is tunable from one place.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional, Dict, Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Centralized settings for ShareGraph.

    All configuration is loaded from ``SHAREGRAPH_``-prefixed environment
    variables (or a ``.env`` file) with sensible defaults.
    """

    # === Logging ===
    log_level: str = Field(default="INFO", description="Level for the sharegraph logger tree")
    log_file: Optional[str] = Field(default=None, description="Optional extra log file")

    # === Object Storage Settings ===
    object_storage_backend: str = Field(default="memory", description="Object storage backend: memory or filesystem")
    data_dir: Path = Field(default=Path("data"), description="Root directory for the filesystem object store")
    public_endpoint: str = Field(default="https://static.sharegraph.local", description="Base URL of the public bucket")
    private_endpoint: str = Field(default="https://private.sharegraph.local", description="Base URL of the private bucket")

    # === Job Queue Settings ===
    redis_url: Optional[str] = Field(default=None, description="Redis URL for the createShare job queue")
    share_queue_name: str = Field(default="createShare", description="Queue name for share refresh jobs")

    # === Publishing Settings ===
    content_preview_length: int = Field(default=500, description="Characters kept in a published content preview")
    media_concurrency: int = Field(default=5, description="Concurrent media re-hosting operations")
    node_concurrency: int = Field(default=3, description="Concurrent node publishes per node-type group")
    page_concurrency: int = Field(default=5, description="Concurrent page relation publishes")
    credit_execution_markup: float = Field(default=1.0, description="Markup applied to workflow app credit usage")

    # === Duplication Settings ===
    duplicate_concurrency: int = Field(default=10, description="Concurrent node duplications per canvas")
    default_storage_quota: int = Field(default=1000, description="Library entities a user may own")

    # === Rate Limiting ===
    rate_limit_max_operations: int = Field(default=10, description="Mutating share operations allowed per window")
    rate_limit_window_seconds: int = Field(default=60, description="Rolling window length in seconds")

    # === Monitoring Settings ===
    enable_metrics: bool = Field(default=True, description="Collect in-process counters and timings")
    metrics_history: int = Field(default=1000, description="Timing samples kept per metric")

    model_config = SettingsConfigDict(
        env_prefix="SHAREGRAPH_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def logging_config(self) -> Dict[str, Any]:
        return {'level': self.log_level, 'file': self.log_file}

    @property
    def monitoring_config(self) -> Dict[str, Any]:
        return {'enabled': self.enable_metrics, 'max_history': self.metrics_history}

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v):
        valid_levels = {'DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'}
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}")
        return v.upper()

    @field_validator('object_storage_backend')
    @classmethod
    def validate_storage_backend(cls, v):
        if v not in {'memory', 'filesystem'}:
            raise ValueError("object_storage_backend must be 'memory' or 'filesystem'")
        return v

    @field_validator(
        'media_concurrency', 'node_concurrency', 'page_concurrency',
        'duplicate_concurrency', 'rate_limit_max_operations', 'rate_limit_window_seconds',
        'metrics_history',
    )
    @classmethod
    def validate_positive(cls, v):
        if v < 1:
            raise ValueError("Concurrency and rate limit values must be at least 1")
        return v


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses LRU cache to ensure settings are only loaded once per process.
    """
    return Settings()
