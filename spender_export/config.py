"""Configuration helpers for the top spenders export."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ExportSettings(BaseSettings):
    """Runtime configuration for the export orchestrator.

    All durations are expressed in milliseconds, matching the values the job
    service reports back (its pacing interval is also in milliseconds).
    """

    job_service_url: str = Field(
        default="http://localhost:8000", alias="EXPORT_JOB_SERVICE_URL"
    )
    max_retries: int = Field(default=3, ge=0, alias="EXPORT_MAX_RETRIES")
    retry_base_delay_ms: int = Field(
        default=2000, gt=0, alias="EXPORT_RETRY_BASE_DELAY_MS"
    )
    prepare_timeout_ms: int = Field(
        default=300_000, gt=0, alias="EXPORT_PREPARE_TIMEOUT_MS"
    )
    batch_timeout_ms: int = Field(default=60_000, gt=0, alias="EXPORT_BATCH_TIMEOUT_MS")
    request_timeout_ms: int = Field(
        default=30_000, gt=0, alias="EXPORT_REQUEST_TIMEOUT_MS"
    )
    default_rate_limit_ms: int = Field(default=1000, ge=0, alias="EXPORT_RATE_LIMIT_MS")
    completion_delay_ms: int = Field(default=500, ge=0, alias="EXPORT_COMPLETION_DELAY_MS")
    cancel_reset_delay_ms: int = Field(
        default=1000, ge=0, alias="EXPORT_CANCEL_RESET_DELAY_MS"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )


class JobServiceSettings(BaseSettings):
    """Configuration for the reference job service."""

    batch_size: int = Field(default=100, gt=0, alias="EXPORT_BATCH_SIZE")
    rate_limit_ms: int = Field(default=1000, ge=0, alias="EXPORT_RATE_LIMIT_MS")
    session_ttl_seconds: int = Field(
        default=3600, gt=0, alias="EXPORT_SESSION_TTL_SECONDS"
    )
    service_name: str = "Top Spenders Export Service"
    version: str = "1.3.0"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )


__all__ = ["ExportSettings", "JobServiceSettings"]
