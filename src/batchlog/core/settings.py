"""
Configuration models for batchlog using Pydantic v2 Settings.

Values come from keyword arguments or ``BATCHLOG_*`` environment variables,
with ``__`` separating nested groups, e.g. ``BATCHLOG_CORE__BATCH_SIZE=500``
or ``BATCHLOG_CLOUDWATCH__LOG_GROUP=/app/prod``.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import (  # type: ignore[import-not-found]
    BaseSettings,
    SettingsConfigDict,
)

# Keep explicit version to allow schema gating and forward migrations later
LATEST_CONFIG_SCHEMA_VERSION = "1.0"

TRUNCATION_MARKER = " (...)"
# CloudWatch PutLogEvents accepts at most this many events per call
MAX_EVENTS_PER_CALL = 10_000


class CoreSettings(BaseModel):
    """Buffering, batching and scheduling settings."""

    log_level: Literal[
        "DEBUG",
        "INFO",
        "WARNING",
        "ERROR",
        "CRITICAL",
    ] = Field(
        default="INFO",
        description="Minimum severity forwarded to the destination",
    )
    max_queue_size: int | None = Field(
        default=None,
        ge=1,
        description="Event buffer capacity; unbounded when unset",
    )
    batch_size: int = Field(
        default=MAX_EVENTS_PER_CALL,
        ge=1,
        le=MAX_EVENTS_PER_CALL,
        description="Maximum number of events per delivery call",
    )
    batch_period_seconds: float = Field(
        default=5.0,
        gt=0.0,
        description="Fixed period between scheduled publisher runs",
    )
    initial_delay_seconds: float = Field(
        default=0.005,
        ge=0.0,
        description="Delay before the first scheduled publisher run",
    )
    max_message_length: int = Field(
        default=0,
        ge=0,
        description="Truncate formatted messages longer than this (0 disables)",
    )
    service_environment: str | None = Field(
        default=None,
        description="Environment tag passed through to the formatter",
    )
    service_name: str | None = Field(
        default=None,
        description="Service name passed through to the formatter",
    )
    batch_max_attempts: int = Field(
        default=10,
        ge=1,
        description="Delivery attempts per batch when the sequence token is stale",
    )
    shutdown_timeout_seconds: float = Field(
        default=60.0,
        gt=0.0,
        description="How long shutdown waits for an in-flight publish",
    )
    enable_metrics: bool = Field(
        default=False,
        description="Enable Prometheus-compatible metrics",
    )
    # Structured internal diagnostics for non-fatal errors (buffer/publisher)
    internal_logging_enabled: bool = Field(
        default=True,
        description="Emit diagnostics for dropped events and lost batches",
    )
    internal_logging_level: Literal["DEBUG", "WARN", "ERROR"] = Field(
        default="WARN",
        description="Minimum diagnostics level written to stderr",
    )
    atexit_drain_enabled: bool = Field(
        default=True,
        description="Shut down live handlers when the interpreter exits",
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_level(cls, value: object) -> object:
        if isinstance(value, str):
            value = value.strip().upper()
            return {"WARN": "WARNING", "FATAL": "CRITICAL"}.get(value, value)
        return value

    @field_validator("max_message_length")
    @classmethod
    def _room_for_marker(cls, value: int) -> int:
        if 0 < value <= len(TRUNCATION_MARKER):
            raise ValueError(
                "max_message_length must be 0 or longer than the truncation marker"
            )
        return value


class CloudWatchSettings(BaseModel):
    """Destination and client settings for the CloudWatch Logs adapter."""

    log_group: str | None = Field(default=None, description="Log group name")
    log_stream: str | None = Field(default=None, description="Log stream name")
    sequence_token: str | None = Field(
        default=None,
        description="Initial sequence token for the stream",
    )
    region: str | None = Field(default=None, description="AWS region name")
    endpoint_url: str | None = Field(
        default=None,
        description="Override endpoint, e.g. for a local emulator",
    )
    create_log_group: bool = Field(default=False)
    create_log_stream: bool = Field(default=False)

    @field_validator("log_group", "log_stream")
    @classmethod
    def _strip_names(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip()
        if not value:
            raise ValueError("log group and stream names must not be empty")
        return value

    @model_validator(mode="after")
    def _group_needed_for_stream(self) -> CloudWatchSettings:
        if self.create_log_group and not self.create_log_stream:
            # A fresh group has no streams, so the stream must be created too
            self.create_log_stream = True
        return self


class Settings(BaseSettings):
    """Top-level configuration model with versioning and grouped settings."""

    schema_version: str = Field(default=LATEST_CONFIG_SCHEMA_VERSION)

    core: CoreSettings = Field(default_factory=CoreSettings)
    cloudwatch: CloudWatchSettings = Field(default_factory=CloudWatchSettings)

    model_config = SettingsConfigDict(
        env_prefix="BATCHLOG_",
        env_nested_delimiter="__",
        extra="ignore",
        case_sensitive=False,
    )

    def to_dict(self) -> dict[str, object]:
        from typing import cast

        return cast(
            dict[str, object],
            self.model_dump(by_alias=True, exclude_none=True),
        )
