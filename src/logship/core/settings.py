"""
Configuration models for logship using Pydantic v2 Settings.

Settings are read from ``LOGSHIP_``-prefixed environment variables with ``__``
as the nested delimiter, e.g. ``LOGSHIP_BATCH__MAX_ITEMS=500`` or
``LOGSHIP_STREAM__LOG_GROUP_NAME=/app/web``. Command-line flags are applied on
top by the CLI via ``Settings.with_overrides``.
"""

from __future__ import annotations

import uuid
from typing import Any, Literal

from pydantic import (
    BaseModel,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic_settings import (  # type: ignore[import-not-found]
    BaseSettings,
    SettingsConfigDict,
)

from .errors import ConfigurationError
from .events import EVENT_OVERHEAD_BYTES

# CloudWatch Logs caps a single event at 256 KiB including the fixed overhead
MAX_EVENT_BYTES = 262_144


class StreamSettings(BaseModel):
    """Target log group/stream and how uploads are mirrored."""

    log_group_name: str | None = Field(
        default=None,
        description="Target log group; required to run",
    )
    log_stream_name: str | None = Field(
        default=None,
        description="Target stream; defaults to '<log_group_name>/<uuid1>'",
    )
    region: str | None = Field(
        default=None,
        description="AWS region; falls back to the SDK resolution chain when unset",
    )
    quiet: bool = Field(
        default=False,
        description="Suppress the per-event stdout mirror",
    )

    @field_validator("log_group_name", "log_stream_name", "region")
    @classmethod
    def _blank_to_none(cls, value: str | None) -> str | None:
        # Only an all-blank value counts as unset; names are kept verbatim
        if value is None or not value.strip():
            return None
        return value


class BatchSettings(BaseModel):
    """Cut policy for the batcher."""

    max_items: int = Field(
        default=1000,
        ge=1,
        description="Maximum events per batch",
    )
    max_bytes: int = Field(
        default=8_000_000,
        ge=1,
        description="Maximum accounted bytes per batch (message + 26 per event)",
    )
    max_age_seconds: float = Field(
        default=1.0,
        gt=0.0,
        description="Maximum time a batch stays open after it starts waiting",
    )
    channel_capacity: int = Field(
        default=1000,
        ge=1,
        description="Bounded size of the event and batch handoff channels",
    )


class InputSettings(BaseModel):
    """How standard input is scanned."""

    max_line_bytes: int = Field(
        default=MAX_EVENT_BYTES - EVENT_OVERHEAD_BYTES,
        ge=4,
        description="Longest line kept intact; longer lines follow long_line_policy",
    )
    long_line_policy: Literal["truncate", "split", "stop"] = Field(
        default="truncate",
        description="truncate: keep the head; split: emit each chunk; stop: end input",
    )
    encoding_errors: Literal["replace", "ignore", "strict"] = Field(
        default="replace",
        description="UTF-8 decode error handling for input bytes",
    )


class UploadSettings(BaseModel):
    """Upload failure handling. One attempt means any failure is fatal."""

    max_attempts: int = Field(
        default=1,
        ge=1,
        description="Attempts per batch before the run fails",
    )
    base_delay: float = Field(
        default=0.2,
        ge=0.0,
        description="Initial backoff delay in seconds",
    )
    max_delay: float = Field(
        default=5.0,
        ge=0.0,
        description="Backoff delay cap in seconds",
    )
    refresh_token_on_mismatch: bool = Field(
        default=True,
        description="Adopt the expected sequence token on a token mismatch and retry",
    )

    @model_validator(mode="after")
    def _check_delays(self) -> "UploadSettings":
        if self.max_delay < self.base_delay:
            raise ValueError("max_delay must be >= base_delay")
        return self


class CoreSettings(BaseModel):
    internal_logging_enabled: bool = Field(
        default=False,
        description="Emit structured diagnostics to stderr",
    )
    enable_metrics: bool = Field(
        default=False,
        description="Export Prometheus metrics through an isolated registry",
    )


class Settings(BaseSettings):
    """Top-level configuration model."""

    core: CoreSettings = Field(default_factory=CoreSettings)
    stream: StreamSettings = Field(default_factory=StreamSettings)
    batch: BatchSettings = Field(default_factory=BatchSettings)
    input: InputSettings = Field(default_factory=InputSettings)
    upload: UploadSettings = Field(default_factory=UploadSettings)

    model_config = SettingsConfigDict(
        env_prefix="LOGSHIP_",
        env_nested_delimiter="__",
        extra="ignore",
        case_sensitive=False,
    )

    @classmethod
    def load(cls) -> Settings:
        """Read settings from the environment.

        Invalid values raise ``ConfigurationError`` instead of a raw
        ``ValidationError``.
        """
        try:
            return cls()
        except ValidationError as exc:
            raise ConfigurationError(
                f"invalid configuration: {_summarize(exc)}", cause=exc
            ) from exc

    def with_overrides(self, **sections: dict[str, Any]) -> Settings:
        """Return a copy with non-None values from ``sections`` applied.

        ``sections`` maps a section name to a dict of field overrides, e.g.
        ``with_overrides(stream={"quiet": True})``.
        """
        data = self.model_dump()
        for section, values in sections.items():
            if section not in data:
                raise ConfigurationError(f"unknown settings section: {section}")
            data[section].update({k: v for k, v in values.items() if v is not None})
        try:
            return Settings.model_validate(data)
        except ValidationError as exc:
            raise ConfigurationError(
                f"invalid configuration: {_summarize(exc)}", cause=exc
            ) from exc

    def require_log_group(self) -> str:
        if not self.stream.log_group_name:
            raise ConfigurationError("log-group-name is required.")
        return self.stream.log_group_name


def _summarize(exc: ValidationError) -> str:
    """One-line summary of a validation failure, e.g. ``batch.max_items: ...``."""
    parts: list[str] = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err["loc"])
        parts.append(f"{loc}: {err['msg']}" if loc else err["msg"])
    return "; ".join(parts)


def resolve_stream_name(log_group_name: str, log_stream_name: str | None) -> str:
    """Return the configured stream, or ``<group>/<uuid1>`` when absent."""
    if log_stream_name:
        return log_stream_name
    return f"{log_group_name}/{uuid.uuid1()}"
