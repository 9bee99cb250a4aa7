"""Pydantic models describing dashkit configuration."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from dashkit.concurrency.backoff import BackoffOptions
from dashkit.concurrency.poller import PollerOptions
from dashkit.timing.timespan import TimeSpan
from dashkit.util.logging import LogLevel


class LoggingSettings(BaseModel):
    """Options forwarded to :class:`dashkit.util.logging.ServiceLogger`."""

    model_config = ConfigDict(extra="allow")

    service_name: str = "nameless-service"
    log_level: LogLevel = LogLevel.DEBUG
    global_log_level: LogLevel = LogLevel.DEBUG
    global_filter: Optional[str] = None
    verbose: bool = True
    log_path: Optional[Path] = None


class BackoffSettings(BaseModel):
    """Retry executor settings expressed in seconds."""

    model_config = ConfigDict(extra="allow")

    initial_delay_seconds: float = Field(default=5.0, ge=0)
    max_delay_seconds: float = Field(default=30.0, ge=0)
    factor: float = Field(default=2.0, gt=0)
    jitter_seconds: Optional[float] = Field(default=None, ge=0)

    @model_validator(mode="after")
    def _validate_bounds(self) -> "BackoffSettings":
        """Ensure the retry window is not empty."""

        if self.initial_delay_seconds > self.max_delay_seconds:
            raise ValueError("initial_delay_seconds must not exceed max_delay_seconds.")
        return self

    def to_options(self) -> BackoffOptions:
        jitter = TimeSpan.from_seconds(self.jitter_seconds) if self.jitter_seconds else None
        return BackoffOptions(
            initial_delay=TimeSpan.from_seconds(self.initial_delay_seconds),
            max_delay=TimeSpan.from_seconds(self.max_delay_seconds),
            factor=self.factor,
            jitter=jitter,
        )


class PollerSettings(BaseModel):
    """Adaptive poller settings expressed in seconds."""

    model_config = ConfigDict(extra="allow")

    initial_delay_seconds: float = Field(default=1.0, ge=0)
    max_delay_seconds: float = Field(default=60.0, ge=0)
    factor: float = Field(default=1.5, gt=0)
    reset_period_seconds: float = Field(default=300.0, ge=0)
    linear_step_seconds: float = Field(default=1.0, ge=0)

    @model_validator(mode="after")
    def _validate_bounds(self) -> "PollerSettings":
        if self.initial_delay_seconds > self.max_delay_seconds:
            raise ValueError("initial_delay_seconds must not exceed max_delay_seconds.")
        return self

    def to_options(self, logger: Any = None) -> PollerOptions:
        return PollerOptions(
            initial_delay=TimeSpan.from_seconds(self.initial_delay_seconds),
            max_delay=TimeSpan.from_seconds(self.max_delay_seconds),
            factor=self.factor,
            reset_period=TimeSpan.from_seconds(self.reset_period_seconds),
            linear_step=TimeSpan.from_seconds(self.linear_step_seconds),
            logger=logger,
        )


class HttpSettings(BaseModel):
    """Defaults for :class:`dashkit.web.rest.RestRequest`."""

    model_config = ConfigDict(extra="allow")

    timeout_seconds: float = Field(default=30.0, gt=0)
    throw_exception: bool = False
    headers: Dict[str, str] = Field(default_factory=dict)
    backoff: BackoffSettings = Field(default_factory=BackoffSettings)


class ToolkitConfig(BaseModel):
    """Root configuration object for dashkit."""

    model_config = ConfigDict(extra="allow")

    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    poller: PollerSettings = Field(default_factory=PollerSettings)
    http: HttpSettings = Field(default_factory=HttpSettings)


__all__ = [
    "BackoffSettings",
    "HttpSettings",
    "LoggingSettings",
    "PollerSettings",
    "ToolkitConfig",
]
