"""Pydantic settings loaded from YAML configuration."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator

_settings: Settings | None = None

_DEFAULT_CONFIG_PATH = Path("config/settings.yaml")


class NoticeConfig(BaseModel):
    """Site policy tables and timing for notice handling."""

    ignored_types: set[str] = Field(default_factory=set)
    emailed_types: set[str] = Field(default_factory=set)
    alarmed_types: set[str] = Field(default_factory=set)
    not_suppressed_types: set[str] = Field(default_factory=set)
    type_suppression_intervals: dict[str, float] = Field(default_factory=dict)
    default_suppression_interval_secs: float = 3600.0
    max_email_delay_secs: float = 15.0
    email_retry_interval_secs: float = 1.0
    suppression_sweep_interval_secs: float = 60.0
    peer_description: str = "local"
    # False while replaying recorded traffic; email is never sent then.
    live_mode: bool = True

    @field_validator(
        "default_suppression_interval_secs",
        "max_email_delay_secs",
        "suppression_sweep_interval_secs",
    )
    @classmethod
    def _non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("interval must be >= 0")
        return v

    @field_validator("email_retry_interval_secs")
    @classmethod
    def _positive_retry(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("retry interval must be > 0")
        return v

    @field_validator("type_suppression_intervals")
    @classmethod
    def _non_negative_overrides(cls, v: dict[str, float]) -> dict[str, float]:
        bad = sorted(k for k, secs in v.items() if secs < 0)
        if bad:
            raise ValueError(f"negative suppression interval for: {', '.join(bad)}")
        return v


class MailConfig(BaseModel):
    """Outbound notice email configuration."""

    destination: str = ""
    mail_from: str = "Notice Framework <notice@localhost>"
    reply_to: str = ""
    subject_prefix: str = "[Notice]"
    sendmail_path: str = "/usr/sbin/sendmail"
    user_agent: str = "notice-core/0.1"
    # Upper bound on one delivery attempt; a hung transport is abandoned after this.
    delivery_timeout_secs: float = 30.0

    @field_validator("delivery_timeout_secs")
    @classmethod
    def _positive_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("delivery timeout must be > 0")
        return v


class LogOutputConfig(BaseModel):
    """Where accepted notices are written."""

    writer: str = "structlog"  # "structlog" or "jsonl"
    directory: str = "logs"
    primary_filename: str = "notice.jsonl"
    alarm_filename: str = "notice_alarm.jsonl"

    @field_validator("writer")
    @classmethod
    def _known_writer(cls, v: str) -> str:
        if v not in ("structlog", "jsonl"):
            raise ValueError(f"unknown log writer: {v}")
        return v


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    format: str = "json"


class Settings(BaseModel):
    """Root settings container."""

    notice: NoticeConfig = NoticeConfig()
    mail: MailConfig = MailConfig()
    log_output: LogOutputConfig = LogOutputConfig()
    logging: LoggingConfig = LoggingConfig()


def load_settings(path: str | Path | None = None) -> Settings:
    """Load settings from a YAML file and cache globally.

    Args:
        path: Path to YAML config. Defaults to config/settings.yaml.

    Returns:
        Parsed Settings instance.
    """
    global _settings  # noqa: PLW0603

    config_path = Path(path) if path else _DEFAULT_CONFIG_PATH

    data: dict[str, Any] = {}
    if config_path.exists():
        with open(config_path) as f:
            raw = yaml.safe_load(f)
            if isinstance(raw, dict):
                data = raw

    _settings = Settings(**data)
    return _settings


def get_settings() -> Settings:
    """Return the cached settings, loading defaults if not yet loaded."""
    global _settings  # noqa: PLW0603
    if _settings is None:
        _settings = load_settings()
    return _settings


def reset_settings() -> None:
    """Reset the cached settings (useful for testing)."""
    global _settings  # noqa: PLW0603
    _settings = None
