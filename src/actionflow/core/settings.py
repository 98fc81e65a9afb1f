"""
Centralized settings for actionflow.

Manifesto:
    One validated, cached settings object is the single place where
    environment variables are parsed. Components receive plain values from
    it; nothing else reads ``os.environ``.

All fields can be set via ``ACTIONFLOW_*`` environment variables (e.g.
``ACTIONFLOW_DATABASE_PATH=/var/lib/actionflow.db``) or a ``.env`` file.

Tags:
    actionflow, configuration, settings, pydantic

Doc-Types:
    api-reference
"""

from __future__ import annotations

from enum import Enum
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SchedulerBackendKind(str, Enum):
    """Timer backend used by the workflow scheduler."""

    APSCHEDULER = "apscheduler"
    THREAD = "thread"


class EmailBackendKind(str, Enum):
    """Delivery mechanism behind the ``email`` action."""

    CONSOLE = "console"
    SMTP = "smtp"


class ActionFlowSettings(BaseSettings):
    """actionflow configuration.

    Order of precedence (highest → lowest):
        1. Environment variables (``ACTIONFLOW_LOG_LEVEL``, etc.)
        2. ``.env`` file
        3. Defaults below
    """

    model_config = SettingsConfigDict(
        env_prefix="ACTIONFLOW_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Logging ──────────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="console", description="json | console")

    # ── Storage ──────────────────────────────────────────────────
    database_path: str | None = Field(
        default=None,
        description="SQLite file for definitions and run history (None = in-memory)",
    )

    # ── Scheduler ────────────────────────────────────────────────
    scheduler_backend: SchedulerBackendKind = Field(default=SchedulerBackendKind.APSCHEDULER)
    scheduler_timezone: str = Field(default="UTC")

    # ── Actions ──────────────────────────────────────────────────
    http_timeout_seconds: float = Field(
        default=30.0,
        description="Transport timeout of the default webhook HTTP client",
    )
    email_backend: EmailBackendKind = Field(default=EmailBackendKind.CONSOLE)
    email_from: str = Field(default="noreply@localhost")
    smtp_host: str = Field(default="localhost")
    smtp_port: int = Field(default=587)
    smtp_user: str | None = Field(default=None)
    smtp_password: str | None = Field(default=None)
    smtp_use_tls: bool = Field(default=True)

    # ── History ──────────────────────────────────────────────────
    history_limit: int = Field(default=10, ge=1)

    # ── API ──────────────────────────────────────────────────────
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=3004)
    api_prefix: str = Field(default="/api/v1")
    api_title: str = Field(default="actionflow API")
    cors_origins: list[str] = Field(default=["*"])

    @field_validator("log_format")
    @classmethod
    def _check_log_format(cls, value: str) -> str:
        value = value.lower()
        if value not in ("json", "console"):
            raise ValueError("log_format must be 'json' or 'console'")
        return value

    @property
    def json_logs(self) -> bool:
        return self.log_format == "json"


@lru_cache(maxsize=1)
def get_settings() -> ActionFlowSettings:
    """Cached settings - loaded once per process."""
    return ActionFlowSettings()


__all__ = [
    "ActionFlowSettings",
    "EmailBackendKind",
    "SchedulerBackendKind",
    "get_settings",
]
