"""
Centralized settings for the autocommit engine.

Manifesto:
    One validated, cached settings object holds every knob the scheduler,
    executor and gateway read. Values come from ``AUTOCOMMIT_*``
    environment variables or a ``.env`` file.

Tags:
    configuration, settings, pydantic, caching, validation

Doc-Types:
    api-reference
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class PacingMode(str, Enum):
    """How additional commits beyond the first of the day are paced."""

    PROBABILISTIC = "probabilistic"
    EAGER = "eager"


class AutocommitSettings(BaseSettings):
    """Autocommit engine configuration.

    All fields can be set via ``AUTOCOMMIT_*`` environment variables (e.g.
    ``AUTOCOMMIT_TICK_INTERVAL_SECONDS=30``) or through a ``.env`` file.
    """

    model_config = SettingsConfigDict(
        env_prefix="AUTOCOMMIT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Database ─────────────────────────────────────────────────
    database_path: str = Field(default=str(Path.home() / ".autocommit" / "autocommit.db"))
    sql_dialect: str = Field(default="sqlite")

    # ── Scheduler ────────────────────────────────────────────────
    tick_interval_seconds: float = Field(default=60.0, gt=0)
    max_concurrent_rules: int = Field(default=8, ge=1)
    lock_ttl_seconds: int = Field(default=300, ge=1)
    stale_attempt_minutes: int = Field(default=30, ge=1)
    instance_id: str | None = Field(default=None)

    # ── Commit pacing ────────────────────────────────────────────
    pacing_mode: PacingMode = Field(default=PacingMode.PROBABILISTIC)
    max_pacing_probability: float = Field(default=0.5, gt=0, le=1)

    # ── Provider ─────────────────────────────────────────────────
    github_api_url: str = Field(default="https://api.github.com")
    user_agent: str = Field(default="autocommit-engine")
    request_timeout_seconds: float = Field(default=15.0, gt=0)
    commit_attribution: str | None = Field(default="Auto-committed by autocommit-engine")

    # ── Logging ──────────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json")

    @field_validator("log_format")
    @classmethod
    def _check_log_format(cls, value: str) -> str:
        if value not in ("json", "console"):
            raise ValueError("log_format must be 'json' or 'console'")
        return value

    @property
    def tick_interval_minutes(self) -> float:
        return self.tick_interval_seconds / 60.0

    @property
    def json_logs(self) -> bool:
        return self.log_format == "json"


# ── Settings factory with caching ────────────────────────────────────────

_settings_cache: dict[str, AutocommitSettings] = {}


def get_settings(*, _force_reload: bool = False) -> AutocommitSettings:
    """Load, validate, and cache an :class:`AutocommitSettings` instance."""
    if not _force_reload and "default" in _settings_cache:
        return _settings_cache["default"]

    settings = AutocommitSettings()
    _settings_cache["default"] = settings
    return settings


def clear_settings_cache() -> None:
    """Clear the settings cache (primarily for testing)."""
    _settings_cache.clear()


__all__ = ["AutocommitSettings", "PacingMode", "get_settings", "clear_settings_cache"]
