"""Configuration management for the session monitor."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Annotated

from pydantic import Field, field_validator, model_validator
from pydantic_settings import (
    BaseSettings,
    NoDecode,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

MONITOR_HOME = Path("~/.claude/monitor")
DEFAULT_CONFIG_FILE = MONITOR_HOME / "monitor.yaml"


def _config_file() -> Path:
    raw = os.environ.get("MONITOR_CONFIG_FILE")
    return Path(raw).expanduser() if raw else DEFAULT_CONFIG_FILE.expanduser()


class MonitorSettings(BaseSettings):
    """Runtime configuration sourced from environment variables, .env and an optional YAML file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    sessions_dir: Path = Field(
        default=MONITOR_HOME / "sessions", validation_alias="MONITOR_SESSIONS_DIR"
    )
    reconcile_interval: float = Field(default=0.5, validation_alias="MONITOR_RECONCILE_INTERVAL")
    prune_interval: float = Field(default=5.0, validation_alias="MONITOR_PRUNE_INTERVAL")
    program_name: str = Field(default="claude", validation_alias="MONITOR_PROGRAM_NAME")
    program_excludes: Annotated[tuple[str, ...], NoDecode] = Field(
        default=("claude_monitor",), validation_alias="MONITOR_PROGRAM_EXCLUDES"
    )
    stale_after_seconds: float = Field(default=600.0, validation_alias="MONITOR_STALE_AFTER")
    window_session_ttl: float = Field(
        default=86400.0,
        validation_alias="MONITOR_WINDOW_SESSION_TTL",
        description=(
            "Seconds after which a window-addressed session that has not been rewritten is removed. "
            "A live agent gets its record back on its next hook write. 0 disables expiry."
        ),
    )
    kill_grace_seconds: float = Field(default=3.0, validation_alias="MONITOR_KILL_GRACE")
    log_level: str = Field(default="INFO", validation_alias="MONITOR_LOG_LEVEL")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls, yaml_file=_config_file()),
            file_secret_settings,
        )

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError(
                "MONITOR_LOG_LEVEL must be one of CRITICAL, ERROR, WARNING, INFO, DEBUG"
            )
        return normalized

    @field_validator("program_excludes", mode="before")
    @classmethod
    def _parse_program_excludes(cls, value):
        if value is None or value == "":
            return ()
        if isinstance(value, (list, tuple)):
            return tuple(str(item).strip() for item in value if str(item).strip())
        if isinstance(value, str):
            return tuple(part.strip() for part in value.split(",") if part.strip())
        raise TypeError("MONITOR_PROGRAM_EXCLUDES must be a list or a comma-separated string")

    @field_validator("program_name")
    @classmethod
    def _validate_program_name(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("MONITOR_PROGRAM_NAME must not be empty")
        return normalized

    @field_validator("reconcile_interval", "prune_interval")
    @classmethod
    def _validate_interval(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("Polling intervals must be > 0 seconds")
        return value

    @field_validator("stale_after_seconds", "window_session_ttl", "kill_grace_seconds")
    @classmethod
    def _validate_non_negative(cls, value: float) -> float:
        if value < 0:
            raise ValueError("Durations must be >= 0 seconds")
        return value

    @model_validator(mode="after")
    def _check_interval_order(self) -> "MonitorSettings":
        if self.prune_interval < self.reconcile_interval:
            raise ValueError("MONITOR_PRUNE_INTERVAL must be >= MONITOR_RECONCILE_INTERVAL")
        return self


@lru_cache(maxsize=1)
def get_settings() -> MonitorSettings:
    """Return cached settings instance."""

    settings = MonitorSettings()
    settings.sessions_dir = settings.sessions_dir.expanduser().resolve()
    return settings


__all__ = ["MonitorSettings", "get_settings"]
