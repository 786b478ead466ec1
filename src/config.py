"""Configuration management for the Note to Self reminder engine."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_REPO_ROOT = Path(__file__).resolve().parents[1]
_DEFAULT_CONFIG_PATH = _REPO_ROOT / "config" / "notetoself.yml"
_USER_CONFIG_PATHS = [
    Path("~/.config/notetoself/notetoself.yml").expanduser(),
    Path("/config/notetoself.yml"),
]


def _load_yaml(path: Path) -> dict[str, Any]:
    """Load a YAML mapping from disk, returning an empty mapping if missing."""
    if not path.exists():
        return {}
    data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file must contain a mapping: {path}")
    return data


def _yaml_settings_source(paths: list[Path]):
    """Create a Pydantic settings source for a list of YAML paths."""

    def source() -> dict[str, Any]:
        merged: dict[str, Any] = {}
        for path in paths:
            merged.update(_load_yaml(path))
        return merged

    return source


def _set_nested_value(target: dict[str, Any], path: str, value: Any) -> None:
    """Set a dotted-path value on a nested mapping, creating containers."""
    parts = path.split(".")
    cursor = target
    for key in parts[:-1]:
        node = cursor.get(key)
        if not isinstance(node, dict):
            node = {}
            cursor[key] = node
        cursor = node
    cursor[parts[-1]] = value


def _parse_env_value(raw: str, kind: str) -> Any:
    """Parse an environment value into the requested primitive type."""
    if kind == "int":
        return int(raw)
    if kind == "bool":
        return raw.strip().lower() in {"1", "true", "yes", "on"}
    return raw


def _env_settings_source():
    """Create a settings source that maps environment variables to config keys."""
    mapping = {
        "LOG_LEVEL": ("log_level", "str"),
        "DATABASE_URL": ("database.url", "str"),
        "USER_TIMEZONE": ("user.timezone", "str"),
        "NOTIFICATIONS_ENABLED": ("reminders.notifications_enabled", "bool"),
        "DAILY_FREQUENCY": ("reminders.daily_frequency", "int"),
        "START_HOUR": ("reminders.start_hour", "int"),
        "END_HOUR": ("reminders.end_hour", "int"),
        "MIN_GAP_HOURS": ("reminders.min_gap_hours", "int"),
    }

    def source() -> dict[str, Any]:
        data: dict[str, Any] = {}
        for env_key, (path, kind) in mapping.items():
            raw = os.environ.get(env_key)
            if raw is None:
                continue
            _set_nested_value(data, path, _parse_env_value(raw, kind))
        return data

    return source


class DatabaseConfig(BaseModel):
    """Database connection configuration."""

    url: str = "sqlite:///notetoself.db"


class UserConfig(BaseModel):
    """User identity and locale configuration."""

    name: str = "user"
    timezone: str = "UTC"

    @model_validator(mode="after")
    def validate_timezone(self) -> "UserConfig":
        """Ensure the configured timezone is valid."""
        try:
            ZoneInfo(self.timezone)
        except ZoneInfoNotFoundError as exc:
            raise ValueError(f"Invalid timezone: {self.timezone}") from exc
        return self


class ReminderDefaultsConfig(BaseModel):
    """Reminder settings used until the user stores their own."""

    notifications_enabled: bool = True
    daily_frequency: int = 3
    start_hour: int = 8
    end_hour: int = 22
    min_gap_hours: int = 2

    @field_validator("daily_frequency")
    @classmethod
    def validate_daily_frequency(cls, value: int) -> int:
        """Ensure the daily frequency is between 1 and 5."""
        if not 1 <= value <= 5:
            raise ValueError("reminders.daily_frequency must be between 1 and 5.")
        return value

    @field_validator("start_hour")
    @classmethod
    def validate_start_hour(cls, value: int) -> int:
        """Ensure the start hour is a valid hour of day."""
        if not 0 <= value <= 23:
            raise ValueError("reminders.start_hour must be between 0 and 23.")
        return value

    @field_validator("end_hour")
    @classmethod
    def validate_end_hour(cls, value: int) -> int:
        """Ensure the end hour is a valid hour of day or midnight."""
        if not 1 <= value <= 24:
            raise ValueError("reminders.end_hour must be between 1 and 24.")
        return value

    @field_validator("min_gap_hours")
    @classmethod
    def validate_min_gap_hours(cls, value: int) -> int:
        """Ensure the minimum gap is non-negative."""
        if value < 0:
            raise ValueError("reminders.min_gap_hours must be >= 0.")
        return value

    @model_validator(mode="after")
    def validate_window(self) -> "ReminderDefaultsConfig":
        """Ensure the active window is contiguous within one day."""
        if self.start_hour >= self.end_hour:
            raise ValueError("reminders.start_hour must be before reminders.end_hour.")
        return self


class SchedulingConfig(BaseModel):
    """Tuning constants for wisdom sampling and nag planning."""

    novelty_window_days: int = 14
    neutral_weight: int = 3
    novelty_boost: float = 1.5
    max_sample_attempts: int = 50
    nag_horizon_hours: int = 24
    default_nag_interval_minutes: int = 90

    @field_validator("novelty_window_days", "max_sample_attempts", "nag_horizon_hours")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        """Ensure counters and horizons are positive."""
        if value < 1:
            raise ValueError("scheduling values must be >= 1.")
        return value

    @field_validator("default_nag_interval_minutes")
    @classmethod
    def validate_default_nag_interval(cls, value: int) -> int:
        """Ensure the default nag interval is positive."""
        if value < 1:
            raise ValueError("scheduling.default_nag_interval_minutes must be >= 1.")
        return value

    @field_validator("novelty_boost")
    @classmethod
    def validate_novelty_boost(cls, value: float) -> float:
        """Ensure the novelty boost never shrinks a weight."""
        if value < 1.0:
            raise ValueError("scheduling.novelty_boost must be >= 1.0.")
        return value


class ChannelConfig(BaseModel):
    """Notification channel registration and presentation settings."""

    id: str
    name: str
    importance: str = "default"
    title: str

    @field_validator("importance")
    @classmethod
    def validate_importance(cls, value: str) -> str:
        """Ensure importance is a supported level."""
        normalized = value.strip().lower()
        if normalized not in {"low", "default", "high"}:
            raise ValueError("channel importance must be low, default, or high.")
        return normalized


class ChannelsConfig(BaseModel):
    """Channels used for wisdom and nag notifications."""

    wisdom: ChannelConfig = Field(
        default_factory=lambda: ChannelConfig(
            id="notetoself-wisdom",
            name="Wisdom Nuggets",
            importance="default",
            title="💡 Note to Self",
        )
    )
    nag: ChannelConfig = Field(
        default_factory=lambda: ChannelConfig(
            id="notetoself-nag",
            name="Nag Me Reminders",
            importance="high",
            title="⏰ Reminder",
        )
    )
    test_title: str = "💡 Note to Self (Test)"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and YAML."""

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_nested_delimiter="__",
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        """Layer settings sources in descending order of precedence."""
        return (
            init_settings,
            _env_settings_source(),
            _yaml_settings_source(_USER_CONFIG_PATHS),
            _yaml_settings_source([_DEFAULT_CONFIG_PATH]),
        )

    # Logging
    log_level: str = "INFO"

    # Database Configuration
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)

    # User Context
    user: UserConfig = Field(default_factory=UserConfig)

    # Reminder defaults
    reminders: ReminderDefaultsConfig = Field(default_factory=ReminderDefaultsConfig)

    # Scheduling constants
    scheduling: SchedulingConfig = Field(default_factory=SchedulingConfig)

    # Notification channels
    channels: ChannelsConfig = Field(default_factory=ChannelsConfig)


# Global settings instance
settings = Settings()
