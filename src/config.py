"""Configuration management for the magic marker engine."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_REPO_ROOT = Path(__file__).resolve().parents[1]
_DEFAULT_CONFIG_PATH = _REPO_ROOT / "config" / "markers.yml"
_USER_CONFIG_PATHS = [
    Path("~/.config/magic-markers/markers.yml").expanduser(),
    Path("/config/markers.yml"),
]
_USER_SECRETS_PATHS = [
    Path("~/.config/magic-markers/secrets.yml").expanduser(),
    Path("/config/secrets.yml"),
]
_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


def _load_yaml(path: Path) -> dict[str, Any]:
    """Load a YAML mapping from disk, returning an empty mapping if missing."""
    if not path.exists():
        return {}
    data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file must contain a mapping: {path}")
    return data


def _merge(target: dict[str, Any], incoming: dict[str, Any]) -> dict[str, Any]:
    """Merge ``incoming`` into ``target`` section by section."""
    for key, value in incoming.items():
        existing = target.get(key)
        if isinstance(existing, dict) and isinstance(value, dict):
            _merge(existing, value)
        else:
            target[key] = value
    return target


def _yaml_settings_source(paths: list[Path]):
    """Create a Pydantic settings source for a list of YAML paths."""

    def source() -> dict[str, Any]:
        merged: dict[str, Any] = {}
        for path in paths:
            _merge(merged, _load_yaml(path))
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
    if kind == "json":
        return json.loads(raw)
    return raw


def _env_settings_source():
    """Create a settings source that maps environment variables to config keys."""
    mapping = {
        "DATABASE_URL": ("database.url", "str"),
        "USER_TIMEZONE": ("user.timezone", "str"),
        "LOG_LEVEL": ("log_level", "str"),
        "LOG_JSON": ("log_json", "bool"),
        "MARKERS_LOOKAHEAD_ROWS": ("markers.default_lookahead_rows", "int"),
        "MARKERS_PROJECT_LENGTH": ("markers.default_project_length", "int"),
        "MARKERS_TIMELINE_MAX_EXPANSIONS": ("markers.timeline_max_expansions", "int"),
        "MARKERS_SNOOZE_MINUTES": ("markers.default_snooze_minutes", "int"),
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

    url: str = "sqlite:///data/markers.db"
    echo: bool = False


class MarkerConfig(BaseModel):
    """Defaults applied by the marker service when callers omit them."""

    default_lookahead_rows: int = 5
    default_project_length: int = 100
    timeline_max_expansions: int = 500
    default_snooze_minutes: int = 15
    default_current_row: int = 1

    @field_validator("default_lookahead_rows")
    @classmethod
    def validate_lookahead_rows(cls, value: int) -> int:
        """Ensure the lookahead window is non-negative."""
        if value < 0:
            raise ValueError("markers.default_lookahead_rows must be >= 0.")
        return value

    @field_validator("default_project_length")
    @classmethod
    def validate_project_length(cls, value: int) -> int:
        """Ensure the fallback project length is positive."""
        if value < 1:
            raise ValueError("markers.default_project_length must be >= 1.")
        return value

    @field_validator("timeline_max_expansions")
    @classmethod
    def validate_timeline_max_expansions(cls, value: int) -> int:
        """Ensure the timeline expansion cap is positive."""
        if value < 1:
            raise ValueError("markers.timeline_max_expansions must be >= 1.")
        return value

    @field_validator("default_snooze_minutes")
    @classmethod
    def validate_snooze_minutes(cls, value: int) -> int:
        """Ensure the default snooze is positive."""
        if value < 1:
            raise ValueError("markers.default_snooze_minutes must be >= 1.")
        return value

    @field_validator("default_current_row")
    @classmethod
    def validate_current_row(cls, value: int) -> int:
        """Ensure the starting row is non-negative."""
        if value < 0:
            raise ValueError("markers.default_current_row must be >= 0.")
        return value


class UserConfig(BaseModel):
    """User locale configuration."""

    timezone: str = "America/New_York"

    @model_validator(mode="after")
    def validate_timezone(self) -> "UserConfig":
        """Ensure the configured timezone is valid."""
        try:
            ZoneInfo(self.timezone)
        except ZoneInfoNotFoundError as exc:
            raise ValueError(f"Invalid timezone: {self.timezone}") from exc
        return self


class Settings(BaseSettings):
    """Application settings loaded from environment variables and YAML files."""

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
            _yaml_settings_source(_USER_SECRETS_PATHS),
            _yaml_settings_source(_USER_CONFIG_PATHS),
            _yaml_settings_source([_DEFAULT_CONFIG_PATH]),
        )

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    # Database Configuration
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)

    # User Context
    user: UserConfig = Field(default_factory=UserConfig)

    # Marker Engine Defaults
    markers: MarkerConfig = Field(default_factory=MarkerConfig)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """Ensure the log level is a standard level name."""
        normalized = value.strip().upper()
        if normalized not in _LOG_LEVELS:
            raise ValueError(f"log_level must be one of: {', '.join(sorted(_LOG_LEVELS))}.")
        return normalized


# Global settings instance
settings = Settings()
