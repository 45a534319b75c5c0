"""Configuration management for workmux."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import WorkmuxError
from .multiplexer.types import BackendKind

PROJECT_CONFIG_NAME = ".workmux.yaml"


class WorkmuxSettings(BaseSettings):
    """Runtime configuration sourced from environment variables."""

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    state_home: Path | None = Field(default=None, validation_alias="XDG_STATE_HOME")
    config_home: Path | None = Field(default=None, validation_alias="XDG_CONFIG_HOME")
    backend: BackendKind | None = Field(default=None, validation_alias="WORKMUX_BACKEND")
    log_level: str = Field(default="WARNING", validation_alias="WORKMUX_LOG_LEVEL")
    poll_interval: float = Field(default=0.25, validation_alias="WORKMUX_POLL_INTERVAL")
    wait_timeout: float = Field(default=3600.0, validation_alias="WORKMUX_WAIT_TIMEOUT")
    run_timeout: float = Field(default=3600.0, validation_alias="WORKMUX_RUN_TIMEOUT")
    capture_lines: int = Field(default=200, validation_alias="WORKMUX_CAPTURE_LINES")

    @field_validator("state_home", "config_home", "backend", mode="before")
    @classmethod
    def _blank_is_unset(cls, value):
        if isinstance(value, str):
            value = value.strip()
            if not value:
                return None
        return value

    @field_validator("backend", mode="before")
    @classmethod
    def _normalize_backend(cls, value):
        if isinstance(value, str):
            return value.lower()
        return value

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError(
                "WORKMUX_LOG_LEVEL must be one of CRITICAL, ERROR, WARNING, INFO, DEBUG"
            )
        return normalized

    @field_validator("poll_interval", "wait_timeout", "run_timeout")
    @classmethod
    def _positive_seconds(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("intervals and timeouts must be > 0 seconds")
        return value

    @field_validator("capture_lines")
    @classmethod
    def _positive_lines(cls, value: int) -> int:
        if value < 1:
            raise ValueError("WORKMUX_CAPTURE_LINES must be >= 1")
        return value

    @property
    def state_root(self) -> Path:
        """Directory holding agent state files and run artifacts."""

        base = self.state_home or Path.home() / ".local" / "state"
        return base.expanduser() / "workmux"

    @property
    def global_config_path(self) -> Path:
        base = self.config_home or Path.home() / ".config"
        return base.expanduser() / "workmux" / "config.yaml"


@lru_cache(maxsize=1)
def get_settings() -> WorkmuxSettings:
    """Return cached settings instance."""

    return WorkmuxSettings()


class ConfigLoadError(WorkmuxError):
    """Raised when a workmux YAML config file cannot be parsed."""


class StatusIcons(BaseModel):
    """Icons shown in the multiplexer status bar for each agent status."""

    working: str = "🤖"
    waiting: str = "💬"
    done: str = "✅"
    idle: str = "💤"

    def for_status(self, status: str) -> str | None:
        return getattr(self, status, None) if status in type(self).model_fields else None


class WorkmuxConfig(BaseModel):
    """Subset of the workmux YAML config consumed by status reporting."""

    status_format: bool = Field(
        default=True,
        description="Whether set-window-status should update the status bar icon.",
    )
    status_icons: StatusIcons = Field(default_factory=StatusIcons)

    @field_validator("status_icons", mode="before")
    @classmethod
    def _none_is_default(cls, value: Any):
        return {} if value is None else value


def find_project_config(start: Path) -> Path | None:
    """Return the nearest project config file at or above ``start``."""

    current = start.resolve()
    for directory in (current, *current.parents):
        candidate = directory / PROJECT_CONFIG_NAME
        if candidate.is_file():
            return candidate
    return None


def _merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _read_document(path: Path) -> dict[str, Any]:
    try:
        document = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ConfigLoadError(f"Failed to parse YAML in {path}: {exc}") from exc
    if document is None:
        return {}
    if not isinstance(document, dict):
        raise ConfigLoadError(f"Config file {path} must contain a mapping")
    return document


def load_config(settings: WorkmuxSettings, cwd: Path | None = None) -> WorkmuxConfig:
    """Load the global config overlaid by the nearest project config.

    Missing files are treated as empty documents.
    """

    sources: list[Path] = []
    if settings.global_config_path.is_file():
        sources.append(settings.global_config_path)
    project = find_project_config(cwd or Path.cwd())
    if project is not None:
        sources.append(project)

    merged: dict[str, Any] = {}
    for path in sources:
        merged = _merge(merged, _read_document(path))

    try:
        return WorkmuxConfig.model_validate(merged)
    except ValidationError as exc:
        raise ConfigLoadError(f"Config validation error: {exc}") from exc


__all__ = [
    "ConfigLoadError",
    "StatusIcons",
    "WorkmuxConfig",
    "WorkmuxSettings",
    "find_project_config",
    "get_settings",
    "load_config",
]
