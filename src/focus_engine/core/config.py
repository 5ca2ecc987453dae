"""Configuration management with Pydantic and YAML support."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from focus_engine.models import SessionType


class TimerConfig(BaseModel):
    """Session durations and transition behaviour."""

    work_minutes: int = Field(default=25, ge=1, le=240)
    short_break_minutes: int = Field(default=5, ge=1, le=120)
    long_break_minutes: int = Field(default=15, ge=1, le=240)
    long_break_interval: int = Field(
        default=4, ge=1, description="Completed work rounds before a long break"
    )
    auto_start_breaks: bool = False
    auto_start_work: bool = False
    enable_notifications: bool = True

    # Planned-duration overrides in seconds, keyed by session type
    adaptive_overrides: dict[SessionType, int] = Field(default_factory=dict)

    # Read by the hyperfocus collaborator, not by the timer itself
    enable_hyperfocus_detection: bool = True
    max_consecutive_sessions: int = Field(default=3, ge=1)
    forced_break_after_hours: float = Field(default=2.5, gt=0)

    def duration_seconds(self, session_type: SessionType) -> int:
        """Configured planned duration for a session type."""
        if session_type == SessionType.WORK:
            return self.work_minutes * 60
        elif session_type == SessionType.SHORT_BREAK:
            return self.short_break_minutes * 60
        else:
            return self.long_break_minutes * 60


class TrackingConfig(BaseModel):
    """Foreground application tracking configuration."""

    enabled: bool = True
    interval_seconds: int = Field(default=5, ge=1, le=300, description="Seconds between probe samples")
    max_error_count: int = Field(default=10, ge=1, description="Consecutive failures before sampling stops")
    error_reset_seconds: int = Field(default=60, ge=1, description="Delay before the error counter clears")
    max_resume_hours: float = Field(default=2.0, gt=0, description="Oldest snapshot eligible for resume")

    @property
    def max_resume_seconds(self) -> int:
        return int(self.max_resume_hours * 3600)


class HistoryConfig(BaseModel):
    """Session history configuration."""

    min_session_seconds: int = Field(
        default=0, ge=0, description="Shorter sessions are not recorded"
    )


class Config(BaseSettings):
    """Main application configuration."""

    model_config = SettingsConfigDict(
        env_prefix="FOCUS_ENGINE_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # Paths
    data_dir: Path = Field(default_factory=lambda: Path.home() / ".local/share/focus-engine")
    log_dir: Path = Field(default_factory=lambda: Path.home() / ".local/state/focus-engine")
    config_dir: Path = Field(default_factory=lambda: Path.home() / ".config/focus-engine")

    # Log level
    log_level: str = Field(default="INFO", pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")

    # Sub-configurations
    timer: TimerConfig = Field(default_factory=TimerConfig)
    tracking: TrackingConfig = Field(default_factory=TrackingConfig)
    history: HistoryConfig = Field(default_factory=HistoryConfig)

    @property
    def db_path(self) -> Path:
        """Path to SQLite database."""
        return self.data_dir / "focus_engine.db"

    @property
    def config_file(self) -> Path:
        """Path to YAML config file."""
        return self.config_dir / "config.yaml"

    def ensure_directories(self) -> None:
        """Create all required directories."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.config_dir.mkdir(parents=True, exist_ok=True)

        os.chmod(self.data_dir, 0o700)

    @classmethod
    def load(cls, config_path: Path | None = None) -> Config:
        """Load configuration from YAML file, environment variables, and defaults.

        Priority (highest to lowest):
        1. Environment variables
        2. YAML config file
        3. Default values
        """
        config_path = config_path or Path.home() / ".config/focus-engine/config.yaml"

        yaml_config: dict[str, Any] = {}
        if config_path.exists():
            with open(config_path) as f:
                yaml_config = yaml.safe_load(f) or {}

        return cls(**yaml_config)

    def save(self, config_path: Path | None = None) -> None:
        """Save current configuration to YAML file."""
        config_path = config_path or self.config_file
        config_path.parent.mkdir(parents=True, exist_ok=True)

        data = self.model_dump(mode="json", exclude_none=True)

        with open(config_path, "w") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)


@lru_cache
def get_config() -> Config:
    """Get cached configuration instance."""
    return Config.load()
