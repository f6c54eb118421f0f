from __future__ import annotations

from pathlib import Path
from typing import Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigError

DEFAULT_CONFIG_PATH = "config.yaml"


# ─────────────────────────────────────────────
# Sections
# ─────────────────────────────────────────────

class UpsSettings(BaseModel):
    host: str = Field(default="localhost", description="upsd host")
    name: str = Field(default="ups", description="Device name as known to upsd")
    port: int = Field(default=3493, ge=1, le=65535)
    username: Optional[str] = None
    password: Optional[str] = None
    # Skip the cycle on a non-numeric charge/runtime instead of reading it as 0
    strict_numeric: bool = False


class MonitoringSettings(BaseModel):
    poll_interval: float = Field(default=5.0, description="Seconds between polls")

    @field_validator("poll_interval")
    @classmethod
    def _ensure_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("poll_interval must be positive")
        return v


class ShutdownSettings(BaseModel):
    enabled: bool = False
    on_battery_seconds: int = Field(default=300, ge=0)
    battery_percent_threshold: float = Field(default=20.0, ge=0, le=100)
    runtime_threshold: int = Field(default=180, ge=0)
    shutdown_command: str = "/sbin/shutdown -h +0"
    shutdown_grace_period: int = Field(default=30, ge=0)


class LoggingSettings(BaseModel):
    log_file: Optional[str] = None
    log_level: str = "info"


class MetricsSettings(BaseModel):
    enabled: bool = False
    port: int = Field(default=8089, ge=1, le=65535)
    bearer_token: Optional[str] = None
    format: str = Field(default="openmetrics", description="'json' or anything else for OpenMetrics text")

    @field_validator("format", mode="before")
    @classmethod
    def _normalise_format(cls, v: Optional[str]) -> str:
        if v is None:
            return "openmetrics"
        return str(v).strip().lower()


# ─────────────────────────────────────────────
# Root
# ─────────────────────────────────────────────

class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="POWER_GUARD_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    ups: UpsSettings = Field(default_factory=UpsSettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)
    shutdown: ShutdownSettings = Field(default_factory=ShutdownSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    metrics: MetricsSettings = Field(default_factory=MetricsSettings)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "Settings":
        """
        Load a YAML config file. Values in the file win; POWER_GUARD_*
        environment variables fill whatever the file leaves out.
        """
        path = Path(path)
        try:
            raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except FileNotFoundError as exc:
            raise ConfigError(f"Config file not found: {path}") from exc
        except (OSError, yaml.YAMLError) as exc:
            raise ConfigError(f"Failed to read config file {path}: {exc}") from exc

        if not isinstance(raw, dict):
            raise ConfigError(f"Config file {path} must contain a mapping at the top level")

        try:
            return cls(**raw)
        except ValidationError as exc:
            raise ConfigError(f"Invalid configuration in {path}: {exc}") from exc
