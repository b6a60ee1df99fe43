"""Configuration settings and loading."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from stepflow.errors import ConfigError

VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class FlowConfig(BaseSettings):
    """Configuration for running flows.

    Values come from (highest priority first) explicit keyword arguments,
    ``STEPFLOW_*`` environment variables, a ``.env`` file, then defaults.
    Retry timings are in milliseconds.
    """

    model_config = SettingsConfigDict(
        env_prefix="STEPFLOW_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    probe_timeout_ms: float = 300.0
    probe_sleep_ms: float = 10.0
    verbose: bool = False
    color: bool = True
    log_level: str = "INFO"
    json_logs: bool = False

    @field_validator("probe_timeout_ms")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v < 0:
            raise ValueError("probe_timeout_ms cannot be negative")
        return v

    @field_validator("probe_sleep_ms")
    @classmethod
    def validate_sleep(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("probe_sleep_ms must be greater than zero")
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = str(v).upper()
        if level not in VALID_LOG_LEVELS:
            raise ValueError(f"Invalid log level: {v}. Valid: {sorted(VALID_LOG_LEVELS)}")
        return level


def load_config(config_path: str | Path | None = None, **overrides: Any) -> FlowConfig:
    """Load configuration from a YAML file, the environment and overrides.

    Priority: overrides > env vars > config file > defaults. Keys in the
    file may be nested under a top-level ``stepflow`` mapping.

    Raises:
        ConfigError: If the file is unreadable or a value is invalid.
    """
    config_data: dict[str, Any] = {}

    if config_path is not None:
        config_path = Path(config_path)
        if not config_path.exists():
            raise ConfigError(
                message=f"Config file not found: {config_path}",
                config_path=str(config_path),
            )
        try:
            with open(config_path) as f:
                config_data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(
                message=f"Config file is not valid YAML: {config_path}",
                cause=e,
                config_path=str(config_path),
            ) from e
        if not isinstance(config_data, dict):
            raise ConfigError(message=f"Config file must contain a mapping: {config_path}")
        config_data = config_data.get("stepflow", config_data)

    try:
        # keyword arguments outrank env vars in pydantic-settings, so drop
        # file keys the environment already sets
        env_keys = FlowConfig().model_fields_set
        file_data = {k: v for k, v in config_data.items() if k not in env_keys}
        return FlowConfig(**{**file_data, **overrides})
    except ValidationError as e:
        raise ConfigError(message=f"Invalid configuration: {e}", cause=e) from e
