"""Configuration management for stepflow."""

from stepflow.config.settings import FlowConfig, load_config

__all__ = [
    "FlowConfig",
    "load_config",
]
