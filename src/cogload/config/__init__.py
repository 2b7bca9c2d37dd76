"""Configuration models for cogload."""

from __future__ import annotations

from .config import (
    BrowserConfig,
    Config,
    MetricsConfig,
    MonitoringConfig,
    StoreConfig,
    StoreKeys,
    TriggerConfig,
    find_config_file,
    load_config,
)

__all__ = [
    "Config",
    "MetricsConfig",
    "TriggerConfig",
    "StoreConfig",
    "StoreKeys",
    "BrowserConfig",
    "MonitoringConfig",
    "find_config_file",
    "load_config",
]
