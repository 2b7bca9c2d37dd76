"""
Configuration management for cogload using Pydantic.
"""

from __future__ import annotations

import logging
import math
from pathlib import Path
from typing import Any, Dict, Literal

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# --- Setup Logging ---
log = logging.getLogger(__name__)

# --- Nested Configuration Models ---


class MetricsConfig(BaseModel):
    """Normalization caps, weights and label thresholds of the load model."""

    depth_cap: float = Field(default=20.0, gt=0, description="Depth at which the depth term saturates.")
    interactive_cap: float = Field(
        default=20.0, gt=0, description="In-view interactive count at which the density term saturates."
    )
    fragment_cap: float = Field(default=5.0, gt=0, description="Region count at which the fragmentation term saturates.")
    weights: Dict[str, float] = Field(
        default_factory=lambda: {
            "depth": 0.25,  # intrinsic load
            "density": 0.45,  # extraneous load
            "fragmentation": 0.30,  # split attention
        },
        description="Weights of the three normalized terms; must sum to 1.0.",
    )
    high_threshold: float = Field(default=0.7, ge=0, le=1, description="Scores strictly above this are High.")
    medium_threshold: float = Field(default=0.4, ge=0, le=1, description="Scores strictly above this are Medium.")
    region_min_size: float = Field(
        default=100.0, ge=0, description="Minimum width and height of a top-level region, in viewport units."
    )

    @field_validator("weights")
    @classmethod
    def validate_weights(cls, v: Dict[str, float]) -> Dict[str, float]:
        """Ensure the three weights are present, non-negative and convex."""
        missing = {"depth", "density", "fragmentation"} - set(v)
        if missing:
            raise ValueError(f"weights is missing: {', '.join(sorted(missing))}")
        if any(w < 0 for w in v.values()):
            raise ValueError("weights must be non-negative")
        if not math.isclose(sum(v.values()), 1.0, abs_tol=1e-9):
            raise ValueError("weights must sum to 1.0")
        return v

    @model_validator(mode="after")
    def validate_thresholds(self) -> MetricsConfig:
        if self.medium_threshold > self.high_threshold:
            raise ValueError("medium_threshold must not exceed high_threshold")
        return self


class TriggerConfig(BaseModel):
    """Delays of the recompute trigger sources, in milliseconds."""

    initial_delay_ms: int = Field(default=1500, ge=0, description="Delay after readiness before the first run.")
    resize_debounce_ms: int = Field(default=800, ge=0, description="Quiet period after the last resize event.")
    scroll_debounce_ms: int = Field(default=500, ge=0, description="Quiet period after the last scroll event.")
    settle_delay_ms: int = Field(
        default=400, ge=0, description="How long the control surface waits before re-reading the store."
    )


class StoreKeys(BaseModel):
    """Logical key names used in the shared store."""

    snapshot: str = "currentSnapshot"
    resource: str = "lastObservedResource"
    live_on_scroll: str = "liveOnScroll"


class StoreConfig(BaseModel):
    """Configuration for the shared key-value store."""

    backend: Literal["memory", "sqlite"] = Field(default="memory", description="Store implementation to use.")
    db_path: Path = Field(
        default_factory=lambda: Path.home() / ".cogload" / "store.db",
        description="SQLite database file path (sqlite backend only).",
    )
    keys: StoreKeys = Field(default_factory=StoreKeys)

    @field_validator("db_path", mode="before")
    @classmethod
    def coerce_db_path(cls, v: Any) -> Path:
        return Path(v) if not isinstance(v, Path) else v


class BrowserConfig(BaseModel):
    """Configuration for the Playwright-backed host."""

    headless: bool = Field(default=True, description="Run Chromium without a window.")
    viewport_width: int = Field(default=1440, gt=0)
    viewport_height: int = Field(default=900, gt=0)
    navigation_timeout_ms: int = Field(default=30000, gt=0)


class MonitoringConfig(BaseModel):
    """Configuration for logging and metrics."""

    enabled: bool = True
    log_level: str = Field(default="INFO", description="Logging level (e.g., DEBUG, INFO, WARNING).")
    log_file: str | None = Field(default=None, description="Path to log file. If None, logs to console.")
    prometheus_port: int | None = Field(default=None, description="Port for Prometheus metrics exporter. None to disable.")

    @field_validator("log_file", mode="before")
    @classmethod
    def create_parent_dir(cls, v: str | Path | None) -> str | None:
        if v is None:
            return None
        path = Path(v)
        path.parent.mkdir(parents=True, exist_ok=True)
        return str(path)


# --- Main Configuration Class ---


class Config(BaseSettings):
    project_name: str = "cogload"
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)
    trigger: TriggerConfig = Field(default_factory=TriggerConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    browser: BrowserConfig = Field(default_factory=BrowserConfig)
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)

    model_config = SettingsConfigDict(env_prefix="COGLOAD_", env_nested_delimiter="__", case_sensitive=False)

    @classmethod
    def from_yaml(cls, path: Path) -> Config:
        log.debug("Loading configuration from YAML file: %s", path)
        if not path.is_file():
            raise FileNotFoundError(f"Configuration file not found or is not a file: {path}")
        with open(path, "r", encoding="utf-8") as f:
            yaml_data = yaml.safe_load(f)
        if not yaml_data:
            log.warning("Configuration file is empty: %s. Using default settings.", path)
            return cls.model_validate({})
        return cls.model_validate(yaml_data)


def find_config_file() -> Path | None:
    current_dir = Path.cwd()
    for path in (current_dir / "cogload.yaml", current_dir / "cogload.yml"):
        if path.exists():
            return path
    return None


def load_config(path: Path | None = None) -> Config:
    """Load configuration from an explicit path, a discovered file, or defaults."""
    path = path or find_config_file()
    if path is not None:
        log.info("Loading configuration from: %s", path)
        return Config.from_yaml(path)
    return Config()
