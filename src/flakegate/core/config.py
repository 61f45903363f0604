# src/flakegate/core/config.py
# Configuration management for flakegate.
"""
Configuration models and loading utilities.

The config file (.flakegate.yaml) stores:
- Gate thresholds (coverage floor, per-stage duration ceilings, flake-rate ceiling)
- Flake tracker window settings
- Locations of persisted flake state and generated reports
"""

from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, NonNegativeFloat, ValidationError, field_validator

from flakegate.errors import ConfigError
from flakegate.models import Stage

CONFIG_FILENAME = ".flakegate.yaml"

DEFAULT_MAX_DURATION: dict[Stage, float] = {
    Stage.UNIT: 600.0,
    Stage.INTEGRATION: 1800.0,
    Stage.E2E: 3600.0,
    Stage.NIGHTLY: 14400.0,
}


class GateConfig(BaseModel):
    """Thresholds applied by the gate evaluator. Never mutated at runtime."""

    model_config = ConfigDict(frozen=True)

    min_coverage: float = Field(default=80.0, ge=0.0, le=100.0, description="Coverage floor in percent")
    max_duration: dict[Stage, NonNegativeFloat] = Field(
        default_factory=lambda: dict(DEFAULT_MAX_DURATION),
        description="Per-stage duration ceiling in seconds",
    )
    blocking_duration_stages: frozenset[Stage] = Field(
        default_factory=frozenset,
        description="Stages where a duration breach fails the gate",
    )
    max_flake_rate: float = Field(default=0.01, ge=0.0, le=1.0, description="Weekly flake-rate ceiling")
    optional_stages: frozenset[Stage] = Field(
        default_factory=lambda: frozenset({Stage.NIGHTLY}),
        description="Stages allowed to report zero outcomes",
    )

    @field_validator("max_duration", mode="before")
    @classmethod
    def _merge_default_ceilings(cls, value: Any) -> Any:
        # Partial overrides keep the defaults for stages they don't mention
        if isinstance(value, dict):
            return {**DEFAULT_MAX_DURATION, **value}
        return value

    def duration_ceiling(self, stage: Stage) -> Optional[float]:
        return self.max_duration.get(stage)

    def duration_blocks(self, stage: Stage) -> bool:
        return stage in self.blocking_duration_stages

    def allows_empty(self, stage: Stage) -> bool:
        return stage in self.optional_stages


class FlakegateConfig(BaseModel):
    """flakegate configuration model."""

    version: str = Field(default="1.0", description="Config version")
    gate: GateConfig = Field(default_factory=GateConfig, description="Gate thresholds")
    window_size: int = Field(default=50, ge=1, description="Outcomes kept per test")
    window_days: int = Field(default=7, ge=1, description="Age limit of kept outcomes")
    state_path: Path = Field(
        default=Path(".flakegate/flake_state.json"),
        description="Persisted flake tracker state",
    )
    reports_dir: Path = Field(
        default=Path(".flakegate/reports"),
        description="Directory for JSON and HTML verdict reports",
    )


# Global config cache
_cached_config: Optional[FlakegateConfig] = None
_config_path: Optional[Path] = None


def load_config(path: Optional[Path] = None) -> FlakegateConfig:
    """
    Load flakegate configuration from file.

    Searches for config in order:
    1. Specified path (must exist)
    2. Current directory (.flakegate.yaml)
    3. Home directory (~/.flakegate.yaml)

    Returns the defaults if no config file is found.
    """
    global _cached_config, _config_path

    if path is not None and not path.exists():
        raise ConfigError(f"Config file not found: {path}")

    search_paths = [path] if path else [Path(CONFIG_FILENAME), Path.home() / CONFIG_FILENAME]
    config_file = next((p for p in search_paths if p.exists()), None)

    if config_file is None:
        return FlakegateConfig()

    if _cached_config is not None and config_file == _config_path:
        return _cached_config

    try:
        with open(config_file) as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Could not read {config_file}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"{config_file} must contain a mapping")

    try:
        config = FlakegateConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid config in {config_file}: {e}") from e

    _cached_config = config
    _config_path = config_file

    return config


def dump_config(config: FlakegateConfig, path: Path) -> None:
    """Write a config as YAML."""
    data = config.model_dump(mode="json")
    with open(path, "w") as f:
        yaml.dump(data, f, default_flow_style=False, sort_keys=False)


def clear_config_cache() -> None:
    """Clear the cached configuration."""
    global _cached_config, _config_path
    _cached_config = None
    _config_path = None
