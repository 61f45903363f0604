# Core modules for flakegate.
"""
Core functionality for flakegate:
- config: Gate thresholds and tracker settings loaded from YAML
"""

from flakegate.core.config import (
    FlakegateConfig,
    GateConfig,
    clear_config_cache,
    dump_config,
    load_config,
)

__all__ = ["FlakegateConfig", "GateConfig", "clear_config_cache", "dump_config", "load_config"]
