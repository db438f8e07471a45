"""Configuration, preflight checks and project scaffolding."""

from technocrat.config.loader import (
    get_home_config_path,
    get_local_config_path,
    load_config,
    save_config,
)
from technocrat.config.schema import DEFAULT_CONFIG, TechnocratConfig

__all__ = [
    "DEFAULT_CONFIG",
    "TechnocratConfig",
    "get_home_config_path",
    "get_local_config_path",
    "load_config",
    "save_config",
]
