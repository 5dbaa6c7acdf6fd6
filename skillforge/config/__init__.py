"""Configuration for skillforge."""

from skillforge.config.loader import (
    ConfigError,
    ReconcileConfig,
    get_user_config_path,
    load_config,
)

__all__ = ["ConfigError", "ReconcileConfig", "get_user_config_path", "load_config"]
