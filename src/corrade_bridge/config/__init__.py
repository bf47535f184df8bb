"""Configuration: YAML + env overlay."""

from corrade_bridge.config.loader import load_config, load_config_with_env
from corrade_bridge.config.schema import Config

__all__ = ["Config", "load_config", "load_config_with_env"]
