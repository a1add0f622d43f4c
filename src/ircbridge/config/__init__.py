"""Configuration: YAML + env overlay."""

from ircbridge.config.loader import load_config, load_config_with_env
from ircbridge.config.schema import Config, IrcConfig

__all__ = ["Config", "IrcConfig", "load_config", "load_config_with_env"]
