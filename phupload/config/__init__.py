"""Configuration management for phupload."""

from phupload.config.manager import ConfigError, ConfigManager
from phupload.config.defaults import DEFAULT_CONFIG

__all__ = ["ConfigError", "ConfigManager", "DEFAULT_CONFIG"]
