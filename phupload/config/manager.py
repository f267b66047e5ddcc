"""Configuration manager for phupload."""

import copy
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from phupload.config.defaults import CONFIG_FILE, DEFAULT_CONFIG, DESTINATIONS

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Exception raised for configuration errors."""
    pass


class ConfigManager:
    """Manages configuration loading and lookup.

    This class loads configuration from a YAML file, merges it with the
    defaults and provides access to values with dot notation. The merged
    defaults are never written back; only credential stores write to the
    file, and only to their own section.

    Attributes:
        config: Dictionary containing all configuration values
        config_path: Path to the loaded configuration file

    Examples:
        >>> config = ConfigManager.load("config.yaml")
        >>> print(config.get("oauth.callback_port"))
        8484
        >>> print(config.get("cloudinary.cloud_name"))
        'my-cloud'
    """

    def __init__(self, config: Dict[str, Any], config_path: Optional[Path] = None):
        """Initialize configuration manager.

        Args:
            config: Configuration dictionary
            config_path: Path to the configuration file (optional)
        """
        self.config = config
        self.config_path = config_path

    @classmethod
    def load(cls, config_path: Optional[str] = None) -> "ConfigManager":
        """Load configuration from file.

        This method loads the specified path, or searches for config.yaml in
        the standard locations.

        Args:
            config_path: Path to configuration file (optional)

        Returns:
            ConfigManager instance with loaded configuration

        Raises:
            ConfigError: If configuration cannot be loaded
        """
        if config_path:
            path = Path(config_path).expanduser()
        else:
            path = cls._find_config_file()

        if not path or not path.exists():
            raise ConfigError(
                f"Configuration file not found: {path or CONFIG_FILE}\n"
                "Create it with at least one destination section "
                f"({', '.join(DESTINATIONS)})."
            )

        logger.info(f"Loading configuration from: {path}")
        return cls(cls._merge_with_defaults(cls._load_yaml(path)), path)

    @staticmethod
    def _find_config_file() -> Optional[Path]:
        """Search for config.yaml in standard locations.

        Search order:
        1. ~/.phupload/config.yaml (user home directory - primary location)
        2. ./config.yaml (current directory - for development/testing)

        Returns:
            Path to config file if found, None otherwise
        """
        search_paths = [
            CONFIG_FILE,
            Path.cwd() / "config.yaml",
        ]

        for path in search_paths:
            if path.exists():
                logger.debug(f"Found config file: {path}")
                return path

        logger.debug("No config file found in standard locations")
        return None

    @staticmethod
    def _load_yaml(path: Path) -> Dict[str, Any]:
        """Load configuration from YAML file.

        Args:
            path: Path to YAML file

        Returns:
            Configuration dictionary (empty for an empty file)

        Raises:
            ConfigError: If file cannot be loaded or parsed
        """
        try:
            with open(path, "r") as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(
                f"Failed to parse YAML configuration: {path}\n"
                f"Error: {e}"
            ) from e
        except OSError as e:
            raise ConfigError(
                f"Failed to load configuration file: {path}\n"
                f"Error: {e}"
            ) from e

        if config is None:
            return {}
        if not isinstance(config, dict):
            raise ConfigError(
                f"Invalid configuration file: {path}\n"
                "Configuration must be a YAML dictionary."
            )
        return config

    @staticmethod
    def _save_yaml(config: Dict[str, Any], path: Path) -> None:
        """Atomically save configuration to a YAML file.

        The document is written to a temporary file in the same directory
        and moved over ``path``, so a crash mid-write leaves the previous
        file intact.

        Args:
            config: Configuration dictionary
            path: Path to save YAML file

        Raises:
            ConfigError: If file cannot be saved
        """
        path = Path(path)
        tmp_name = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)

            fd, tmp_name = tempfile.mkstemp(
                dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp"
            )
            with os.fdopen(fd, "w") as f:
                yaml.safe_dump(
                    config,
                    f,
                    default_flow_style=False,
                    sort_keys=False,
                    allow_unicode=True
                )
                f.flush()
                os.fsync(f.fileno())

            if path.exists():
                os.chmod(tmp_name, path.stat().st_mode & 0o777)
            os.replace(tmp_name, path)
            tmp_name = None
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(
                f"Failed to save configuration to: {path}\n"
                f"Error: {e}"
            ) from e
        finally:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)

    @staticmethod
    def _merge_with_defaults(config: Dict[str, Any]) -> Dict[str, Any]:
        """Merge loaded config with defaults to add any new fields.

        User config values take precedence over defaults. This only adds
        missing keys from defaults, never overwrites user values.

        Args:
            config: Loaded configuration dictionary

        Returns:
            Merged configuration with defaults
        """
        def deep_merge(base: dict, updates: dict) -> dict:
            """Recursively merge two dictionaries, with updates taking precedence."""
            result = copy.deepcopy(base)
            for key, value in updates.items():
                if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                    result[key] = deep_merge(result[key], value)
                else:
                    result[key] = value
            return result

        return deep_merge(DEFAULT_CONFIG, config)

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value using dot notation.

        Args:
            key: Configuration key (e.g., "oauth.callback_port")
            default: Default value to return if key not found

        Returns:
            Configuration value or default

        Examples:
            >>> config.get("oauth.callback_port")
            8484
            >>> config.get("nonexistent.key", "default_value")
            'default_value'
        """
        value = self._get_nested_value(self.config, key)
        return value if value is not None else default

    def has_section(self, name: str) -> bool:
        """Return True if a destination section is configured."""
        return bool(self.config.get(name))

    @staticmethod
    def _get_nested_value(config: Dict[str, Any], key: str) -> Any:
        """Get value from nested dictionary using dot notation.

        Args:
            config: Configuration dictionary
            key: Dot-separated key path

        Returns:
            Value at key path, or None if not found
        """
        keys = key.split(".")
        value = config

        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return None

        return value

    def __repr__(self) -> str:
        """Return string representation of configuration."""
        path_str = f" from {self.config_path}" if self.config_path else ""
        return f"<ConfigManager{path_str}>"
