"""Persistence of a destination's credentials in the shared config file."""

import logging
from pathlib import Path
from typing import Union

from phupload.config.manager import ConfigError, ConfigManager
from phupload.oauth.exceptions import PersistenceError
from phupload.oauth.models import Credentials

logger = logging.getLogger(__name__)


class CredentialStore:
    """Read and write one destination's section of the configuration.
    
    ``save`` re-reads the whole document from disk, replaces only its own
    section and writes the result atomically, so other destinations'
    sections are carried over untouched.
    
    Attributes:
        config_path: Path to the YAML configuration file
        section: Top-level key of this destination (e.g. ``"flickr"``)
    """
    
    def __init__(self, config_path: Union[str, Path], section: str) -> None:
        self.config_path = Path(config_path).expanduser()
        self.section = section
    
    def load(self) -> Credentials:
        """Load credentials from the configuration file.
        
        Returns:
            Credentials (empty if the file or section does not exist)
            
        Raises:
            ConfigError: If the file exists but cannot be parsed, or the
                stored access token pair is incomplete
        """
        if not self.config_path.exists():
            return Credentials()
        
        document = ConfigManager._load_yaml(self.config_path)
        data = document.get(self.section) or {}
        if not isinstance(data, dict):
            raise ConfigError(
                f"Section '{self.section}' in {self.config_path} must be a mapping"
            )
        
        try:
            return Credentials.from_dict(data)
        except ValueError as e:
            raise ConfigError(f"Invalid '{self.section}' credentials: {e}") from e
    
    def save(self, credentials: Credentials) -> None:
        """Write credentials into this destination's section.
        
        Keys in the section that are not credential fields (such as
        destination options) are preserved.
        
        Raises:
            PersistenceError: If the configuration cannot be read or written
        """
        try:
            document = (
                ConfigManager._load_yaml(self.config_path)
                if self.config_path.exists()
                else {}
            )
            section = document.get(self.section) or {}
            if not isinstance(section, dict):
                raise ConfigError(
                    f"Section '{self.section}' in {self.config_path} must be a mapping"
                )
            section = dict(section)
            section.update(credentials.to_dict())
            document[self.section] = section
            ConfigManager._save_yaml(document, self.config_path)
        except ConfigError as e:
            raise PersistenceError(
                f"Could not save {self.section} credentials to {self.config_path}: {e}"
            ) from e
        
        logger.debug(f"Saved {self.section} credentials to {self.config_path}")
