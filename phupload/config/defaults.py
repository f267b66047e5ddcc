"""Default configuration values for phupload."""

from pathlib import Path

CONFIG_DIR = Path.home() / ".phupload"
CONFIG_FILE = CONFIG_DIR / "config.yaml"

# Default configuration dictionary. Destination sections (cloudinary,
# script, flickr) have no defaults: a destination is enabled by adding
# its section to config.yaml.
DEFAULT_CONFIG = {
    # OAuth callback listener and token endpoints
    "oauth": {
        "callback_host": "127.0.0.1",
        "callback_port": 8484,
        "callback_timeout": 300,
        "request_timeout": 30,
        "open_browser": True,
    },
    
    # Upload Configuration
    "upload": {
        "timeout": 120,
    },
    
    # Logging Configuration
    "logging": {
        "level": "INFO",
        "file": "",
        "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    },
}

DESTINATIONS = ["cloudinary", "script", "flickr"]
