"""phupload - publish a photo to several platforms and websites.

Extracts metadata from a photo with exiftool and uploads it to Cloudinary,
Flickr (authorized through OAuth 1.0a) and any custom scripts configured in
~/.phupload/config.yaml.
"""

from phupload._version import __version__, __version_info__
from phupload.config import ConfigManager
from phupload.oauth import TokenExchangeFlow
from phupload.publishers import Upload

__license__ = "MIT"
__all__ = [
    "__version__",
    "__version_info__",
    "ConfigManager",
    "TokenExchangeFlow",
    "Upload",
]
