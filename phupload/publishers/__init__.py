"""Photo destinations for phupload."""

from phupload.publishers.base import Publisher, Upload
from phupload.publishers.cloudinary import CloudinaryPublisher
from phupload.publishers.exceptions import (
    BadGatewayError,
    PublishError,
    PublisherConfigError,
    ScriptError,
)
from phupload.publishers.flickr import FlickrPublisher
from phupload.publishers.script import ScriptPublisher

__all__ = [
    "Publisher",
    "Upload",
    "CloudinaryPublisher",
    "FlickrPublisher",
    "ScriptPublisher",
    "PublishError",
    "PublisherConfigError",
    "BadGatewayError",
    "ScriptError",
]
