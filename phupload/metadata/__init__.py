"""Photo metadata extraction for phupload."""

from phupload.metadata.exif import Metadata, MetadataError, get_metadata

__all__ = ["Metadata", "MetadataError", "get_metadata"]
