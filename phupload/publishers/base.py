"""Abstract base class for photo destinations."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

from phupload.metadata import Metadata
from phupload.publishers.exceptions import PublisherConfigError


@dataclass
class Upload:
    """A photo on its way to the configured destinations.
    
    Attributes:
        path: Path to the photo file
        metadata: Extracted photo metadata
        url: Public URL once a hosting destination has stored the photo
    """
    path: str
    metadata: Metadata
    url: Optional[str] = None
    
    @property
    def file_name(self) -> str:
        return Path(self.path).name


class Publisher(ABC):
    """Abstract base class for destinations.
    
    Attributes:
        name: Destination name used in config and log messages
    """
    
    name = "publisher"
    
    @abstractmethod
    def upload(self, photo: Upload) -> str:
        """Publish a photo.
        
        Args:
            photo: Photo and its metadata
            
        Returns:
            Destination-specific identifier or URL (may be empty)
            
        Raises:
            PublishError: If publishing fails
        """
        pass
    
    @classmethod
    def _require(cls, section: Dict[str, Any], keys: Iterable[str]) -> None:
        """Raise PublisherConfigError if any of ``keys`` is missing."""
        missing = [key for key in keys if not section.get(key)]
        if missing:
            raise PublisherConfigError(
                f"Missing required configuration fields: {', '.join(missing)}",
                destination=cls.name,
            )
    
    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}>"
