"""Photo metadata extraction using exiftool."""

import logging
import re
import subprocess
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)

EXIFTOOL_ARGS = [
    "-S",
    "-EXIF:ISO",
    "-EXIF:ShutterSpeedValue",
    "-EXIF:ApertureValue",
    "-EXIF:FocalLength",
    "-EXIF:Make",
    "-EXIF:Model",
    "-ImageWidth",
    "-ImageHeight",
    "-Title",
    "-Keywords",
    "-Description",
    "-DateTimeCreated",
    "-d",
    "%Y-%m-%dT%H:%M:%S%z",
]

# Friendly names for internal model identifiers (not comprehensive)
CAMERA_MODELS = {
    "ILCE-7RM2": "a7r II",
    "ILCE-7RM3": "a7r III",
    "ILCE-7RM4": "a7r IV",
    "ILCE-7SM2": "a7s II",
    "ILCE-7SM3": "a7s III",
    "ILCE-7SM4": "a7s IV",
}

UPLOAD_TAG = "upload"

_LINE_RE = re.compile(r"^(?P<key>[^:]+): (?P<value>.+)$")
_WORD_RE = re.compile(r"[A-Za-z0-9]+")


class MetadataError(Exception):
    """Exception raised when metadata cannot be extracted from a photo."""
    pass


@dataclass
class Metadata:
    """Metadata describing a photo to publish.
    
    Attributes:
        camera: Camera make and friendly model name
        focal_length: Focal length as reported by exiftool
        iso: ISO speed
        aperture: Aperture value
        shutter_speed: Shutter speed value
        title: Title-cased photo title
        description: Photo description
        created_at: Creation date (ISO 8601)
        tags: Keywords plus the "upload" tag
        height_at_1200: Height of the photo when scaled to 1200px wide
    """
    camera: str = ""
    focal_length: str = ""
    iso: str = ""
    aperture: str = "0.0"
    shutter_speed: str = ""
    title: str = ""
    description: str = ""
    created_at: str = ""
    tags: List[str] = field(default_factory=list)
    height_at_1200: int = 1200


def title_case(text: str) -> str:
    """Convert text to Title Case, splitting on any non-alphanumeric run.
    
    Examples:
        >>> title_case("sunset_over the-bay")
        'Sunset Over The Bay'
    """
    return " ".join(word[:1].upper() + word[1:].lower() for word in _WORD_RE.findall(text))


def parse_exiftool_output(output: str) -> Dict[str, str]:
    """Parse ``exiftool -S`` output into a flat key/value mapping."""
    data = {}
    for line in output.splitlines():
        match = _LINE_RE.match(line.strip())
        if match:
            data[match.group("key").strip()] = match.group("value").strip()
    return data


def _height_at_1200(width: int, height: int) -> int:
    if width <= 0:
        return 1200
    return height * 1200 // width


def _read_dimensions(path: str) -> Optional[Tuple[int, int]]:
    try:
        with Image.open(path) as img:
            return img.size
    except (OSError, UnidentifiedImageError) as e:
        logger.debug(f"Could not read image size of {path}: {e}")
        return None


def _to_int(value: Optional[str]) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def metadata_from_exiftool(data: Dict[str, str], path: Optional[str] = None) -> Metadata:
    """Build Metadata from parsed exiftool output.
    
    Args:
        data: Flat key/value record from exiftool
        path: Photo path, used to read pixel dimensions when exiftool
            reported none
            
    Returns:
        Metadata instance
    """
    make = title_case(data.get("Make", ""))
    model = data.get("Model", "")
    camera = " ".join(part for part in (make, CAMERA_MODELS.get(model, model)) if part)
    
    keywords = [k.strip() for k in data.get("Keywords", "").split(",")]
    tags = [k for k in keywords if k] + [UPLOAD_TAG]
    
    width = _to_int(data.get("ImageWidth"))
    height = _to_int(data.get("ImageHeight"))
    if (width is None or height is None) and path:
        size = _read_dimensions(path)
        if size:
            width, height = size
    
    return Metadata(
        camera=camera,
        focal_length=data.get("FocalLength", ""),
        iso=data.get("ISO", ""),
        aperture=data.get("ApertureValue", "0.0"),
        shutter_speed=data.get("ShutterSpeedValue", ""),
        title=title_case(data.get("Title", "")),
        description=data.get("Description", ""),
        created_at=data.get("DateTimeCreated", ""),
        tags=tags,
        height_at_1200=_height_at_1200(width or 1, height or 1),
    )


def get_metadata(path: str, exiftool: str = "exiftool") -> Metadata:
    """Run exiftool on a photo and return its metadata.
    
    Args:
        path: Path to the photo
        exiftool: exiftool executable
        
    Returns:
        Metadata instance
        
    Raises:
        MetadataError: If exiftool cannot be run or fails
    """
    logger.debug(f"Reading metadata from {path}")
    try:
        result = subprocess.run(
            [exiftool, *EXIFTOOL_ARGS, path],
            capture_output=True,
            text=True,
            check=False,
        )
    except OSError as e:
        raise MetadataError(
            "Error gathering EXIF data. Is exiftool installed?"
        ) from e
    
    if result.returncode != 0:
        raise MetadataError(
            f"exiftool failed for {path}: {result.stderr.strip() or result.returncode}"
        )
    
    metadata = metadata_from_exiftool(parse_exiftool_output(result.stdout), path)
    logger.debug(f"Metadata: {metadata}")
    return metadata
