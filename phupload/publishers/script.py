"""Custom script destination: run an executable with the photo as JSON."""

import json
import logging
import subprocess
from pathlib import Path
from typing import Any, Dict

from phupload.publishers.base import Publisher, Upload
from phupload.publishers.exceptions import ScriptError

logger = logging.getLogger(__name__)


def script_payload(photo: Upload) -> Dict[str, Any]:
    """Build the JSON document passed to scripts."""
    metadata = photo.metadata
    return {
        "url": photo.url or "",
        "name": metadata.title,
        "description": metadata.description,
        "heightAt1200": metadata.height_at_1200,
        "camera": metadata.camera,
        "focalLength": metadata.focal_length,
        "iso": metadata.iso,
        "aperture": metadata.aperture,
        "shutterSpeed": metadata.shutter_speed,
        "createdAt": metadata.created_at,
        "tags": metadata.tags,
    }


class ScriptPublisher(Publisher):
    """Run a user script after upload.
    
    The script receives the payload as its only argument and runs in its
    own directory.
    """
    
    name = "script"
    
    def __init__(self, path: str, timeout: int = None) -> None:
        self.path = str(Path(path).expanduser())
        self.timeout = timeout
    
    @classmethod
    def from_config(cls, section: Dict[str, Any]) -> "ScriptPublisher":
        cls._require(section, ("path",))
        return cls(section["path"], timeout=section.get("timeout"))
    
    def upload(self, photo: Upload) -> str:
        logger.info(f"Running custom script {self.path}...")
        
        try:
            result = subprocess.run(
                [self.path, json.dumps(script_payload(photo))],
                cwd=str(Path(self.path).parent),
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise ScriptError(
                f"Script timed out after {self.timeout} seconds: {self.path}",
                destination=self.name,
            ) from e
        except OSError as e:
            raise ScriptError(
                f"Error executing a custom script. Is the path correct? ({e})",
                destination=self.name,
            ) from e
        
        if result.returncode != 0:
            logger.debug(f"Script stderr: {result.stderr}")
            raise ScriptError(
                f"Script exited with status {result.returncode}: {result.stderr.strip()}",
                destination=self.name,
            )
        
        logger.debug(f"Script output: {result.stdout.strip()}")
        return ""
    
    def __repr__(self) -> str:
        return f"<ScriptPublisher {self.path}>"
