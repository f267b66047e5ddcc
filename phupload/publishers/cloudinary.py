"""Cloudinary destination: signed upload with static API credentials."""

import hashlib
import logging
import time
from typing import Any, Dict

import requests

from phupload.publishers.base import Publisher, Upload
from phupload.publishers.exceptions import BadGatewayError

logger = logging.getLogger(__name__)


class CloudinaryPublisher(Publisher):
    """Upload photos to Cloudinary.
    
    Attributes:
        cloud_name: Cloudinary cloud name
        api_key: Cloudinary API key
        api_secret: Cloudinary API secret
        timeout: Request timeout in seconds
    """
    
    name = "cloudinary"
    UPLOAD_URL = "https://api.cloudinary.com/v1_1/{cloud_name}/image/upload"
    
    def __init__(
        self,
        cloud_name: str,
        api_key: str,
        api_secret: str,
        timeout: int = 120
    ) -> None:
        self.cloud_name = cloud_name
        self.api_key = api_key
        self.api_secret = api_secret
        self.timeout = timeout
    
    @classmethod
    def from_config(cls, section: Dict[str, Any], timeout: int = 120) -> "CloudinaryPublisher":
        cls._require(section, ("cloud_name", "api_key", "api_secret"))
        return cls(
            cloud_name=section["cloud_name"],
            api_key=section["api_key"],
            api_secret=section["api_secret"],
            timeout=timeout,
        )
    
    def signature(self, params: Dict[str, str]) -> str:
        """Return Cloudinary's SHA-1 signature over sorted upload params."""
        payload = "&".join(f"{key}={params[key]}" for key in sorted(params))
        return hashlib.sha1(f"{payload}{self.api_secret}".encode("utf-8")).hexdigest()
    
    def upload(self, photo: Upload) -> str:
        """Upload a photo and return ``<public_id>.<format>``.
        
        Raises:
            BadGatewayError: If the upload fails
        """
        logger.info("Beginning upload to cloudinary...")
        
        params = {
            "public_id": photo.metadata.title.replace(" ", "-"),
            "tags": ",".join(photo.metadata.tags),
            "timestamp": str(int(time.time())),
        }
        data = dict(params, api_key=self.api_key, signature=self.signature(params))
        url = self.UPLOAD_URL.format(cloud_name=self.cloud_name)
        
        try:
            with open(photo.path, "rb") as f:
                response = requests.post(
                    url,
                    data=data,
                    files={"file": (photo.file_name, f)},
                    timeout=self.timeout,
                )
        except requests.exceptions.RequestException as e:
            raise BadGatewayError(f"Request failed: {e}", destination=self.name) from e
        except OSError as e:
            raise BadGatewayError(
                f"Could not read {photo.path}: {e}", destination=self.name
            ) from e
        
        logger.debug(f"cloudinary response: {response.status_code}")
        error_header = response.headers.get("x-cld-error", "")
        
        try:
            body = response.json()
        except ValueError:
            body = {}
        
        if not response.ok or "public_id" not in body:
            detail = error_header or body.get("error", {}).get("message") or response.text[:200]
            raise BadGatewayError(
                f"Upload failed with status {response.status_code}: {detail}",
                destination=self.name,
            )
        
        public_url = f"{body['public_id']}.{body.get('format', '')}".rstrip(".")
        logger.info(f"Uploaded to cloudinary as {public_url}")
        return public_url
