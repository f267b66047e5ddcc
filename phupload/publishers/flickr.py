"""Flickr destination: OAuth 1.0a authorization and signed photo upload."""

import logging
import xml.etree.ElementTree as ET
from typing import List, Optional

import requests

from phupload.config import ConfigError
from phupload.oauth import (
    CallbackListener,
    CredentialStore,
    Credentials,
    OAuthError,
    OAuthEndpoints,
    SignedRequest,
    TokenExchangeFlow,
)
from phupload.publishers.base import Publisher, Upload
from phupload.publishers.exceptions import BadGatewayError, PublisherConfigError

logger = logging.getLogger(__name__)

FLICKR_ENDPOINTS = OAuthEndpoints(
    request_token_url="https://www.flickr.com/services/oauth/request_token",
    authorize_url="https://www.flickr.com/services/oauth/authorize",
    access_token_url="https://www.flickr.com/services/oauth/access_token",
    authorize_params={"perms": "write"},
)
UPLOAD_URL = "https://up.flickr.com/services/upload/"


def format_tags(tags: List[str]) -> str:
    """Join tags the way Flickr expects: space separated, quoted if needed."""
    return " ".join(f'"{tag}"' if " " in tag else tag for tag in tags)


def parse_upload_response(body: str) -> str:
    """Return the photo id from an upload response.
    
    Raises:
        BadGatewayError: If the response reports a failure or is not XML
    """
    try:
        root = ET.fromstring(body)
    except ET.ParseError as e:
        raise BadGatewayError(
            f"Unexpected upload response: {body[:200]!r}", destination="flickr"
        ) from e
    
    if root.get("stat") != "ok":
        err = root.find("err")
        message = err.get("msg") if err is not None else "unknown error"
        raise BadGatewayError(f"Upload rejected: {message}", destination="flickr")
    
    photo_id = root.findtext("photoid")
    if not photo_id:
        raise BadGatewayError("Upload response has no photo id", destination="flickr")
    return photo_id.strip()


class FlickrPublisher(Publisher):
    """Upload photos to Flickr, authorizing on first use.
    
    Attributes:
        store: Credential store for the ``flickr`` config section
        flow: Token exchange flow used when no access token is stored
        timeout: Upload timeout in seconds
    """
    
    name = "flickr"
    
    def __init__(
        self,
        store: CredentialStore,
        flow: TokenExchangeFlow,
        timeout: int = 120
    ) -> None:
        self.store = store
        self.flow = flow
        self.timeout = timeout
        self._credentials: Optional[Credentials] = None
    
    @classmethod
    def from_config(cls, config, open_browser: Optional[bool] = None) -> "FlickrPublisher":
        """Create a publisher from a loaded ConfigManager."""
        store = CredentialStore(config.config_path, cls.name)
        listener = CallbackListener(
            host=config.get("oauth.callback_host"),
            port=int(config.get("oauth.callback_port")),
            timeout=config.get("oauth.callback_timeout"),
        )
        if open_browser is None:
            open_browser = bool(config.get("oauth.open_browser", True))
        flow = TokenExchangeFlow(
            FLICKR_ENDPOINTS,
            store,
            listener=listener,
            timeout=int(config.get("oauth.request_timeout")),
            open_browser=open_browser,
        )
        return cls(store, flow, timeout=int(config.get("upload.timeout")))
    
    def authorize(self) -> Credentials:
        """Return usable credentials, running the OAuth flow if needed.
        
        Raises:
            PublisherConfigError: If the consumer key or secret is missing
            BadGatewayError: If authorization fails
        """
        if self._credentials is not None:
            return self._credentials
        
        try:
            credentials = self.store.load()
        except ConfigError as e:
            raise PublisherConfigError(str(e), destination=self.name) from e
        
        self._require(credentials.to_dict(), ("client_key", "client_secret"))
        
        try:
            state = self.flow.run(credentials)
        except OAuthError as e:
            raise BadGatewayError(f"Authorization failed: {e}", destination=self.name) from e
        
        self._credentials = state.credentials
        return self._credentials
    
    def build_upload_request(self, photo: Upload, credentials: Credentials) -> SignedRequest:
        """Build the signed form fields for an upload (the photo is unsigned)."""
        fields = {
            "title": photo.metadata.title,
            "description": photo.metadata.description,
            "tags": format_tags(photo.metadata.tags),
        }
        return SignedRequest.build(
            "POST",
            UPLOAD_URL,
            credentials.client,
            token=credentials.access_token,
            extra=fields,
            source=self.flow.source,
        ).sign(credentials.client_secret, credentials.access_token_secret)
    
    def upload(self, photo: Upload) -> str:
        """Upload a photo and return its Flickr photo id."""
        credentials = self.authorize()
        logger.info("Beginning upload to flickr...")
        request = self.build_upload_request(photo, credentials)
        
        try:
            with open(photo.path, "rb") as f:
                response = requests.post(
                    request.url,
                    data=request.transmittable_params(),
                    files={"photo": (photo.file_name, f)},
                    timeout=self.timeout,
                )
        except requests.exceptions.RequestException as e:
            raise BadGatewayError(f"Request failed: {e}", destination=self.name) from e
        except OSError as e:
            raise BadGatewayError(
                f"Could not read {photo.path}: {e}", destination=self.name
            ) from e
        
        logger.debug(f"flickr response: {response.status_code}")
        if not response.ok:
            raise BadGatewayError(
                f"Upload failed with status {response.status_code}: {response.text[:200]}",
                destination=self.name,
            )
        
        photo_id = parse_upload_response(response.text)
        logger.info(f"Uploaded to flickr as photo {photo_id}")
        return photo_id
