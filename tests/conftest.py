"""Shared fixtures for phupload tests."""

import pytest

from phupload.metadata import Metadata
from phupload.oauth.models import Credentials


class FixedSource:
    """Nonce/timestamp source returning the same pair every time."""
    
    def __init__(self, nonce: str = "kllo9940", timestamp: str = "1191242096"):
        self.nonce = nonce
        self.timestamp = timestamp
    
    def next(self):
        return self.nonce, self.timestamp


@pytest.fixture
def fixed_source():
    return FixedSource()


@pytest.fixture
def client_credentials():
    return Credentials(client_key="consumer_key", client_secret="consumer_secret")


@pytest.fixture
def metadata():
    return Metadata(
        camera="Sony a7r III",
        focal_length="35.0 mm",
        iso="100",
        aperture="5.6",
        shutter_speed="1/250",
        title="Golden Gate At Dusk",
        description="Fog rolling in",
        created_at="2020-05-01T19:32:00-0700",
        tags=["bridge", "fog", "san francisco", "upload"],
        height_at_1200=800,
    )


@pytest.fixture
def photo_file(tmp_path):
    path = tmp_path / "dusk.jpg"
    path.write_bytes(b"\xff\xd8\xff\xe0fake-jpeg")
    return path


@pytest.fixture
def source_factory():
    """Build a FixedSource with a chosen nonce and timestamp."""
    return FixedSource
