"""OAuth 1.0a HMAC-SHA1 request signing.

This module builds the signature base string for a request, derives the
signing key from the client and token secrets, and computes the base64
encoded HMAC-SHA1 signature that goes into ``oauth_signature``.
"""

import base64
import hashlib
import hmac
import logging
import random
import string
import time
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple
from urllib.parse import parse_qsl, quote, urlsplit

from phupload.oauth.models import ClientCredentials

logger = logging.getLogger(__name__)

SIGNATURE_METHOD = "HMAC-SHA1"
OAUTH_VERSION = "1.0"
NONCE_LENGTH = 8
NONCE_ALPHABET = string.ascii_letters + string.digits


def percent_encode(value) -> str:
    """Percent-encode a value using the RFC 3986 unreserved character set.
    
    Every byte of the UTF-8 encoding outside ``A-Z a-z 0-9 - . _ ~`` is
    escaped as ``%XX`` with uppercase hex digits.
    
    Args:
        value: Value to encode (converted with ``str`` if not a string)
        
    Returns:
        Encoded string
        
    Examples:
        >>> percent_encode("Ladies + Gentlemen")
        'Ladies%20%2B%20Gentlemen'
    """
    if not isinstance(value, str):
        value = str(value)
    return quote(value.encode("utf-8"), safe="~")


class NonceTimestampSource:
    """Produces a fresh nonce and timestamp for every signed request."""
    
    def __init__(self, rng: Optional[random.Random] = None) -> None:
        self._rng = rng or random.SystemRandom()
    
    def next(self) -> Tuple[str, str]:
        """Return a ``(nonce, timestamp)`` pair.
        
        Returns:
            Tuple of an 8 character alphanumeric nonce and the current Unix
            time in seconds as a decimal string
        """
        nonce = "".join(self._rng.choice(NONCE_ALPHABET) for _ in range(NONCE_LENGTH))
        timestamp = str(int(time.time()))
        return nonce, timestamp


def _split_url(url: str) -> Tuple[str, Dict[str, str]]:
    """Split a URL into its base (scheme, host, path) and query parameters."""
    parts = urlsplit(url)
    base_url = f"{parts.scheme}://{parts.netloc}{parts.path}"
    query = dict(parse_qsl(parts.query, keep_blank_values=True))
    return base_url, query


def base_string(method: str, url: str, params: Dict[str, str]) -> str:
    """Build the signature base string for a request.
    
    Parameters are encoded individually, sorted by encoded key (then value),
    joined into ``k=v&k=v`` and encoded once more as a single value. Any
    query string on ``url`` is folded into the parameters and left out of
    the encoded URL.
    
    Args:
        method: HTTP method (case-insensitive)
        url: Request URL
        params: Request parameters (without ``oauth_signature``)
        
    Returns:
        ``METHOD&encoded-url&encoded-params``
    """
    base_url, query = _split_url(url)
    all_params = dict(query)
    all_params.update(params)
    
    encoded = sorted(
        (percent_encode(key), percent_encode(value))
        for key, value in all_params.items()
    )
    param_string = "&".join(f"{key}={value}" for key, value in encoded)
    
    return "&".join([
        method.upper(),
        percent_encode(base_url),
        percent_encode(param_string),
    ])


def sign(base: str, client_secret: str, token_secret: Optional[str] = None) -> str:
    """Compute the HMAC-SHA1 signature of a base string.
    
    Args:
        base: Signature base string
        client_secret: Consumer secret
        token_secret: Request or access token secret (empty if absent)
        
    Returns:
        Base64 encoded digest, used verbatim as ``oauth_signature``
    """
    key = f"{percent_encode(client_secret)}&{percent_encode(token_secret or '')}"
    digest = hmac.new(
        key.encode("utf-8"),
        base.encode("utf-8"),
        hashlib.sha1,
    ).digest()
    return base64.b64encode(digest).decode("ascii")


@dataclass
class SignedRequest:
    """A single OAuth request awaiting (or carrying) its signature.
    
    Instances are built fresh for every call and never reused.
    
    Attributes:
        method: HTTP method (GET or POST)
        url: Target URL
        params: Parameter mapping including the ``oauth_*`` protocol fields
    """
    method: str
    url: str
    params: Dict[str, str] = field(default_factory=dict)
    
    @classmethod
    def build(
        cls,
        method: str,
        url: str,
        client: ClientCredentials,
        token: Optional[str] = None,
        extra: Optional[Dict[str, str]] = None,
        source: Optional[NonceTimestampSource] = None
    ) -> "SignedRequest":
        """Create a request with the mandatory protocol parameters.
        
        Args:
            method: HTTP method
            url: Target URL
            client: Consumer key and secret
            token: Request or access token to include as ``oauth_token``
            extra: Additional parameters to sign (API or protocol fields)
            source: Nonce/timestamp source (a fresh one if omitted)
            
        Returns:
            Unsigned SignedRequest
        """
        nonce, timestamp = (source or NonceTimestampSource()).next()
        params = {
            "oauth_nonce": nonce,
            "oauth_timestamp": timestamp,
            "oauth_consumer_key": client.client_key,
            "oauth_signature_method": SIGNATURE_METHOD,
            "oauth_version": OAUTH_VERSION,
        }
        if token:
            params["oauth_token"] = token
        if extra:
            params.update({key: str(value) for key, value in extra.items()})
        return cls(method=method.upper(), url=url, params=params)
    
    @property
    def is_signed(self) -> bool:
        return "oauth_signature" in self.params
    
    def base_string(self) -> str:
        unsigned = {k: v for k, v in self.params.items() if k != "oauth_signature"}
        return base_string(self.method, self.url, unsigned)
    
    def sign(self, client_secret: str, token_secret: Optional[str] = None) -> "SignedRequest":
        """Compute and store ``oauth_signature``.
        
        Args:
            client_secret: Consumer secret
            token_secret: Token secret, if a token is part of the request
            
        Returns:
            self, for chaining
        """
        self.params["oauth_signature"] = sign(
            self.base_string(), client_secret, token_secret
        )
        logger.debug(f"Signed {self.method} {self.url}")
        return self
    
    def transmittable_params(self) -> Dict[str, str]:
        """Return the parameters to send on the wire.
        
        Raises:
            ValueError: If the request has not been signed yet
        """
        if not self.is_signed:
            raise ValueError(f"Request to {self.url} has not been signed")
        return dict(self.params)
