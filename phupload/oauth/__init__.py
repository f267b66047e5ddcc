"""OAuth 1.0a authorization and request signing for phupload."""

from phupload.oauth.callback import CallbackListener, await_verifier, parse_verifier
from phupload.oauth.exceptions import (
    GatewayError,
    ListenerSetupError,
    ListenerTimeoutError,
    MalformedResponseError,
    OAuthError,
    PersistenceError,
)
from phupload.oauth.flow import TokenExchangeFlow
from phupload.oauth.models import ClientCredentials, Credentials, OAuthEndpoints
from phupload.oauth.signing import (
    NonceTimestampSource,
    SignedRequest,
    base_string,
    percent_encode,
    sign,
)
from phupload.oauth.store import CredentialStore

__all__ = [
    "CallbackListener",
    "await_verifier",
    "parse_verifier",
    "OAuthError",
    "GatewayError",
    "ListenerSetupError",
    "ListenerTimeoutError",
    "MalformedResponseError",
    "PersistenceError",
    "TokenExchangeFlow",
    "ClientCredentials",
    "Credentials",
    "OAuthEndpoints",
    "NonceTimestampSource",
    "SignedRequest",
    "base_string",
    "percent_encode",
    "sign",
    "CredentialStore",
]
