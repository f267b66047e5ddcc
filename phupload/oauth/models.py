"""Data models for OAuth credentials, endpoints and flow states."""

from dataclasses import dataclass, field, fields
from typing import Any, Dict, Optional

from phupload.oauth.exceptions import MalformedResponseError


@dataclass(frozen=True)
class ClientCredentials:
    """Static consumer key and secret issued by the photo host."""
    client_key: str
    client_secret: str
    
    def __repr__(self) -> str:
        return f"ClientCredentials(client_key={self.client_key!r}, client_secret='***')"


@dataclass
class Credentials:
    """Credential record stored in one destination's config section.
    
    Attributes:
        client_key: Consumer key (static, from configuration)
        client_secret: Consumer secret (static, from configuration)
        token: Request token (ephemeral)
        token_secret: Request token secret (ephemeral)
        verifier: Verifier captured from the authorization callback (ephemeral)
        access_token: Long-lived access token (persisted)
        access_token_secret: Long-lived access token secret (persisted)
    """
    client_key: str = ""
    client_secret: str = ""
    token: Optional[str] = None
    token_secret: Optional[str] = None
    verifier: Optional[str] = None
    access_token: Optional[str] = None
    access_token_secret: Optional[str] = None
    
    def __post_init__(self) -> None:
        if bool(self.access_token) != bool(self.access_token_secret):
            raise ValueError(
                "access_token and access_token_secret must be set together"
            )
    
    @property
    def client(self) -> ClientCredentials:
        return ClientCredentials(self.client_key, self.client_secret)
    
    @property
    def has_access_token(self) -> bool:
        return bool(self.access_token)
    
    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Credentials":
        """Create Credentials from a configuration section.
        
        Unknown keys are ignored and empty strings are treated as absent.
        
        Args:
            data: Section dictionary
            
        Returns:
            Credentials instance
        """
        known = {f.name for f in fields(cls)}
        values = {
            key: (str(value) if value not in (None, "") else None)
            for key, value in data.items()
            if key in known
        }
        values["client_key"] = values.get("client_key") or ""
        values["client_secret"] = values.get("client_secret") or ""
        return cls(**values)
    
    def to_dict(self) -> Dict[str, Any]:
        """Return the record as a dictionary, omitting absent fields."""
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) is not None
        }
    
    def __repr__(self) -> str:
        masked = {
            f.name: ("***" if "secret" in f.name and getattr(self, f.name) else getattr(self, f.name))
            for f in fields(self)
        }
        inner = ", ".join(f"{key}={value!r}" for key, value in masked.items())
        return f"Credentials({inner})"


@dataclass(frozen=True)
class OAuthEndpoints:
    """The three endpoints of a provider's three-legged flow.
    
    Attributes:
        request_token_url: Signed GET returning a request token
        authorize_url: Page the user opens in a browser
        access_token_url: Signed GET exchanging the verified token
        authorize_params: Extra query parameters for the authorize page
    """
    request_token_url: str
    authorize_url: str
    access_token_url: str
    authorize_params: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class TokenPair:
    """A token and its secret as returned by a token endpoint."""
    token: str
    secret: str
    
    @classmethod
    def from_response(cls, params: Dict[str, str]) -> "TokenPair":
        """Build a pair from a decoded ``key=value&...`` response body.
        
        Raises:
            MalformedResponseError: If either field is missing or empty
        """
        token = params.get("oauth_token")
        secret = params.get("oauth_token_secret")
        if not token or not secret:
            missing = [
                key for key in ("oauth_token", "oauth_token_secret")
                if not params.get(key)
            ]
            raise MalformedResponseError(
                f"Token response is missing {', '.join(missing)}"
            )
        return cls(token=token, secret=secret)


# Flow states. Each transition of TokenExchangeFlow takes one of these and
# returns the next.

@dataclass(frozen=True)
class Unauthenticated:
    credentials: Credentials


@dataclass(frozen=True)
class RequestTokenObtained:
    credentials: Credentials
    request_token: TokenPair


@dataclass(frozen=True)
class UserAuthorized:
    credentials: Credentials
    request_token: TokenPair
    verifier: str


@dataclass(frozen=True)
class AccessTokenObtained:
    credentials: Credentials
    access_token: TokenPair


@dataclass(frozen=True)
class Persisted:
    """Terminal state.
    
    Attributes:
        credentials: Final credentials carrying the access token
        persist_error: Set when saving failed; the token is still usable
    """
    credentials: Credentials
    persist_error: Optional[Exception] = None
    
    @property
    def saved(self) -> bool:
        return self.persist_error is None
