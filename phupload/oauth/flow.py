"""Three-legged OAuth 1.0a token exchange.

The flow walks ``Unauthenticated -> RequestTokenObtained -> UserAuthorized
-> AccessTokenObtained -> Persisted``. Each transition is a method taking
the current state and returning the next one, so no step ever acts on a
partially populated record.
"""

import logging
import webbrowser
from dataclasses import replace
from typing import Callable, Dict, Optional, Union
from urllib.parse import parse_qsl, urlencode

import requests

from phupload.oauth.callback import CallbackListener
from phupload.oauth.exceptions import (
    GatewayError,
    MalformedResponseError,
    PersistenceError,
)
from phupload.oauth.models import (
    AccessTokenObtained,
    Credentials,
    OAuthEndpoints,
    Persisted,
    RequestTokenObtained,
    TokenPair,
    Unauthenticated,
    UserAuthorized,
)
from phupload.oauth.signing import NonceTimestampSource, SignedRequest
from phupload.oauth.store import CredentialStore

logger = logging.getLogger(__name__)

FinalState = Union[AccessTokenObtained, Persisted]


def parse_token_response(body: str) -> Dict[str, str]:
    """Decode an ``application/x-www-form-urlencoded`` token response.
    
    Raises:
        MalformedResponseError: If the body is not a ``key=value`` list
    """
    try:
        return dict(parse_qsl(body.strip(), keep_blank_values=True, strict_parsing=True))
    except ValueError as e:
        raise MalformedResponseError(
            f"Could not parse token response: {body[:200]!r}"
        ) from e


class TokenExchangeFlow:
    """Obtain an access token for one destination.
    
    Attributes:
        endpoints: Provider's token endpoints
        store: Where the final credentials are saved
        listener: Callback listener used during user authorization
        timeout: Timeout in seconds for every HTTP call
        open_browser: Whether to open the authorize page automatically
        notify: Callable receiving the authorize URL for display
    """
    
    def __init__(
        self,
        endpoints: OAuthEndpoints,
        store: CredentialStore,
        listener: Optional[CallbackListener] = None,
        timeout: int = 30,
        open_browser: bool = True,
        notify: Optional[Callable[[str], None]] = None,
        source: Optional[NonceTimestampSource] = None
    ) -> None:
        self.endpoints = endpoints
        self.store = store
        self.listener = listener or CallbackListener()
        self.timeout = timeout
        self.open_browser = open_browser
        self.notify = notify or self._print_authorize_url
        self.source = source or NonceTimestampSource()
    
    def run(self, credentials: Credentials) -> FinalState:
        """Run the flow to completion.
        
        If ``credentials`` already carries an access token the exchange is
        skipped entirely and an ``AccessTokenObtained`` state wrapping the
        same object is returned.
        
        Args:
            credentials: Credentials loaded from configuration
            
        Returns:
            Final state; ``state.credentials`` holds the access token
            
        Raises:
            GatewayError: If a token endpoint cannot be reached or fails
            MalformedResponseError: If a response cannot be parsed
            ListenerSetupError: If the callback port cannot be bound
            ListenerTimeoutError: If the user does not authorize in time
        """
        if credentials.has_access_token:
            logger.debug("Access token already present, skipping authorization")
            return AccessTokenObtained(
                credentials=credentials,
                access_token=TokenPair(
                    credentials.access_token, credentials.access_token_secret
                ),
            )
        
        if not credentials.client_key or not credentials.client_secret:
            raise ValueError("client_key and client_secret are required to authorize")
        
        state = Unauthenticated(credentials)
        with self.listener:
            requested = self.request_token(state)
            authorized = self.authorize(requested)
        obtained = self.access_token(authorized)
        return self.persist(obtained)
    
    def request_token(self, state: Unauthenticated) -> RequestTokenObtained:
        """Fetch a request token with the callback URL attached."""
        logger.info("Requesting OAuth request token...")
        params = self._signed_get(
            self.endpoints.request_token_url,
            state.credentials,
            extra={"oauth_callback": self.listener.callback_url},
        )
        if params.get("oauth_callback_confirmed", "true") != "true":
            raise MalformedResponseError("Provider did not confirm the callback URL")
        pair = TokenPair.from_response(params)
        
        logger.debug(f"Got request token {pair.token[:6]}...")
        return RequestTokenObtained(
            credentials=replace(
                state.credentials, token=pair.token, token_secret=pair.secret
            ),
            request_token=pair,
        )
    
    def authorization_url(self, state: RequestTokenObtained) -> str:
        query = {"oauth_token": state.request_token.token}
        query.update(self.endpoints.authorize_params)
        return f"{self.endpoints.authorize_url}?{urlencode(query)}"
    
    def authorize(self, state: RequestTokenObtained) -> UserAuthorized:
        """Send the user to the authorize page and capture the verifier."""
        url = self.authorization_url(state)
        self.notify(url)
        if self.open_browser:
            webbrowser.open(url)
        
        verifier = self.listener.await_verifier()
        return UserAuthorized(
            credentials=replace(state.credentials, verifier=verifier),
            request_token=state.request_token,
            verifier=verifier,
        )
    
    def access_token(self, state: UserAuthorized) -> AccessTokenObtained:
        """Exchange the authorized request token for an access token."""
        logger.info("Exchanging verifier for an access token...")
        params = self._signed_get(
            self.endpoints.access_token_url,
            state.credentials,
            token=state.request_token,
            extra={"oauth_verifier": state.verifier},
        )
        pair = TokenPair.from_response(params)
        
        return AccessTokenObtained(
            credentials=replace(
                state.credentials,
                access_token=pair.token,
                access_token_secret=pair.secret,
            ),
            access_token=pair,
        )
    
    def persist(self, state: AccessTokenObtained) -> Persisted:
        """Save the new credentials.
        
        A failed save is logged and recorded on the returned state; the
        access token stays usable for this run.
        """
        try:
            self.store.save(state.credentials)
        except PersistenceError as e:
            logger.warning(
                f"Authorized, but could not save credentials ({e}). "
                "You will need to authorize again next time."
            )
            return Persisted(credentials=state.credentials, persist_error=e)
        
        logger.info("Authorization complete, credentials saved")
        return Persisted(credentials=state.credentials)
    
    def _signed_get(
        self,
        url: str,
        credentials: Credentials,
        token: Optional[TokenPair] = None,
        extra: Optional[Dict[str, str]] = None
    ) -> Dict[str, str]:
        request = SignedRequest.build(
            "GET",
            url,
            credentials.client,
            token=token.token if token else None,
            extra=extra,
            source=self.source,
        ).sign(credentials.client_secret, token.secret if token else None)
        
        logger.debug(f"OAuth GET {url}")
        try:
            response = requests.get(
                url,
                params=request.transmittable_params(),
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout as e:
            raise GatewayError(
                f"Request timeout after {self.timeout} seconds: {url}"
            ) from e
        except requests.exceptions.RequestException as e:
            raise GatewayError(f"Request failed: {e}") from e
        
        logger.debug(f"  Response: {response.status_code}")
        if not response.ok:
            raise GatewayError(
                f"Token request to {url} failed",
                status_code=response.status_code,
                detail=response.text.strip()[:500] or None,
            )
        
        return parse_token_response(response.text)
    
    @staticmethod
    def _print_authorize_url(url: str) -> None:
        print()
        print("Open this URL in your browser to authorize phupload:")
        print(f"  {url}")
        print()
