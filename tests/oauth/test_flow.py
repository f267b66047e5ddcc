"""Tests for the three-legged token exchange flow."""

import threading
import urllib.request
from unittest.mock import MagicMock, Mock, patch

import pytest
import requests
import yaml

from phupload.oauth.callback import CallbackListener
from phupload.oauth.exceptions import (
    GatewayError,
    ListenerSetupError,
    MalformedResponseError,
    PersistenceError,
)
from phupload.oauth.flow import TokenExchangeFlow, parse_token_response
from phupload.oauth.models import (
    AccessTokenObtained,
    Credentials,
    OAuthEndpoints,
    Persisted,
)
from phupload.oauth.signing import base_string, sign
from phupload.oauth.store import CredentialStore

ENDPOINTS = OAuthEndpoints(
    request_token_url="https://photos.example.com/oauth/request_token",
    authorize_url="https://photos.example.com/oauth/authorize",
    access_token_url="https://photos.example.com/oauth/access_token",
    authorize_params={"perms": "write"},
)


def token_response(body, status=200):
    return Mock(ok=200 <= status < 400, status_code=status, text=body)


@pytest.fixture
def store(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("flickr:\n  client_key: consumer_key\n  client_secret: consumer_secret\n")
    return CredentialStore(path, "flickr")


@pytest.fixture
def listener():
    """Listener stub delivering verifier V."""
    stub = MagicMock(spec=CallbackListener)
    stub.callback_url = "http://127.0.0.1:8484/"
    stub.await_verifier.return_value = "V"
    stub.__enter__.return_value = stub
    return stub


@pytest.fixture
def flow(store, listener, fixed_source):
    return TokenExchangeFlow(
        ENDPOINTS,
        store,
        listener=listener,
        open_browser=False,
        notify=Mock(),
        source=fixed_source,
    )


class TestParseTokenResponse:
    """Tests for parse_token_response."""
    
    def test_parses_pairs(self):
        """Form-encoded bodies decode into a dictionary."""
        body = "oauth_callback_confirmed=true&oauth_token=T&oauth_token_secret=S%2B1"
        assert parse_token_response(body) == {
            "oauth_callback_confirmed": "true",
            "oauth_token": "T",
            "oauth_token_secret": "S+1",
        }
    
    def test_rejects_non_form_body(self):
        """HTML error pages are malformed."""
        with pytest.raises(MalformedResponseError):
            parse_token_response("<html>oops</html>")


class TestTokenExchangeFlow:
    """Tests for TokenExchangeFlow."""
    
    def test_existing_access_token_skips_flow(self, flow, listener):
        """Stored access tokens short-circuit the exchange."""
        credentials = Credentials(
            client_key="consumer_key",
            client_secret="consumer_secret",
            access_token="AT",
            access_token_secret="AS",
        )
        
        with patch("phupload.oauth.flow.requests.get") as mock_get:
            state = flow.run(credentials)
        
        mock_get.assert_not_called()
        listener.bind.assert_not_called()
        listener.__enter__.assert_not_called()
        listener.await_verifier.assert_not_called()
        assert isinstance(state, AccessTokenObtained)
        assert state.credentials is credentials
    
    def test_full_flow(self, flow, store, listener):
        """Request token, verifier and access token end in a saved record."""
        responses = [
            token_response("oauth_callback_confirmed=true&oauth_token=T&oauth_token_secret=S"),
            token_response("oauth_token=AT&oauth_token_secret=AS&user_nsid=1%40N00"),
        ]
        
        with patch("phupload.oauth.flow.requests.get", side_effect=responses) as mock_get:
            state = flow.run(store.load())
        
        assert isinstance(state, Persisted)
        assert state.saved is True
        assert state.credentials.access_token == "AT"
        assert state.credentials.access_token_secret == "AS"
        assert state.credentials.token == "T"
        assert state.credentials.verifier == "V"
        
        saved = yaml.safe_load(store.config_path.read_text())["flickr"]
        assert saved["access_token"] == "AT"
        assert saved["access_token_secret"] == "AS"
        
        flow.notify.assert_called_once_with(
            "https://photos.example.com/oauth/authorize?oauth_token=T&perms=write"
        )
        listener.await_verifier.assert_called_once()
        assert mock_get.call_count == 2
    
    def test_requests_are_signed(self, flow, store):
        """Both token calls carry valid signatures for their token secret."""
        responses = [
            token_response("oauth_token=T&oauth_token_secret=S"),
            token_response("oauth_token=AT&oauth_token_secret=AS"),
        ]
        
        with patch("phupload.oauth.flow.requests.get", side_effect=responses) as mock_get:
            flow.run(store.load())
        
        first, second = mock_get.call_args_list
        
        request_params = dict(first.kwargs["params"])
        assert first.args[0] == ENDPOINTS.request_token_url
        assert request_params["oauth_callback"] == "http://127.0.0.1:8484/"
        assert "oauth_token" not in request_params
        signature = request_params.pop("oauth_signature")
        assert signature == sign(
            base_string("GET", ENDPOINTS.request_token_url, request_params),
            "consumer_secret",
        )
        
        access_params = dict(second.kwargs["params"])
        assert second.args[0] == ENDPOINTS.access_token_url
        assert access_params["oauth_token"] == "T"
        assert access_params["oauth_verifier"] == "V"
        signature = access_params.pop("oauth_signature")
        assert signature == sign(
            base_string("GET", ENDPOINTS.access_token_url, access_params),
            "consumer_secret",
            "S",
        )
    
    def test_gateway_error_on_bad_status(self, flow, store, listener):
        """A non-success response aborts with the remote detail."""
        with patch(
            "phupload.oauth.flow.requests.get",
            return_value=token_response("oauth_problem=signature_invalid", status=401),
        ):
            with pytest.raises(GatewayError) as exc_info:
                flow.run(store.load())
        
        assert exc_info.value.status_code == 401
        assert "signature_invalid" in str(exc_info.value)
        listener.await_verifier.assert_not_called()
    
    def test_gateway_error_on_connection_failure(self, flow, store):
        """Network failures surface as GatewayError."""
        with patch(
            "phupload.oauth.flow.requests.get",
            side_effect=requests.exceptions.ConnectionError("refused"),
        ):
            with pytest.raises(GatewayError):
                flow.run(store.load())
    
    def test_gateway_error_on_timeout(self, flow, store):
        """Timeouts surface as GatewayError."""
        with patch(
            "phupload.oauth.flow.requests.get",
            side_effect=requests.exceptions.Timeout(),
        ):
            with pytest.raises(GatewayError, match="timeout"):
                flow.run(store.load())
    
    def test_malformed_request_token_response(self, flow, store, listener):
        """A response without the token pair is malformed, not a crash."""
        with patch(
            "phupload.oauth.flow.requests.get",
            return_value=token_response("oauth_token=T"),
        ):
            with pytest.raises(MalformedResponseError):
                flow.run(store.load())
        
        listener.await_verifier.assert_not_called()
    
    def test_malformed_access_token_response(self, flow, store):
        """A broken access-token response aborts without saving."""
        responses = [
            token_response("oauth_token=T&oauth_token_secret=S"),
            token_response("unexpected"),
        ]
        
        with patch("phupload.oauth.flow.requests.get", side_effect=responses):
            with pytest.raises(MalformedResponseError):
                flow.run(store.load())
        
        saved = yaml.safe_load(store.config_path.read_text())["flickr"]
        assert "access_token" not in saved
    
    def test_unconfirmed_callback(self, flow, store):
        """A provider refusing the callback URL is a malformed response."""
        with patch(
            "phupload.oauth.flow.requests.get",
            return_value=token_response(
                "oauth_callback_confirmed=false&oauth_token=T&oauth_token_secret=S"
            ),
        ):
            with pytest.raises(MalformedResponseError):
                flow.run(store.load())
    
    def test_listener_setup_error_propagates(self, flow, store, listener):
        """Failing to bind the callback port aborts before any network call."""
        listener.__enter__.side_effect = ListenerSetupError("port in use")
        
        with patch("phupload.oauth.flow.requests.get") as mock_get:
            with pytest.raises(ListenerSetupError):
                flow.run(store.load())
        
        mock_get.assert_not_called()
    
    def test_persistence_error_keeps_token(self, listener, fixed_source):
        """A failed save is reported on the state but the token is returned."""
        failing_store = Mock(spec=CredentialStore)
        failing_store.save.side_effect = PersistenceError("read-only filesystem")
        flow = TokenExchangeFlow(
            ENDPOINTS, failing_store, listener=listener,
            open_browser=False, notify=Mock(), source=fixed_source,
        )
        responses = [
            token_response("oauth_token=T&oauth_token_secret=S"),
            token_response("oauth_token=AT&oauth_token_secret=AS"),
        ]
        
        with patch("phupload.oauth.flow.requests.get", side_effect=responses):
            state = flow.run(Credentials("consumer_key", "consumer_secret"))
        
        assert state.saved is False
        assert isinstance(state.persist_error, PersistenceError)
        assert state.credentials.access_token == "AT"
    
    def test_missing_client_credentials(self, flow):
        """Authorization needs a consumer key and secret."""
        with pytest.raises(ValueError):
            flow.run(Credentials())
    
    def test_opens_browser(self, store, listener, fixed_source):
        """The authorize page is opened when requested."""
        flow = TokenExchangeFlow(
            ENDPOINTS, store, listener=listener, open_browser=True,
            notify=Mock(), source=fixed_source,
        )
        responses = [
            token_response("oauth_token=T&oauth_token_secret=S"),
            token_response("oauth_token=AT&oauth_token_secret=AS"),
        ]
        
        with patch("phupload.oauth.flow.requests.get", side_effect=responses), \
                patch("phupload.oauth.flow.webbrowser.open") as mock_open:
            flow.run(store.load())
        
        mock_open.assert_called_once()
        assert "oauth_token=T" in mock_open.call_args.args[0]


class TestTokenExchangeFlowWithListener:
    """End-to-end flow with a real callback listener."""
    
    def test_flow_with_real_callback(self, store, fixed_source):
        """The verifier delivered to the loopback listener completes the flow."""
        listener = CallbackListener(port=0, timeout=5)
        threads = []
        
        def redirect(url):
            callback = f"{listener.callback_url}?oauth_token=T&oauth_verifier=V"
            thread = threading.Thread(
                target=lambda: urllib.request.urlopen(callback, timeout=5).read()
            )
            thread.start()
            threads.append(thread)
        
        flow = TokenExchangeFlow(
            ENDPOINTS, store, listener=listener, open_browser=False,
            notify=redirect, source=fixed_source,
        )
        responses = [
            token_response("oauth_token=T&oauth_token_secret=S"),
            token_response("oauth_token=AT&oauth_token_secret=AS"),
        ]
        
        with patch("phupload.oauth.flow.requests.get", side_effect=responses) as mock_get:
            state = flow.run(store.load())
        for thread in threads:
            thread.join(timeout=5)
        
        assert isinstance(state, Persisted)
        assert state.credentials.verifier == "V"
        assert mock_get.call_args_list[1].kwargs["params"]["oauth_verifier"] == "V"
        assert store.load().access_token == "AT"
