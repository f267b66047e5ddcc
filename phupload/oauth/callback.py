"""Single-use local HTTP listener for the OAuth authorization callback.

The photo host redirects the user's browser to the callback URL after the
request token has been authorized. This module binds that URL on loopback,
accepts exactly one request, extracts ``oauth_verifier`` from its query
string and shuts the listener down.
"""

import logging
import time
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Optional, Tuple
from urllib.parse import parse_qs, urlsplit

from phupload.oauth.exceptions import (
    ListenerSetupError,
    ListenerTimeoutError,
    MalformedResponseError,
)

logger = logging.getLogger(__name__)

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8484
DEFAULT_TIMEOUT = 300

SUCCESS_BODY = (
    b"<html><body><h1>Authorization complete</h1>"
    b"<p>You can close this tab and return to the terminal.</p></body></html>"
)
FAILURE_BODY = (
    b"<html><body><h1>Authorization failed</h1>"
    b"<p>No verifier was received. Please retry from the terminal.</p></body></html>"
)


def parse_verifier(request_line: str) -> str:
    """Extract ``oauth_verifier`` from an HTTP request line.
    
    Args:
        request_line: First line of the request, e.g.
            ``GET /?oauth_verifier=abc123 HTTP/1.1``
            
    Returns:
        Verifier string
        
    Raises:
        MalformedResponseError: If the line has no verifier
    """
    parts = request_line.strip().split()
    if len(parts) < 2:
        raise MalformedResponseError(f"Malformed callback request: {request_line!r}")
    
    query = parse_qs(urlsplit(parts[1]).query)
    verifier = query.get("oauth_verifier", [""])[0]
    if not verifier:
        raise MalformedResponseError(
            "Authorization callback did not include oauth_verifier"
        )
    return verifier


class _CallbackHandler(BaseHTTPRequestHandler):
    def parse_request(self):
        self.server.request_received = True
        return super().parse_request()
    
    def log_message(self, format, *args):
        logger.debug("Callback listener: " + format % args)
    
    def do_GET(self):
        try:
            self.server.verifier = parse_verifier(self.requestline)
        except MalformedResponseError as e:
            self.server.error = e
            self._respond(400, FAILURE_BODY)
            return
        self._respond(200, SUCCESS_BODY)
    
    def _respond(self, status: int, body: bytes) -> None:
        self.send_response(status)
        self.send_header("Content-Type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        self.send_header("Connection", "close")
        self.end_headers()
        self.wfile.write(body)


class _SingleShotServer(HTTPServer):
    allow_reuse_port = False
    verifier: Optional[str] = None
    error: Optional[Exception] = None
    timed_out: bool = False
    request_received: bool = False
    
    def get_request(self):
        # Reads on accepted sockets are bounded by the remaining wait time.
        conn, addr = super().get_request()
        conn.settimeout(self.timeout)
        return conn, addr
    
    def handle_timeout(self) -> None:
        self.timed_out = True


class CallbackListener:
    """Bind the callback port and wait for the authorization redirect.
    
    The listener is strictly single use: it handles one request and is then
    closed, whether or not that request carried a verifier.
    
    Examples:
        >>> with CallbackListener(port=8484, timeout=120) as listener:
        ...     print(f"Open the authorize page; callback: {listener.callback_url}")
        ...     verifier = listener.await_verifier()
    """
    
    def __init__(
        self,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
        timeout: Optional[float] = DEFAULT_TIMEOUT
    ) -> None:
        """Initialize listener.
        
        Args:
            host: Loopback address to bind
            port: Fixed port advertised to the API in the callback URL
            timeout: Seconds to wait for the redirect (None waits forever)
        """
        self.host = host
        self.port = port
        self.timeout = timeout
        self._server: Optional[_SingleShotServer] = None
        self._used = False
    
    @property
    def callback_url(self) -> str:
        port = self._server.server_address[1] if self._server else self.port
        return f"http://{self.host}:{port}/"
    
    def bind(self) -> "CallbackListener":
        """Bind the listening socket.
        
        Raises:
            ListenerSetupError: If the port cannot be bound or the listener
                was already used
        """
        if self._used:
            raise ListenerSetupError("Callback listener has already been used")
        if self._server is not None:
            return self
        
        try:
            self._server = _SingleShotServer((self.host, self.port), _CallbackHandler)
        except OSError as e:
            raise ListenerSetupError(
                f"Could not listen on {self.host}:{self.port} for the "
                f"authorization callback: {e}"
            ) from e
        
        self._server.timeout = self.timeout
        logger.debug(f"Callback listener bound on {self.callback_url}")
        return self
    
    def await_verifier(self) -> str:
        """Block until one callback request arrives and return its verifier.
        
        Returns:
            The ``oauth_verifier`` value
            
        Raises:
            ListenerSetupError: If binding fails
            ListenerTimeoutError: If no request arrives within the timeout
            MalformedResponseError: If the request has no verifier
        """
        self.bind()
        server = self._server
        logger.info("Waiting for the authorization callback...")
        
        deadline = None if self.timeout is None else time.monotonic() + self.timeout
        try:
            # Connections that close or stall before sending a request line
            # (browser preconnects, port probes) do not consume the listener.
            while not server.request_received and not server.timed_out:
                if deadline is not None:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        server.timed_out = True
                        break
                    server.timeout = remaining
                server.handle_request()
        finally:
            self.close()
        
        if server.timed_out:
            raise ListenerTimeoutError(
                f"No authorization callback received within {self.timeout} seconds",
                timeout=self.timeout,
            )
        if server.error is not None:
            raise server.error
        if server.verifier is None:
            raise MalformedResponseError("Authorization callback could not be read")
        
        logger.info("Authorization callback received")
        return server.verifier
    
    def close(self) -> None:
        if self._server is not None:
            self._server.server_close()
            self._server = None
            self._used = True
    
    def __enter__(self) -> "CallbackListener":
        return self.bind()
    
    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def await_verifier(
    bind_address: Tuple[str, int] = (DEFAULT_HOST, DEFAULT_PORT),
    timeout: Optional[float] = DEFAULT_TIMEOUT
) -> str:
    """Bind ``bind_address``, wait for one callback and return its verifier."""
    host, port = bind_address
    return CallbackListener(host, port, timeout).await_verifier()
