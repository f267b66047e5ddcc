"""Custom exceptions for OAuth 1.0a authorization and request signing."""


class OAuthError(Exception):
    """Base exception for OAuth-related errors."""
    pass


class GatewayError(OAuthError):
    """Exception raised when a call to the OAuth provider fails.
    
    Covers connection failures, timeouts and non-success status codes.
    
    Attributes:
        message: Error message
        status_code: HTTP status code (if a response was received)
        detail: Response body or provider error detail (if available)
    """
    
    def __init__(self, message: str, status_code: int = None, detail: str = None):
        """Initialize gateway error.
        
        Args:
            message: Error message
            status_code: HTTP status code
            detail: Remote error detail
        """
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.detail = detail
    
    def __str__(self) -> str:
        """Return string representation of error."""
        text = self.message
        if self.status_code:
            text = f"{text} (HTTP {self.status_code})"
        if self.detail:
            text = f"{text}: {self.detail}"
        return text


class MalformedResponseError(OAuthError):
    """Exception raised when a response lacks the expected key/value pairs."""
    pass


class ListenerSetupError(OAuthError):
    """Exception raised when the local callback port cannot be bound."""
    pass


class ListenerTimeoutError(OAuthError):
    """Exception raised when no authorization callback arrives in time."""
    
    def __init__(self, message: str, timeout: float = None):
        super().__init__(message)
        self.timeout = timeout


class PersistenceError(OAuthError):
    """Exception raised when updated credentials cannot be written."""
    pass
