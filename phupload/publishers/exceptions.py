"""Custom exceptions for publishing photos to destinations."""


class PublishError(Exception):
    """Base exception for publishing errors.
    
    Attributes:
        destination: Name of the destination that failed
    """
    
    def __init__(self, message: str, destination: str = None):
        super().__init__(message)
        self.message = message
        self.destination = destination
    
    def __str__(self) -> str:
        if self.destination:
            return f"{self.destination}: {self.message}"
        return self.message


class PublisherConfigError(PublishError):
    """Exception raised when a destination's config section is incomplete."""
    pass


class BadGatewayError(PublishError):
    """Exception raised when a destination's API rejects or fails an upload."""
    pass


class ScriptError(PublishError):
    """Exception raised when a post-upload script cannot run or fails."""
    pass
