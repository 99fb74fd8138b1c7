"""
Custom application exceptions.

Centralised exception definitions for the fetch client. Transport and
protocol failures are not raised through the controller; they are
classified into an ``ErrorKind`` instead (see ``domain.error_classifier``).
The exceptions here cover configuration, input and local I/O problems.
"""


class FetchError(Exception):
    """Base exception for the fetch client."""

    def __init__(self, message: str = "An unexpected error occurred"):
        self.message = message
        super().__init__(self.message)


class UrlValidationError(FetchError):
    """Raised when a URL cannot be parsed or uses an unsupported scheme."""

    def __init__(self, url: str, reason: str = "Invalid URL"):
        self.url = url
        self.reason = reason
        super().__init__(f"URL validation failed for '{url}': {reason}")


class ConfigurationError(FetchError):
    """
    Raised when the client is asked to do something it is not set up for.

    Examples: an https URL without TLS support, an unreadable CA file.
    """
    pass


class UsageError(FetchError):
    """Raised for invalid command-line arguments."""
    pass


class SinkOpenError(FetchError):
    """Raised when the output destination cannot be opened for writing."""

    def __init__(self, destination: str, reason: str = "Unknown error"):
        self.destination = destination
        self.reason = reason
        super().__init__(f"Cannot open output file '{destination}': {reason}")


class StateTransitionError(FetchError):
    """Raised on an illegal connection state transition."""

    def __init__(self, current, requested):
        self.current = current
        self.requested = requested
        super().__init__(
            f"Illegal connection state transition {current.name} -> {requested.name}"
        )
