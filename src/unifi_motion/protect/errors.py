"""Exception taxonomy for the UniFi Protect motion bridge.

Startup failures (``ProbeError``, ``ConfigError``) are fatal and abort
initialization. ``AuthError`` and ``ApiError`` are per-cycle failures:
the controller facade drops its session so the next cycle
re-authenticates, and the orchestrator degrades the cycle to a no-op.
``TransportError`` is raised by the backoff helper once retries are
exhausted and is normally translated into one of the above by the caller.
"""

from __future__ import annotations


class ProtectClientError(Exception):
    """Base exception for Protect client errors.

    Attributes:
        message: Human-readable error description.
        original_error: The underlying exception that caused this error.
        status_code: HTTP status code of the failing response, if any.
    """

    def __init__(
        self,
        message: str,
        original_error: Exception | None = None,
        status_code: int | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error description.
            original_error: The underlying exception, if any.
            status_code: Optional HTTP status code.
        """
        super().__init__(message)
        self.message = message
        self.original_error = original_error
        self.status_code = status_code


class ProbeError(ProtectClientError):
    """Raised when the controller dialect cannot be determined."""

    pass


class ConfigError(ProtectClientError):
    """Raised when required configuration (credentials) is missing."""

    pass


class AuthError(ProtectClientError):
    """Raised when authentication is rejected or the session payload is malformed."""

    pass


class ApiError(ProtectClientError):
    """Raised when the controller returns an unexpected response shape."""

    pass


class TransportError(ProtectClientError):
    """Raised when a request keeps failing at the network level."""

    pass
