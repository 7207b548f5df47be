"""WebDAV client errors."""

from __future__ import annotations


class DavError(Exception):
    """Base exception for remote share operations."""


class DavConfigurationError(DavError):
    """Raised when base URL, username, or app password is missing."""


class DavPathError(DavError, ValueError):
    """Raised when a requested relative path is empty or escapes the share root."""


class DavResponseError(DavError):
    """Raised when the share answers with a non-success status.

    Attributes:
        status: HTTP status returned by the server.
        body: Response body text, possibly empty.
    """

    def __init__(self, message: str, *, status: int, body: str = "") -> None:
        super().__init__(message)
        self.status = status
        self.body = body


class DavTransportError(DavError):
    """Raised when the share cannot be reached."""


class DavTimeoutError(DavTransportError):
    """Raised when a request to the share exceeds its timeout."""
