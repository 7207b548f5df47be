"""Suggestion service errors."""

from __future__ import annotations


class SuggestionError(Exception):
    """Base exception for suggestion requests."""


class SuggestionValidationError(SuggestionError, ValueError):
    """Raised when the mode or image payload is invalid."""


class SuggestionConfigurationError(SuggestionError):
    """Raised when no credential is configured for the completion backend."""


class UpstreamError(SuggestionError):
    """Raised when the completion backend answers with a non-success status.

    Attributes:
        status: HTTP status returned by the backend.
        body: Raw response body text.
    """

    def __init__(self, status: int, body: str) -> None:
        super().__init__(f"OpenAI error: {body}")
        self.status = status
        self.body = body


class SuggestionTransportError(SuggestionError):
    """Raised when the completion backend cannot be reached."""


class SuggestionTimeoutError(SuggestionTransportError):
    """Raised when a completion request exceeds its timeout."""
