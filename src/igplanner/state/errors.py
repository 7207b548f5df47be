"""State management errors."""


class StateError(Exception):
    """Base exception for plan repository operations."""


class ImportFormatError(StateError):
    """Raised when an imported document does not hold a valid ``plans`` array."""
