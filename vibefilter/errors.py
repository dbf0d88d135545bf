# Path: vibefilter/errors.py
# Purpose: Define the exception hierarchy shared across the engine.
# Layer: vibefilter.
# Details: Callers catch VibeFilterError to handle any engine failure in one place.


class VibeFilterError(Exception):
    """Base exception for all vibefilter errors."""


class ConfigurationError(VibeFilterError):
    """Raised when settings are inconsistent or a required value is missing."""


class EmbeddingError(VibeFilterError):
    """Raised when an embedding cannot be produced, loaded, or stored."""


class DimensionMismatchError(EmbeddingError):
    """Raised when two vectors that must share a dimension do not."""

    def __init__(self, expected: int, actual: int, context: str = "") -> None:
        self.expected = expected
        self.actual = actual
        suffix = f" ({context})" if context else ""
        super().__init__(f"Expected dimension {expected}, got {actual}{suffix}.")


class GenerationError(VibeFilterError):
    """Raised when the expansion generator fails or returns unusable output."""


class StorageError(VibeFilterError):
    """Raised when the catalog store cannot complete an operation."""
