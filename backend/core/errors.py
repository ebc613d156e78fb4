"""
Exception hierarchy for the recipe retrieval backend.

Ingestion catches EmbeddingError and IndexWriteError locally and keeps going;
query paths let everything propagate to the API layer.
"""

from typing import Any


class PantryMatchError(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(PantryMatchError):
    """Required credentials, paths or index names are missing. Fatal at startup."""


class EmbeddingError(PantryMatchError):
    """Embedding call failed or returned malformed output for one batch."""

    def __init__(self, message: str, batch_size: int = 0, details: dict[str, Any] | None = None) -> None:
        details = details or {}
        details["batch_size"] = batch_size
        self.batch_size = batch_size
        super().__init__(message, details)


class IndexWriteError(PantryMatchError):
    """Upsert of one slice of vectors into the index failed."""

    def __init__(
        self,
        message: str,
        slice_start: int = 0,
        slice_size: int = 0,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = details or {}
        details.update({"slice_start": slice_start, "slice_size": slice_size})
        self.slice_start = slice_start
        self.slice_size = slice_size
        super().__init__(message, details)


class ValidationError(PantryMatchError):
    """Missing or unusable query / ingredient input."""

    def __init__(self, message: str, field: str | None = None, details: dict[str, Any] | None = None) -> None:
        details = details or {}
        if field:
            details["field"] = field
        self.field = field
        super().__init__(message, details)
