"""Database repository exceptions.

Repository operations raise these instead of raw SQLAlchemy errors so
services and the HTTP layer can tell "missing row" apart from real faults.
"""
from __future__ import annotations

from typing import Any


class RepositoryError(Exception):
    """Base exception for repository operations.

    Raised when a repository operation fails due to programming
    errors, configuration issues, or unexpected states.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        """Initialize repository error.

        Args:
            message: Error description
            details: Additional context about the error
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Format error message with details."""
        if self.details:
            details_str = ", ".join(f"{k}={v!r}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class NotFoundError(RepositoryError):
    """Entity not found in database.

    This is a data-level error (404-like) rather than a system error.

    Attributes:
        model_name: Name of the model class that wasn't found
        identifier: The key/value that was searched for
    """

    def __init__(self, model_name: str, identifier: dict[str, Any]):
        self.model_name = model_name
        self.identifier = identifier

        id_str = ", ".join(f"{k}={v!r}" for k, v in identifier.items())
        message = f"{model_name} not found with {id_str}"

        super().__init__(message, details={"model": model_name, **identifier})

    def __repr__(self) -> str:
        return f"NotFoundError(model={self.model_name!r}, identifier={self.identifier!r})"


__all__ = [
    "NotFoundError",
    "RepositoryError",
]
