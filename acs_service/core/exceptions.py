"""Custom exception classes for the application."""

from __future__ import annotations

from typing import Any


class AppException(Exception):
    """Base application exception.

    All HTTP-facing errors inherit from this class. Follows RFC 7807
    Problem Details for HTTP APIs.

    Attributes:
        status_code: HTTP status code for the error.
        detail: Human-readable error message.
        type: Error type identifier (used in RFC 7807 problem details).
        title: Short, human-readable summary of the problem type.
        instance: URI reference that identifies the specific occurrence of the problem.
        extra: Additional context-specific information about the error.

    Example:
        raise AppException(
            status_code=409,
            detail="Resource with URI '/api/users' already exists",
            type="resource-uri-exists",
            extra={"conflicting_resource_id": 3},
        )
    """

    def __init__(
        self,
        status_code: int,
        detail: str,
        type: str = "about:blank",
        title: str | None = None,
        instance: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        self.status_code = status_code
        self.detail = detail
        self.type = type
        self.title = title or self._default_title(status_code)
        self.instance = instance
        self.extra = extra or {}
        super().__init__(detail)

    @staticmethod
    def _default_title(status_code: int) -> str:
        titles = {
            400: "Bad Request",
            404: "Not Found",
            409: "Conflict",
            422: "Unprocessable Entity",
            500: "Internal Server Error",
        }
        return titles.get(status_code, "Error")


class NotFoundException(AppException):
    """Exception raised when a resource is not found."""

    def __init__(
        self,
        detail: str,
        type: str = "not-found",
        instance: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            status_code=404,
            detail=detail,
            type=type,
            title="Not Found",
            instance=instance,
            extra=extra,
        )


class ValidationException(AppException):
    """Exception raised for validation errors.

    Example:
        raise ValidationException(
            detail="Invalid URI pattern '/api/{}'",
            type="invalid-uri-pattern",
            extra={"errors": ["Segment '{}' has an empty parameter name"]},
        )
    """

    def __init__(
        self,
        detail: str,
        type: str = "validation-error",
        instance: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            status_code=422,
            detail=detail,
            type=type,
            title="Validation Error",
            instance=instance,
            extra=extra,
        )


class ConflictException(AppException):
    """Exception raised when a mutation conflicts with existing state.

    Example:
        raise ConflictException(
            detail="Resource 4 has child resources and cannot be deleted",
            type="resource-has-children",
            extra={"resource_id": 4, "child_ids": [5, 6]},
        )
    """

    def __init__(
        self,
        detail: str,
        type: str = "conflict",
        instance: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            status_code=409,
            detail=detail,
            type=type,
            title="Conflict",
            instance=instance,
            extra=extra,
        )


__all__ = [
    "AppException",
    "ConflictException",
    "NotFoundException",
    "ValidationException",
]
