"""RFC 7807 Problem Details schema for error responses."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ProblemDetails(BaseModel):
    """RFC 7807 Problem Details for HTTP APIs.

    See: https://datatracker.ietf.org/doc/html/rfc7807

    Example:
        return JSONResponse(
            status_code=404,
            content=ProblemDetails(
                type="not-found",
                title="Not Found",
                status=404,
                detail="Resource not found with id=42",
                instance="/api/resources/42",
            ).model_dump(exclude_none=True),
        )
    """

    type: str = Field(
        default="about:blank",
        min_length=1,
        max_length=200,
        description="URI reference identifying the problem type",
    )
    title: str = Field(
        min_length=1, max_length=200, description="Short, human-readable summary of the problem"
    )
    status: int = Field(ge=100, le=599, description="HTTP status code")
    detail: str | None = Field(
        default=None,
        max_length=2000,
        description="Human-readable explanation specific to this occurrence",
    )
    instance: str | None = Field(
        default=None,
        max_length=500,
        description="URI reference identifying the specific occurrence",
    )

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "type": "resource-uri-exists",
                "title": "Conflict",
                "status": 409,
                "detail": "Resource with URI '/api/users' already exists",
                "instance": "/api/resources",
            }
        },
        str_strip_whitespace=True,
    )


class FieldError(BaseModel):
    """A single field-level validation failure."""

    field: str
    message: str
    type: str
    value: Any | None = None


class ValidationProblemDetails(ProblemDetails):
    """Problem details carrying field-level validation errors."""

    errors: list[FieldError] = Field(default_factory=list)


__all__ = [
    "FieldError",
    "ProblemDetails",
    "ValidationProblemDetails",
]
