"""Shared API schemas."""

from __future__ import annotations

from acs_service.core.schemas.problem_details import (
    FieldError,
    ProblemDetails,
    ValidationProblemDetails,
)

__all__ = [
    "FieldError",
    "ProblemDetails",
    "ValidationProblemDetails",
]
