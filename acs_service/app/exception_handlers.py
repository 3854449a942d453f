"""Global exception handlers for FastAPI application."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from acs_service.core.database import NotFoundError
from acs_service.core.exceptions import AppException
from acs_service.core.schemas import FieldError, ProblemDetails, ValidationProblemDetails
from acs_service.features.resources.patterns import PatternError

logger = logging.getLogger(__name__)


def _get_request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None)


def _create_problem_detail(
    request: Request,
    status_code: int,
    detail: str,
    type_: str = "about:blank",
    title: str | None = None,
    instance: str | None = None,
    extra: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Create RFC 7807 Problem Details response body.

    Args:
        request: The FastAPI request object.
        status_code: HTTP status code.
        detail: Human-readable error description.
        type_: Error type identifier.
        title: Short human-readable summary.
        instance: URI identifying this occurrence.
        extra: Additional context information.

    Returns:
        Dictionary representing the problem detail.
    """
    problem = ProblemDetails(
        type=type_,
        title=title or AppException._default_title(status_code),
        status=status_code,
        detail=detail,
        instance=instance or request.url.path,
    )

    response_data = problem.model_dump(exclude_none=True)
    if extra:
        response_data.update(extra)

    request_id = _get_request_id(request)
    if request_id:
        response_data["request_id"] = request_id
    return response_data


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Convert AppException instances into Problem Details responses."""
    logger.warning(
        "Application exception occurred",
        extra={
            "path": request.url.path,
            "method": request.method,
            "exception_type": exc.type,
            "status_code": exc.status_code,
            "detail": exc.detail,
        },
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=_create_problem_detail(
            request,
            status_code=exc.status_code,
            detail=exc.detail,
            type_=exc.type,
            title=exc.title,
            instance=exc.instance,
            extra=exc.extra,
        ),
    )


async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    """Repository lookups that found nothing become 404s."""
    logger.info(
        "Entity not found",
        extra={"path": request.url.path, "model": exc.model_name, **exc.identifier},
    )
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content=_create_problem_detail(
            request,
            status_code=status.HTTP_404_NOT_FOUND,
            detail=exc.message,
            type_="not-found",
            extra={"model": exc.model_name, **exc.identifier},
        ),
    )


async def pattern_error_handler(request: Request, exc: PatternError) -> JSONResponse:
    """Malformed URI patterns become 422s listing every problem found."""
    logger.warning(
        "Invalid URI pattern",
        extra={"path": request.url.path, "pattern": exc.pattern, "errors": list(exc.errors)},
    )
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=_create_problem_detail(
            request,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(exc),
            type_="invalid-uri-pattern",
            title="Validation Error",
            extra={
                "pattern": exc.pattern,
                "errors": list(exc.errors),
                "suggestions": list(exc.suggestions),
            },
        ),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle FastAPI/Pydantic request validation errors.

    Returns:
        JSONResponse with field-level error information.
    """
    validation_errors = [
        FieldError(
            field=".".join(str(loc) for loc in error["loc"]),
            message=error["msg"],
            type=error["type"],
            value=error.get("input"),
        )
        for error in exc.errors()
    ]

    logger.warning(
        "Request validation failed",
        extra={
            "path": request.url.path,
            "method": request.method,
            "error_count": len(validation_errors),
            "errors": [e.model_dump() for e in validation_errors],
        },
    )

    problem = ValidationProblemDetails(
        type="validation-error",
        title="Validation Error",
        status=status.HTTP_422_UNPROCESSABLE_ENTITY,
        detail=f"Request validation failed for {len(validation_errors)} field(s)",
        instance=request.url.path,
        errors=validation_errors,
    )
    response_data = problem.model_dump(mode="json", exclude_none=True)
    request_id = _get_request_id(request)
    if request_id:
        response_data["request_id"] = request_id

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=response_data,
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all: log the traceback and return a generic 500."""
    logger.error(
        "Unexpected exception occurred",
        extra={
            "path": request.url.path,
            "method": request.method,
            "exception_type": type(exc).__name__,
            "exception_message": str(exc),
        },
        exc_info=exc,
    )

    # Don't expose internal details
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_create_problem_detail(
            request,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An unexpected error occurred while processing your request",
            type_="internal-error",
            title="Internal Server Error",
        ),
    )


def configure_exception_handlers(app: FastAPI) -> None:
    """Register every handler that renders errors as Problem Details.

    Example:
        app = FastAPI()
        configure_exception_handlers(app)
    """
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(NotFoundError, not_found_handler)
    app.add_exception_handler(PatternError, pattern_error_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    logger.info("Exception handlers configured")
