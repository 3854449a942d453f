"""Middleware configuration for FastAPI application."""

from __future__ import annotations

import logging
import time
import uuid
from typing import TYPE_CHECKING

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from acs_service.core.settings import get_logging_settings
from acs_service.infra.logging import clear_log_context, set_log_context

if TYPE_CHECKING:
    from fastapi import FastAPI

logger = logging.getLogger(__name__)


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Tag each request with an id and expose it to every log line."""

    async def dispatch(self, request: Request, call_next):
        """Process request and add request ID.

        Args:
            request: Incoming request.
            call_next: Next middleware/handler.

        Returns:
            Response with X-Request-ID header.
        """
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        set_log_context(request_id=request_id, path=request.url.path, method=request.method)

        try:
            response = await call_next(request)
        finally:
            clear_log_context()
        response.headers["X-Request-ID"] = request_id
        return response


class TimingMiddleware(BaseHTTPMiddleware):
    """Add timing information to responses."""

    async def dispatch(self, request: Request, call_next):
        start_time = time.perf_counter()
        response = await call_next(request)
        process_time = time.perf_counter() - start_time
        response.headers["X-Process-Time"] = f"{process_time:.6f}"
        return response


def configure_middleware(app: FastAPI) -> None:
    """Configure middleware for the application.

    Args:
        app: FastAPI application instance.
    """
    log_settings = get_logging_settings()

    app.add_middleware(TimingMiddleware)
    if log_settings.include_request_id:
        app.add_middleware(RequestIDMiddleware)

    logger.info(
        "Middleware configured",
        extra={"request_id_enabled": log_settings.include_request_id},
    )
