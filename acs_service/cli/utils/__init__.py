"""CLI utilities for running async operations and formatting output."""

from acs_service.cli.utils.async_runner import coro
from acs_service.cli.utils.formatters import (
    bullets,
    error,
    field,
    header,
    info,
    section,
    success,
    warning,
)

__all__ = [
    "bullets",
    "coro",
    "error",
    "field",
    "header",
    "info",
    "section",
    "success",
    "warning",
]
