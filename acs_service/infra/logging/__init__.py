"""Structured logging: dictConfig setup, JSON formatter, lazy and context-aware loggers."""

from __future__ import annotations

from acs_service.infra.logging.config import configure_logging, setup_logging
from acs_service.infra.logging.context import (
    ContextInjectingFilter,
    clear_log_context,
    get_log_context,
    set_log_context,
)
from acs_service.infra.logging.formatters import JSONFormatter
from acs_service.infra.logging.lazy import LazyLoggerAdapter, get_lazy_logger

__all__ = [
    "ContextInjectingFilter",
    "JSONFormatter",
    "LazyLoggerAdapter",
    "clear_log_context",
    "configure_logging",
    "get_lazy_logger",
    "get_log_context",
    "set_log_context",
    "setup_logging",
]
