"""Context management for structured logging.

Request-scoped fields (request id, path) live in a ContextVar and are
injected into every log record by ``ContextInjectingFilter``. Each async
task gets its own copy, so concurrent requests never see each other's
context.
"""

from __future__ import annotations

import logging
from contextvars import ContextVar
from typing import Any

_log_context: ContextVar[dict[str, Any]] = ContextVar("log_context", default={})


def set_log_context(**kwargs: Any) -> None:
    """Add fields to the logging context of the current task.

    Example:
        ```python
        set_log_context(request_id="abc-123", path="/api/resources/resolve")
        logger.info("Resolving URI")  # Includes request_id and path
        ```
    """
    current = _log_context.get().copy()
    current.update(kwargs)
    _log_context.set(current)


def get_log_context() -> dict[str, Any]:
    """Return a copy of the current logging context."""
    return _log_context.get().copy()


def clear_log_context() -> None:
    """Clear all logging context for the current task."""
    _log_context.set({})


class ContextInjectingFilter(logging.Filter):
    """Logging filter that copies the current log context onto each record.

    Attached to each handler so propagated records get it too. Existing record
    attributes are never overwritten.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in _log_context.get().items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True
