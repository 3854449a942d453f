"""Logging configuration setup.

Builds a dictConfig with:
- a console handler and an optional rotating file handler
- JSONL or human-readable text output
- ContextInjectingFilter on every handler so request context reaches all records
"""

from __future__ import annotations

import logging
import logging.config
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from acs_service.core.settings.logs import LoggingSettings

logger = logging.getLogger(__name__)
_LOGGING_INITIALIZED = False


def setup_logging(
    log_settings: LoggingSettings | None = None,
    *,
    force: bool = False,
    **configure_kwargs: Any,
) -> None:
    """Ensure logging is configured once across entrypoints.

    Args:
        log_settings: Optional logging settings instance. If omitted, settings
            are loaded via get_logging_settings().
        force: Reconfigure logging even if it was already initialized.
        **configure_kwargs: Explicit overrides for configure_logging().
    """
    global _LOGGING_INITIALIZED

    if _LOGGING_INITIALIZED and not force:
        return

    if log_settings is None:
        from acs_service.core.settings import get_logging_settings

        log_settings = get_logging_settings()

    log_config = {**log_settings.to_logging_kwargs(), **configure_kwargs}
    configure_logging(**log_config)
    _LOGGING_INITIALIZED = True


def configure_logging(
    log_level: str = "INFO",
    json_logs: bool = True,
    console_enabled: bool = True,
    file_path: str | Path | None = None,
    file_max_bytes: int = 10 * 1024 * 1024,
    file_backup_count: int = 5,
    include_context: bool = True,
    include_uvicorn: bool = True,
    service_name: str = "acs-service",
    capture_warnings: bool = True,
) -> None:
    """Configure root logging with dictConfig.

    All handlers are attached to the root logger; application loggers
    propagate up.

    Args:
        log_level: Root logger level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        json_logs: Enable JSONL structured logging.
        console_enabled: Enable console/stderr logging.
        file_path: Path to log file. None disables file logging.
        file_max_bytes: Maximum log file size before rotation.
        file_backup_count: Number of rotated log files to keep.
        include_context: Inject ContextVar-based request context into records.
        include_uvicorn: Route uvicorn loggers through the root handlers.
        service_name: Static ``service`` field for JSON output.
        capture_warnings: Forward Python warnings to logging system.

    Example:
        from acs_service.core.settings import get_logging_settings
        configure_logging(**get_logging_settings().to_logging_kwargs())
    """
    if capture_warnings:
        logging.captureWarnings(True)

    formatter_name = "json" if json_logs else "text"
    formatters: dict[str, Any] = {
        "json": {
            "()": "acs_service.infra.logging.formatters.JSONFormatter",
            "static": {"service": service_name},
        },
        "text": {
            "format": "%(asctime)s - %(levelname)s - %(name)s - %(message)s",
            "datefmt": "%Y-%m-%d %H:%M:%S",
        },
    }

    filters: dict[str, Any] = {}
    handler_filters: list[str] = []
    if include_context:
        filters["context"] = {"()": "acs_service.infra.logging.context.ContextInjectingFilter"}
        handler_filters.append("context")

    handlers: dict[str, Any] = {}
    if console_enabled:
        handlers["console"] = {
            "class": "logging.StreamHandler",
            "formatter": formatter_name,
            "filters": handler_filters,
            "stream": "ext://sys.stderr",
        }
    if file_path:
        path = Path(file_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "formatter": "json",
            "filters": handler_filters,
            "filename": str(path),
            "maxBytes": file_max_bytes,
            "backupCount": file_backup_count,
            "encoding": "utf-8",
        }

    loggers: dict[str, Any] = {}
    if include_uvicorn:
        for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
            loggers[name] = {"handlers": [], "propagate": True}

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": formatters,
            "filters": filters,
            "handlers": handlers,
            "loggers": loggers,
            "root": {"level": log_level.upper(), "handlers": list(handlers)},
        }
    )
    logger.debug("Logging configured", extra={"handlers": list(handlers), "json": json_logs})
