"""Main entry point for acs-service.

Routes to the FastAPI server when ``--server`` is on the command line and
to the CLI otherwise (no arguments shows CLI help).
"""

from __future__ import annotations

import sys
from typing import NoReturn


def run_fastapi_server() -> NoReturn:
    """Run the FastAPI application with uvicorn using configured settings."""
    import uvicorn

    from acs_service.core.settings import get_app_settings, get_logging_settings

    settings = get_app_settings()
    log_settings = get_logging_settings()

    uvicorn.run(
        "acs_service.app.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        access_log=settings.debug,
        log_level=log_settings.level.lower(),
    )
    sys.exit(0)


def run_cli() -> NoReturn:
    """Run the CLI interface."""
    from acs_service.cli.main import main as cli_main

    cli_main()
    sys.exit(0)


def main() -> NoReturn:
    if "--server" in sys.argv:
        sys.argv.remove("--server")
        run_fastapi_server()
    else:
        run_cli()


if __name__ == "__main__":
    main()
