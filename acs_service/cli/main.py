"""Main CLI entry point for acs-service management commands."""

import click

from acs_service import __version__
from acs_service.cli.commands import resources, server
from acs_service.infra.logging.config import setup_logging


@click.group()
@click.version_option(version=__version__, prog_name="acs")
@click.pass_context
def cli(ctx: click.Context) -> None:
    """ACS Service CLI - resource registry and URI resolution.

    \b
    Command Groups:
      resources  Validate patterns, resolve URIs, discover resources
      server     Run the HTTP API

    \b
    Quick Start:
      acs resources validate '/api/users/{id}'
      acs resources test '/api/users/{id}' /api/users/42
      acs resources resolve /api/users/42
      acs server run
    """
    ctx.ensure_object(dict)


cli.add_command(resources.resources)
cli.add_command(server.server)


def main() -> None:
    """Entry point for CLI."""
    setup_logging()
    cli(obj={})


if __name__ == "__main__":
    main()
