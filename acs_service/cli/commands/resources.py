"""Resource registry commands.

Pattern tooling (no database needed):
- validate     - Check a URI pattern and list every problem
- test         - Try a pattern against sample URIs

Registry queries:
- resolve      - Most specific resource for a URI
- protection   - Protection status of a URI
- discover     - Resources under a base path
- list         - Page through registered resources
- audit        - Invalid stored patterns and duplicate URIs
"""

import json
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import click

from acs_service.cli.utils import (
    bullets,
    coro,
    error,
    field,
    header,
    info,
    section,
    success,
    warning,
)
from acs_service.features.resources.hierarchy import HierarchyStore
from acs_service.features.resources.patterns import PatternError
from acs_service.features.resources.schemas import (
    DiscoveryResponse,
    MatchResponse,
    PatternTestResponse,
    PatternValidationResponse,
    ProtectionStatusResponse,
    ResourceListResponse,
)
from acs_service.features.resources.service import ResourceService
from acs_service.features.resources.specifications import ResourceFilters

output_format_option = click.option(
    "--format",
    "output_format",
    type=click.Choice(["table", "json"]),
    default="table",
    help="Output format",
)


@asynccontextmanager
async def open_service() -> AsyncIterator[ResourceService]:
    """Service over a fresh session and a private snapshot store."""
    from acs_service.infra.database import close_database, get_async_session, init_database

    await init_database()
    try:
        async with get_async_session() as session:
            yield ResourceService(session, store=HierarchyStore())
    finally:
        await close_database()


@click.group(name="resources")
def resources() -> None:
    """Resource registry and URI resolution commands."""


# ──────────────────────────────────────────────────────────────
# Pattern tooling
# ──────────────────────────────────────────────────────────────


@resources.command(name="validate")
@click.argument("pattern")
@output_format_option
def validate_pattern(pattern: str, output_format: str) -> None:
    """Check a URI pattern.

    Examples:
      acs resources validate '/api/users/{id}'
      acs resources validate '/api/{}/x'
    """
    from acs_service.features.resources.patterns import analyze_pattern

    result = PatternValidationResponse.from_analysis(analyze_pattern(pattern))

    if output_format == "json":
        click.echo(result.model_dump_json(indent=2))
    else:
        header(f"Pattern: {pattern}")
        if result.is_valid:
            success("Pattern is valid")
            field("Normalized", result.normalized_pattern)
            field("Parameters", ", ".join(result.parameters) or "-")
            field("Complexity", result.complexity_score)
            section("Example URIs")
            bullets(result.match_examples)
        else:
            error(f"Pattern is invalid ({len(result.errors)} problem(s))")
            bullets(result.errors)
        if result.suggested_corrections:
            section("Suggestions")
            bullets(result.suggested_corrections)

    if not result.is_valid:
        sys.exit(1)


@resources.command(name="test")
@click.argument("pattern")
@click.argument("uris", nargs=-1, required=True)
@output_format_option
def try_pattern(pattern: str, uris: tuple[str, ...], output_format: str) -> None:
    """Try PATTERN against one or more URIS.

    Examples:
      acs resources test '/api/users/{id}' /api/users/42 /api/users
    """
    from acs_service.features.resources.matching import evaluate_pattern

    try:
        report = PatternTestResponse.from_report(evaluate_pattern(pattern, uris))
    except PatternError as e:
        error(str(e))
        bullets(e.suggestions)
        sys.exit(1)

    if output_format == "json":
        click.echo(report.model_dump_json(indent=2))
        return

    header(f"Pattern: {pattern}")
    for result in report.results:
        if result.is_match:
            params = ", ".join(f"{k}={v}" for k, v in result.extracted_parameters.items())
            success(
                f"{result.uri}  [{result.match_type}] confidence={result.confidence}"
                + (f"  {params}" if params else "")
            )
        else:
            warning(f"{result.uri}  no match")
    info(f"{report.match_count}/{report.total_tests} matched ({report.match_percentage}%)")


# ──────────────────────────────────────────────────────────────
# Registry queries
# ──────────────────────────────────────────────────────────────


def _print_match(match: MatchResponse) -> None:
    field("Resource", f"#{match.resource.id} {match.resource.name}")
    field("Pattern", match.resource.uri)
    field("Match type", match.match_type)
    field("Confidence", match.confidence)
    field("Score", match.score)
    if match.extracted_parameters:
        field(
            "Parameters",
            ", ".join(f"{k}={v}" for k, v in match.extracted_parameters.items()),
        )


@resources.command(name="resolve")
@click.argument("uri")
@output_format_option
@coro
async def resolve(uri: str, output_format: str) -> None:
    """Find the most specific resource governing URI."""
    async with open_service() as service:
        result = await service.resolve(uri)

    if result is None:
        if output_format == "json":
            click.echo(json.dumps({"uri": uri, "matched": False}))
        else:
            warning(f"No resource matches {uri}")
        sys.exit(1)

    match = MatchResponse.from_result(result)
    if output_format == "json":
        click.echo(match.model_dump_json(indent=2))
        return
    header(f"Resolved {uri}")
    _print_match(match)


@resources.command(name="protection")
@click.argument("uri")
@output_format_option
@coro
async def protection(uri: str, output_format: str) -> None:
    """Show how URI is protected by the registered resources."""
    async with open_service() as service:
        status = ProtectionStatusResponse.from_status(await service.protection_status(uri))

    if output_format == "json":
        click.echo(status.model_dump_json(indent=2))
        return

    header(f"Protection status of {uri}")
    field("Level", status.protection_level)
    field("Risk", status.risk_assessment)
    field("Matching resources", len(status.matching_resources))
    if status.best_match is not None:
        section("Best match")
        _print_match(status.best_match)
    if status.security_recommendations:
        section("Recommendations")
        bullets(status.security_recommendations)


@resources.command(name="discover")
@click.argument("base_path", default="/")
@click.option("--include-inactive", is_flag=True, help="Also return inactive resources")
@click.option("--max-depth", type=click.IntRange(min=0), default=None, help="Traversal depth")
@output_format_option
@coro
async def discover(
    base_path: str, include_inactive: bool, max_depth: int | None, output_format: str
) -> None:
    """Collect resources under BASE_PATH following parent/child links."""
    async with open_service() as service:
        result = DiscoveryResponse.from_result(
            await service.discover(
                base_path, include_inactive=include_inactive, max_depth=max_depth
            )
        )

    if output_format == "json":
        click.echo(result.model_dump_json(indent=2))
        return

    header(f"Discovered {result.discovery_count} resource(s) under {base_path}")
    for resource in result.resources:
        click.echo(f"  #{resource.id:<5} {resource.uri}  ({resource.resource_type})")
    field("Paths scanned", result.statistics.paths_scanned)
    field("Max depth reached", result.statistics.max_depth_reached)
    if result.statistics.issues:
        section("Issues")
        bullets(result.statistics.issues)


@resources.command(name="list")
@click.option("--type", "resource_type", default=None, help="Filter by resource type")
@click.option("--uri-contains", default=None, help="Case-insensitive URI substring")
@click.option("--version", "version", default=None, help="Filter by version")
@click.option("--include-inactive", is_flag=True, help="Also list inactive resources")
@click.option("--page", default=1, type=click.IntRange(min=1), help="Page number")
@click.option("--page-size", default=None, type=click.IntRange(min=1), help="Page size")
@output_format_option
@coro
async def list_resources(
    resource_type: str | None,
    uri_contains: str | None,
    version: str | None,
    include_inactive: bool,
    page: int,
    page_size: int | None,
    output_format: str,
) -> None:
    """List registered resources."""
    filters = ResourceFilters(
        resource_type=resource_type,
        is_active=None if include_inactive else True,
        uri_contains=uri_contains,
        version=version,
    )
    async with open_service() as service:
        result = ResourceListResponse.from_search(
            await service.list_resources(filters, page=page, page_size=page_size)
        )

    if output_format == "json":
        click.echo(result.model_dump_json(indent=2))
        return

    if not result.items:
        info("No resources found")
        return

    header(f"Resources (page {result.page}/{result.pages}, {result.total} total)")
    click.echo(f"  {'ID':<6} {'TYPE':<10} {'ACTIVE':<7} URI")
    for item in result.items:
        active = "yes" if item.is_active else "no"
        click.echo(f"  {item.id:<6} {item.resource_type:<10} {active:<7} {item.uri}")


@resources.command(name="audit")
@coro
async def audit() -> None:
    """Report invalid stored patterns and duplicate URIs."""
    async with open_service() as service:
        total, invalid = await service.validate_all_patterns()
        duplicates = await service.find_duplicates()

    header(f"Audited {total} resource(s)")

    if invalid:
        section(f"Invalid patterns ({len(invalid)})")
        for record in invalid:
            click.echo(f"  #{record.id} {record.uri}")
            for problem in record.pattern_errors:
                click.echo(f"      {problem}")
    if duplicates:
        section(f"Duplicate URIs ({len(duplicates)})")
        for uri, group in duplicates.items():
            click.echo(f"  {uri}: {', '.join(f'#{r.id}' for r in group)}")

    if invalid or duplicates:
        error("Audit found problems")
        sys.exit(1)
    success("All patterns are valid and unique")
