"""Broadband CLI commands: provider lookup, census block lookup, and cache statistics."""

import asyncio
import json

import typer

broadband_app = typer.Typer()


@broadband_app.command("lookup")
def lookup(
    address: str | None = typer.Argument(None, help="Street address"),
    lat: float | None = typer.Option(None, "--lat", help="Latitude (with --lng)"),  # noqa: B008
    lng: float | None = typer.Option(None, "--lng", help="Longitude (with --lat)"),  # noqa: B008
    as_json: bool = typer.Option(False, "--json", help="Print the raw result as JSON"),  # noqa: FBT001
) -> None:
    """Resolve broadband providers for an address or coordinate pair."""
    asyncio.run(_lookup(address, lat, lng, as_json))


@broadband_app.command("block")
def block(
    address: str | None = typer.Argument(None, help="Street address"),
    lat: float | None = typer.Option(None, "--lat", help="Latitude (with --lng)"),  # noqa: B008
    lng: float | None = typer.Option(None, "--lng", help="Longitude (with --lat)"),  # noqa: B008
) -> None:
    """Find the census block for an address or coordinate pair."""
    asyncio.run(_block(address, lat, lng))


@broadband_app.command("cache-stats")
def cache_stats() -> None:
    """Show broadband cache statistics."""
    asyncio.run(_cache_stats())


async def _lookup(address: str | None, lat: float | None, lng: float | None, as_json: bool) -> None:
    """Async implementation of lookup."""
    import httpx

    from broadband_api.core.config import get_settings
    from broadband_api.core.database import dispose_engine, get_session_factory, init_engine
    from broadband_api.services.broadband_service import InvalidInputError, build_broadband_resolver, build_target

    settings = get_settings()
    init_engine(settings.database_url, schema=settings.database_schema)
    try:
        async with httpx.AsyncClient() as client:
            resolver = build_broadband_resolver(settings, get_session_factory(), client=client)
            try:
                resolution = await resolver.resolve(build_target(address, lat, lng))
            except InvalidInputError as e:
                typer.echo(f"Invalid input: {e}", err=True)
                raise typer.Exit(code=2) from e
    finally:
        await dispose_engine()

    result = resolution.result
    if as_json:
        typer.echo(json.dumps(result.model_dump(mode="json"), indent=2))
        return

    location = resolution.location
    typer.echo(f"Location: {location.latitude:.6f}, {location.longitude:.6f} (via {location.source})")
    typer.echo(f"Census block: {result.geoid or 'not found'}")
    typer.echo(f"Source: {result.source} [{resolution.state}]")
    typer.echo(result.message)
    for provider in result.providers:
        technologies = ", ".join(provider.technologies) or "unknown technology"
        typer.echo(f"  {provider.name}: {technologies} ({provider.max_download}/{provider.max_upload} Mbps)")


async def _block(address: str | None, lat: float | None, lng: float | None) -> None:
    """Async implementation of census block lookup."""
    import httpx

    from broadband_api.core.config import get_settings
    from broadband_api.core.database import dispose_engine, get_session_factory, init_engine
    from broadband_api.lib.census_block import BlockNotFoundError
    from broadband_api.services.broadband_service import InvalidInputError, build_broadband_resolver, build_target

    settings = get_settings()
    init_engine(settings.database_url, schema=settings.database_schema)
    try:
        async with httpx.AsyncClient() as client:
            resolver = build_broadband_resolver(settings, get_session_factory(), client=client)
            try:
                _, census_block = await resolver.find_census_block(build_target(address, lat, lng))
            except InvalidInputError as e:
                typer.echo(f"Invalid input: {e}", err=True)
                raise typer.Exit(code=2) from e
            except BlockNotFoundError as e:
                typer.echo(f"No census block: {e.message}", err=True)
                raise typer.Exit(code=1) from e
    finally:
        await dispose_engine()

    typer.echo(f"GEOID:  {census_block.geoid}")
    typer.echo(f"Name:   {census_block.name}")
    typer.echo(f"State:  {census_block.state}  County: {census_block.county}  Tract: {census_block.tract}")
    typer.echo(f"Point:  {census_block.latitude:.6f}, {census_block.longitude:.6f}")


async def _cache_stats() -> None:
    """Async implementation of cache-stats."""
    from broadband_api.core.config import get_settings
    from broadband_api.core.database import dispose_engine, get_session_factory, init_engine
    from broadband_api.lib.broadband import BroadbandCache

    settings = get_settings()
    init_engine(settings.database_url, schema=settings.database_schema)
    try:
        stats = await BroadbandCache(get_session_factory()).get_stats()
    finally:
        await dispose_engine()

    typer.echo(f"Entries:  {stats.total_entries} ({stats.live_entries} live, {stats.expired_entries} expired)")
    if stats.oldest_fetched_at is not None:
        typer.echo(f"Oldest:   {stats.oldest_fetched_at.isoformat()}")
        typer.echo(f"Newest:   {stats.newest_fetched_at.isoformat() if stats.newest_fetched_at else '-'}")
