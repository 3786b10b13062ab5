"""Import CLI commands for FCC bulk broadband data."""

import asyncio
from pathlib import Path

import typer

import_app = typer.Typer()


@import_app.command("fcc")
def import_fcc(
    providers: Path | None = typer.Option(  # noqa: B008
        None, "--providers", help="Providers CSV (default: <import_data_dir>/fcc-providers.csv)"
    ),
    availability: Path | None = typer.Option(  # noqa: B008
        None, "--availability", help="Availability CSV (default: <import_data_dir>/fcc-availability.csv)"
    ),
    batch_size: int | None = typer.Option(None, "--batch-size", help="Rows per batch"),  # noqa: B008
) -> None:
    """Import FCC provider and availability CSVs into the mirrored tables."""
    asyncio.run(_import_fcc(providers, availability, batch_size))


async def _import_fcc(providers: Path | None, availability: Path | None, batch_size: int | None) -> None:
    """Async implementation of the FCC import."""
    from broadband_api.core.config import get_settings
    from broadband_api.core.database import dispose_engine, init_engine, session_scope
    from broadband_api.services.fcc_import_service import (
        AVAILABILITY_FILENAME,
        PROVIDERS_FILENAME,
        import_fcc_data,
    )

    settings = get_settings()
    data_dir = Path(settings.import_data_dir)
    providers = providers or data_dir / PROVIDERS_FILENAME
    availability = availability or data_dir / AVAILABILITY_FILENAME

    init_engine(settings.database_url, schema=settings.database_schema)
    try:
        async with session_scope() as session:
            typer.echo(f"Importing {providers.name} and {availability.name}...")
            try:
                summary = await import_fcc_data(
                    session,
                    providers_path=providers,
                    availability_path=availability,
                    batch_size=batch_size or settings.import_batch_size,
                )
            except (FileNotFoundError, ValueError) as e:
                typer.echo(f"Import failed: {e}", err=True)
                raise typer.Exit(code=1) from e

            typer.echo("\nImport completed:")
            typer.echo(f"  Providers:          {summary.providers}")
            typer.echo(f"  Availability rows:  {summary.availability}")
            typer.echo(f"  Skipped:            {summary.skipped}")
    finally:
        await dispose_engine()
