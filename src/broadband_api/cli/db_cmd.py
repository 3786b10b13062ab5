"""Database migration CLI commands using Alembic programmatically."""

from pathlib import Path
from typing import TYPE_CHECKING

import typer
from loguru import logger

if TYPE_CHECKING:
    from alembic.config import Config

db_app = typer.Typer()


def _alembic_config(ini_path: Path) -> "Config":
    """Load alembic.ini, failing with a CLI error when it is missing."""
    from alembic.config import Config

    if not ini_path.is_file():
        typer.echo(f"Alembic config not found: {ini_path}", err=True)
        raise typer.Exit(code=1)
    return Config(str(ini_path))


@db_app.command()
def upgrade(
    revision: str = typer.Argument("head", help="Target revision"),
    config: Path = typer.Option(Path("alembic.ini"), "--config", help="Path to alembic.ini"),  # noqa: B008
) -> None:
    """Create or migrate the cache and mirrored-data tables up to the target revision."""
    from alembic import command

    logger.info(f"Upgrading database to {revision}")
    command.upgrade(_alembic_config(config), revision)
    logger.info("Database upgrade complete")


@db_app.command()
def downgrade(
    revision: str = typer.Argument("-1", help="Target revision"),
    config: Path = typer.Option(Path("alembic.ini"), "--config", help="Path to alembic.ini"),  # noqa: B008
) -> None:
    """Roll back to the target revision."""
    from alembic import command

    logger.info(f"Downgrading database to {revision}")
    command.downgrade(_alembic_config(config), revision)
    logger.info("Database downgrade complete")


@db_app.command()
def current(
    config: Path = typer.Option(Path("alembic.ini"), "--config", help="Path to alembic.ini"),  # noqa: B008
) -> None:
    """Show the current database revision."""
    from alembic import command

    command.current(_alembic_config(config), verbose=True)
