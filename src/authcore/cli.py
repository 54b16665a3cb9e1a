"""Command-line interface for authcore.

Runs the HTTP server and maintenance tasks against the configured database.
"""

import asyncio
from datetime import timedelta
from typing import NoReturn

import click

from authcore import __version__
from authcore.core.config import get_settings
from authcore.core.logging import configure_logging, get_logger


@click.group()
@click.version_option(version=__version__, prog_name="authcore")
def cli() -> None:
    """authcore - credential and session authority."""


@cli.command()
@click.option("--host", type=str, default=None, help="Host to bind to (overrides config)")
@click.option("--port", type=int, default=None, help="Port to bind to (overrides config)")
@click.option(
    "--reload",
    is_flag=True,
    default=False,
    help="Enable auto-reload for development",
)
def serve(host: str | None, port: int | None, reload: bool) -> None:
    """Start the authcore server."""
    import uvicorn

    settings = get_settings()
    configure_logging(settings)

    bind_host = host or settings.host
    bind_port = port or settings.port

    logger = get_logger(__name__)
    logger.info(
        "Starting authcore server",
        host=bind_host,
        port=bind_port,
        reload=reload,
        environment=settings.environment,
    )

    uvicorn.run(
        "authcore.infrastructure.api.app:create_app",
        factory=True,
        host=bind_host,
        port=bind_port,
        reload=reload,
        log_level=settings.log_level.lower(),
        access_log=True,
    )


@cli.command()
def init_db() -> None:
    """Create all database tables. Use migrations in production."""
    from authcore.infrastructure.persistence.database import DatabaseManager

    settings = get_settings()
    configure_logging(settings)

    if settings.is_production:
        click.echo("ERROR: Running in production mode. Use migrations instead of init-db.", err=True)
        raise SystemExit(1)

    async def initialize() -> None:
        db = DatabaseManager(settings)
        try:
            await db.create_tables()
            click.echo("Database initialized successfully.")
        finally:
            await db.disconnect()

    asyncio.run(initialize())


@cli.command()
@click.option(
    "--retention-days",
    type=click.IntRange(min=0),
    default=None,
    help="Keep expired tokens this many days (overrides config)",
)
def purge_tokens(retention_days: int | None) -> None:
    """Delete refresh tokens that expired before the retention window."""
    from authcore.infrastructure.persistence.database import DatabaseManager
    from authcore.infrastructure.persistence.repositories import RefreshTokenRepository

    settings = get_settings()
    configure_logging(settings)
    days = settings.refresh_token_retention_days if retention_days is None else retention_days

    async def purge() -> int:
        db = DatabaseManager(settings)
        try:
            async with db.session() as session:
                deleted = await RefreshTokenRepository(session).purge_expired(
                    retention=timedelta(days=days)
                )
                await session.commit()
                return deleted
        finally:
            await db.disconnect()

    deleted = asyncio.run(purge())
    click.echo(f"Purged {deleted} refresh token(s) expired more than {days} day(s) ago.")


def main() -> NoReturn:
    """Entry point for the `authcore` command and `python -m authcore`."""
    cli()


if __name__ == "__main__":
    main()
