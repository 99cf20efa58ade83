"""Command line entry point.

Usage:
    eventide serve --port 8080 -v 4
    eventide serve --memory
    eventide init
"""

import asyncio
import logging

import click
import uvicorn

from eventide.api import create_app
from eventide.application import EventStore, InMemoryEventStore
from eventide.config import ServerSettings
from eventide.domain import EventStoreError
from eventide.integrations.mongodb import MongoConfiguration, MongoEventStore
from eventide.log import level_name, setup_logging

LOGGER = logging.getLogger(__name__)


def build_store(backend: str, mongo_uri: str | None = None) -> EventStore:
    """Create the store for a backend name.

    Args:
        backend: "memory" or "mongodb".
        mongo_uri: Overrides the configured MongoDB URI.
    """
    if backend == "memory":
        return InMemoryEventStore()

    config = MongoConfiguration() if mongo_uri is None else MongoConfiguration(uri=mongo_uri)
    return MongoEventStore(config)


@click.group()
@click.version_option(package_name="eventide")
def cli() -> None:
    """Registry of scheduled events."""


@cli.command()
@click.option("--host", default=None, help="Interface to bind.")
@click.option("--port", type=click.IntRange(1, 65535), default=None, help="Port to listen on.")
@click.option(
    "--database",
    "mongo_uri",
    envvar="DB_URL",
    default=None,
    help="MongoDB connection URI.",
)
@click.option("--memory", is_flag=True, help="Use a throwaway in-memory store.")
@click.option(
    "-v",
    "--verbosity",
    type=click.IntRange(0, 5),
    default=None,
    help="Log verbosity, 0 (off) to 5 (trace).",
)
def serve(
    host: str | None,
    port: int | None,
    mongo_uri: str | None,
    memory: bool,
    verbosity: int | None,
) -> None:
    """Serve the HTTP API."""
    settings = ServerSettings()
    verbosity = settings.verbosity if verbosity is None else verbosity
    level = setup_logging(verbosity)

    backend = "memory" if memory else settings.backend
    store = build_store(backend, mongo_uri)
    app = create_app(store)

    host = host or settings.host
    port = port or settings.port
    LOGGER.info("Serving %s event store on http://%s:%s", backend, host, port)
    uvicorn.run(app, host=host, port=port, log_level=level_name(level), log_config=None)


@cli.command()
@click.option(
    "--database",
    "mongo_uri",
    envvar="DB_URL",
    default=None,
    help="MongoDB connection URI.",
)
def init(mongo_uri: str | None) -> None:
    """Create the MongoDB indexes and exit."""
    setup_logging(ServerSettings().verbosity)
    store = build_store("mongodb", mongo_uri)

    async def run() -> None:
        try:
            await store.initialize_schema()
        finally:
            await store.close()

    try:
        asyncio.run(run())
    except EventStoreError as err:
        raise click.ClickException(f"Schema initialization failed: {err}") from err
    click.echo("Schema ready")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
