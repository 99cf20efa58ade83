"""MongoDB configuration using pydantic-settings."""

import logging
from functools import cached_property
from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from pymongo.asynchronous.collection import AsyncCollection
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.asynchronous.mongo_client import AsyncMongoClient
from pymongo.errors import PyMongoError

LOGGER = logging.getLogger(__name__)


class MongoConfiguration(BaseSettings):
    """Configuration and factory for MongoDB resources.

    All settings can be configured via environment variables with the
    EVENTIDE_MONGO_ prefix. For example:
    - EVENTIDE_MONGO_URI=mongodb://localhost:27017/?replicaSet=rs0
    - EVENTIDE_MONGO_DATABASE=scheduling
    - EVENTIDE_MONGO_EVENTS_COLLECTION=scheduled_events

    The configuration also acts as a factory, providing lazy-initialized
    properties for the pooled MongoDB client, the database and the events
    collection. The client owns the connection pool shared by every store
    operation; it is closed by ``on_shutdown``.

    Attributes:
        uri: MongoDB connection URI. Settling and scheduling a successor in
            one step uses transactions, which need a replica set.
        database: Database name to use.
        events_collection: Collection name for scheduled events.
        max_pool_size: Maximum number of pooled connections.
        min_pool_size: Minimum number of pooled connections.
        server_selection_timeout_ms: How long to wait for a usable server.
        connect_timeout_ms: Timeout for establishing a connection.
        timeout_ms: Client-side timeout for each operation, None to wait
            indefinitely.

    Example:
        >>> config = MongoConfiguration(database="scheduling")
        >>> store = MongoEventStore(config)
        >>> await store.initialize_schema()
        >>> ...
        >>> await config.on_shutdown()
    """

    uri: str = "mongodb://localhost:27017"
    database: str = "eventide"
    events_collection: str = "events"

    max_pool_size: int = Field(default=100, ge=1)
    min_pool_size: int = Field(default=0, ge=0)
    server_selection_timeout_ms: int = Field(default=30000, ge=0)
    connect_timeout_ms: int = Field(default=20000, ge=0)
    timeout_ms: int | None = Field(default=None, ge=0)

    model_config = SettingsConfigDict(env_prefix="EVENTIDE_MONGO_")

    @cached_property
    def client(self) -> AsyncMongoClient[dict[str, Any]]:
        """Get the MongoDB async client.

        The client is lazily created and cached for reuse. Datetimes are
        decoded as timezone-aware UTC values.
        """
        kwargs: dict[str, Any] = {
            "tz_aware": True,
            "maxPoolSize": self.max_pool_size,
            "minPoolSize": self.min_pool_size,
            "serverSelectionTimeoutMS": self.server_selection_timeout_ms,
            "connectTimeoutMS": self.connect_timeout_ms,
        }
        if self.timeout_ms is not None:
            kwargs["timeoutMS"] = self.timeout_ms

        return AsyncMongoClient(self.uri, **kwargs)

    @cached_property
    def db(self) -> AsyncDatabase[dict[str, Any]]:
        """Get the MongoDB async database."""
        return self.client[self.database]

    @cached_property
    def events(self) -> AsyncCollection[dict[str, Any]]:
        """Get the events collection."""
        return self.db[self.events_collection]

    async def verify_connectivity(self) -> bool:
        """Ping the server.

        Returns:
            True if the server answered, False otherwise.
        """
        try:
            await self.client.admin.command("ping")
        except PyMongoError as err:
            LOGGER.warning("MongoDB ping failed: %s", err)
            return False
        return True

    async def on_startup(self) -> None:
        """No-op for MongoDB - connections are established lazily."""
        pass

    async def on_shutdown(self) -> None:
        """Close the MongoDB client if it was created."""
        if "client" in self.__dict__:
            await self.client.close()
            del self.__dict__["client"]
            self.__dict__.pop("db", None)
            self.__dict__.pop("events", None)
