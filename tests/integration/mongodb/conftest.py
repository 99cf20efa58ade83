"""Pytest fixtures for MongoDB integration tests."""

import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import pytest
import pytest_asyncio

from eventide.integrations.mongodb import MongoConfiguration, MongoEventStore

# Assumes a MongoDB server is running locally on port 27017. Settling and
# scheduling a successor in one step additionally needs it to be a replica set.
LOCAL_MONGO_URI = os.environ.get(
    "EVENTIDE_TEST_MONGO_URI", "mongodb://localhost:27017/?directConnection=true"
)


@asynccontextmanager
async def create_config(
    request: pytest.FixtureRequest, prefix: str = "test"
) -> AsyncIterator[MongoConfiguration]:
    """Create a MongoConfiguration on a fresh database, with cleanup."""
    db_name = f"{prefix}_{request.node.name}"[:63]
    for char in "[]-/\\. \"$":
        db_name = db_name.replace(char, "_")

    config = MongoConfiguration(
        uri=LOCAL_MONGO_URI,
        database=db_name,
        server_selection_timeout_ms=2000,
    )
    try:
        if not await config.verify_connectivity():
            pytest.skip(f"MongoDB is not reachable at {LOCAL_MONGO_URI}")
        await config.client.drop_database(config.database)
        yield config
        await config.client.drop_database(config.database)
    finally:
        await config.on_shutdown()


@pytest_asyncio.fixture
async def mongo_config(request: pytest.FixtureRequest) -> AsyncIterator[MongoConfiguration]:
    """Create a MongoConfiguration pointing to local MongoDB."""
    async with create_config(request) as config:
        yield config


@pytest_asyncio.fixture
async def event_store(mongo_config: MongoConfiguration) -> MongoEventStore:
    """Create a MongoEventStore with its indexes in place."""
    store = MongoEventStore(mongo_config)
    await store.initialize_schema()
    return store


@pytest_asyncio.fixture
async def transactional_store(event_store: MongoEventStore) -> MongoEventStore:
    """The same store, skipping the test unless the server supports transactions."""
    hello = await event_store.config.client.admin.command("hello")
    if "setName" not in hello:
        pytest.skip("MongoDB transactions need a replica set")
    return event_store
