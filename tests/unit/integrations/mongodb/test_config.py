"""Unit tests for MongoConfiguration."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from pydantic import ValidationError
from pymongo.errors import ServerSelectionTimeoutError

from eventide.integrations.mongodb import MongoConfiguration


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch):
    for name in ("URI", "DATABASE", "EVENTS_COLLECTION", "TIMEOUT_MS"):
        monkeypatch.delenv(f"EVENTIDE_MONGO_{name}", raising=False)


def test_config_with_defaults():
    config = MongoConfiguration()

    assert config.uri == "mongodb://localhost:27017"
    assert config.database == "eventide"
    assert config.events_collection == "events"
    assert config.max_pool_size == 100
    assert config.min_pool_size == 0
    assert config.timeout_ms is None


def test_config_from_environment(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("EVENTIDE_MONGO_URI", "mongodb://db:27017/?replicaSet=rs0")
    monkeypatch.setenv("EVENTIDE_MONGO_DATABASE", "scheduling")

    config = MongoConfiguration()

    assert config.uri == "mongodb://db:27017/?replicaSet=rs0"
    assert config.database == "scheduling"


def test_config_validation():
    with pytest.raises(ValidationError):
        MongoConfiguration(max_pool_size=0)

    with pytest.raises(ValidationError):
        MongoConfiguration(connect_timeout_ms=-1)


@patch("eventide.integrations.mongodb.config.AsyncMongoClient")
def test_client_is_created_once_with_pool_settings(mock_client_class):
    config = MongoConfiguration(uri="mongodb://db:27017", max_pool_size=10, timeout_ms=500)

    first = config.client
    second = config.client

    assert first is second
    mock_client_class.assert_called_once_with(
        "mongodb://db:27017",
        tz_aware=True,
        maxPoolSize=10,
        minPoolSize=0,
        serverSelectionTimeoutMS=30000,
        connectTimeoutMS=20000,
        timeoutMS=500,
    )


@patch("eventide.integrations.mongodb.config.AsyncMongoClient")
def test_events_collection(mock_client_class):
    client = MagicMock()
    mock_client_class.return_value = client

    config = MongoConfiguration(database="scheduling", events_collection="jobs")
    events = config.events

    client.__getitem__.assert_called_once_with("scheduling")
    client.__getitem__.return_value.__getitem__.assert_called_once_with("jobs")
    assert events is client.__getitem__.return_value.__getitem__.return_value


@pytest.mark.asyncio
@patch("eventide.integrations.mongodb.config.AsyncMongoClient")
async def test_on_shutdown_closes_created_client(mock_client_class):
    client = MagicMock()
    client.close = AsyncMock()
    mock_client_class.return_value = client
    config = MongoConfiguration()

    _ = config.events
    await config.on_shutdown()

    client.close.assert_awaited_once()
    assert "client" not in config.__dict__
    assert "events" not in config.__dict__


@pytest.mark.asyncio
@patch("eventide.integrations.mongodb.config.AsyncMongoClient")
async def test_on_shutdown_without_client(mock_client_class):
    config = MongoConfiguration()

    await config.on_shutdown()

    mock_client_class.assert_not_called()


@pytest.mark.asyncio
@patch("eventide.integrations.mongodb.config.AsyncMongoClient")
async def test_verify_connectivity(mock_client_class):
    client = MagicMock()
    client.admin.command = AsyncMock(return_value={"ok": 1})
    mock_client_class.return_value = client
    config = MongoConfiguration()

    assert await config.verify_connectivity() is True
    client.admin.command.assert_awaited_once_with("ping")

    client.admin.command.side_effect = ServerSelectionTimeoutError("no servers")
    assert await config.verify_connectivity() is False
