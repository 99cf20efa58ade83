"""Tests for the command line."""

import logging
from unittest.mock import AsyncMock, patch

import pytest
from click.testing import CliRunner

from eventide.application import InMemoryEventStore
from eventide.cli import build_store, cli
from eventide.domain import StoreConnectionError
from eventide.integrations.mongodb import MongoEventStore


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def runner(monkeypatch: pytest.MonkeyPatch) -> CliRunner:
    for name in ("EVENTIDE_LOG", "EVENTIDE_BACKEND", "EVENTIDE_PORT", "DB_URL"):
        monkeypatch.delenv(name, raising=False)
    return CliRunner()


def test_build_store_memory():
    assert isinstance(build_store("memory"), InMemoryEventStore)


def test_build_store_mongodb_uses_uri():
    store = build_store("mongodb", "mongodb://db.example:27017")

    assert isinstance(store, MongoEventStore)
    assert store.config.uri == "mongodb://db.example:27017"


@patch("eventide.cli.uvicorn.run")
def test_serve_memory(mock_run, runner: CliRunner):
    result = runner.invoke(cli, ["serve", "--memory", "--port", "9001", "-v", "4"])

    assert result.exit_code == 0, result.output
    mock_run.assert_called_once()
    args, kwargs = mock_run.call_args
    assert kwargs["port"] == 9001
    assert kwargs["host"] == "127.0.0.1"
    assert kwargs["log_level"] == "debug"
    assert isinstance(args[0].state.store, InMemoryEventStore)


@patch("eventide.cli.uvicorn.run")
def test_serve_rejects_bad_verbosity(mock_run, runner: CliRunner):
    result = runner.invoke(cli, ["serve", "--memory", "-v", "9"])

    assert result.exit_code != 0
    mock_run.assert_not_called()


@patch.object(MongoEventStore, "close", new_callable=AsyncMock)
@patch.object(MongoEventStore, "initialize_schema", new_callable=AsyncMock)
def test_init_creates_schema(mock_init, mock_close, runner: CliRunner):
    result = runner.invoke(cli, ["init", "--database", "mongodb://db.example:27017"])

    assert result.exit_code == 0, result.output
    assert "Schema ready" in result.output
    mock_init.assert_awaited_once()
    mock_close.assert_awaited_once()


@patch.object(MongoEventStore, "close", new_callable=AsyncMock)
@patch.object(
    MongoEventStore,
    "initialize_schema",
    new_callable=AsyncMock,
    side_effect=StoreConnectionError("unreachable"),
)
def test_init_reports_failure(mock_init, mock_close, runner: CliRunner):
    result = runner.invoke(cli, ["init"])

    assert result.exit_code == 1
    assert "unreachable" in result.output
    mock_close.assert_awaited_once()
