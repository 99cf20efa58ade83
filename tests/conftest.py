"""Central test fixtures."""

from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

import pytest

from eventide.application import InMemoryEventStore
from eventide.domain import CreateEvent, utc_now


@pytest.fixture
def now() -> datetime:
    """Current time at storage precision."""
    return utc_now()


@pytest.fixture
def past(now: datetime) -> datetime:
    """A due time an hour ago, inside the default search window."""
    return now - timedelta(hours=1)


@pytest.fixture
def create_request(past: datetime) -> Callable[..., CreateEvent]:
    """Factory for CreateEvent requests with sensible defaults."""

    def make(
        key: str = "job1",
        namespace: str = "ns",
        schedule_at: datetime | None = None,
        value: Any = None,
    ) -> CreateEvent:
        return CreateEvent(
            key=key,
            namespace=namespace,
            schedule_at=schedule_at or past,
            value=value,
        )

    return make


@pytest.fixture
def event_store() -> InMemoryEventStore:
    """Create an in-memory event store."""
    return InMemoryEventStore()
