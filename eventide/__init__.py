"""eventide - a registry of scheduled events.

This module provides the public API: the Event value with its state
transitions, search queries, write requests, and the EventStore interface
with its in-memory implementation. The MongoDB store lives in
``eventide.integrations.mongodb`` and the HTTP front door in ``eventide.api``.
"""

from .application import EventStore, InMemoryEventStore
from .domain import (
    AlreadyScheduledError,
    CreateEvent,
    Event,
    EventStoreError,
    IllegalStateError,
    NoResultError,
    Order,
    SearchQuery,
    SettleAndNextEvent,
    SettleEvent,
    State,
    StoreConnectionError,
)

__all__ = [
    # Stores
    "EventStore",
    "InMemoryEventStore",
    # Domain values
    "Event",
    "State",
    "Order",
    "SearchQuery",
    "CreateEvent",
    "SettleEvent",
    "SettleAndNextEvent",
    # Failures
    "EventStoreError",
    "AlreadyScheduledError",
    "IllegalStateError",
    "NoResultError",
    "StoreConnectionError",
]
