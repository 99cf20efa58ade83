"""Domain primitives for the scheduling registry.

- Event: Immutable scheduled event and its state transitions
- State: Lifecycle states (Scheduled, Disabled, Completed)
- SearchQuery / Order: Read-side filter, ordering and paging
- CreateEvent / SettleEvent / SettleAndNextEvent: Write requests
- EventStoreError and subclasses: Typed store failures
"""

from .event import TRANSITIONS, Event, State, settle_sources, to_utc, utc_now
from .exceptions import (
    AlreadyScheduledError,
    ConversionError,
    EventStoreError,
    IllegalStateError,
    NoResultError,
    StoreConnectionError,
    UnknownStoreError,
)
from .query import EPOCH, Order, SearchQuery
from .requests import CreateEvent, SettleAndNextEvent, SettleEvent

__all__ = [
    "Event",
    "State",
    "TRANSITIONS",
    "settle_sources",
    "to_utc",
    "utc_now",
    "EPOCH",
    "Order",
    "SearchQuery",
    "CreateEvent",
    "SettleEvent",
    "SettleAndNextEvent",
    "EventStoreError",
    "StoreConnectionError",
    "AlreadyScheduledError",
    "IllegalStateError",
    "NoResultError",
    "ConversionError",
    "UnknownStoreError",
]
