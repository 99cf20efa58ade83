"""Storage layer for scheduled events.

- EventStore: Interface every backend implements
- InMemoryEventStore: Single-process implementation for tests and development
"""

from .store import EventStore, InMemoryEventStore

__all__ = ["EventStore", "InMemoryEventStore"]
