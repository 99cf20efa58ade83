"""MongoDB integration for the eventide scheduling registry.

This module provides the MongoDB implementation of the EventStore
interface using the async PyMongo driver.

Installation:
    pip install eventide

Usage:
    >>> from eventide.integrations.mongodb import MongoConfiguration, MongoEventStore
    >>>
    >>> config = MongoConfiguration(
    ...     uri="mongodb://localhost:27017/?replicaSet=rs0",
    ...     database="scheduling",
    ... )
    >>> store = MongoEventStore(config)
    >>> await store.initialize_schema()
"""

from .collection import IndexDirection, IndexedCollection, IndexSpec
from .config import MongoConfiguration
from .event_store import SCHEDULED_INDEX, MongoEventStore, from_document, to_document

__all__ = [
    "MongoConfiguration",
    "MongoEventStore",
    "IndexedCollection",
    "IndexSpec",
    "IndexDirection",
    "SCHEDULED_INDEX",
    "to_document",
    "from_document",
]
