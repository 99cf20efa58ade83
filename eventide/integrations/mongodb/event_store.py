"""MongoDB implementation of EventStore.

This module provides a MongoDB-backed event store using PyMongo's async API.
The scheduling invariant is enforced by the server through a partial unique
index on ``(namespace, key)`` covering only Scheduled documents, and
``settle_and_next`` runs in a multi-document transaction.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from pydantic import ValidationError
from pymongo.asynchronous.client_session import AsyncClientSession
from pymongo.errors import ConnectionFailure, DuplicateKeyError, PyMongoError
from ulid import ULID

from eventide.application import EventStore
from eventide.domain import (
    AlreadyScheduledError,
    ConversionError,
    CreateEvent,
    Event,
    IllegalStateError,
    NoResultError,
    Order,
    SearchQuery,
    SettleAndNextEvent,
    SettleEvent,
    State,
    StoreConnectionError,
    UnknownStoreError,
    settle_sources,
)

from .collection import IndexDirection, IndexedCollection, IndexSpec
from .config import MongoConfiguration

LOGGER = logging.getLogger(__name__)

SCHEDULED_INDEX = "single_scheduled_idx"

EVENT_INDEXES = [
    IndexSpec(
        keys=[("namespace", IndexDirection.ASC), ("key", IndexDirection.ASC)],
        name=SCHEDULED_INDEX,
        unique=True,
        partial_filter={"state": State.SCHEDULED.value},
    ),
    IndexSpec(
        keys=[("idempotence_key", IndexDirection.ASC)],
        name="idempotence_key_idx",
        unique=True,
    ),
    IndexSpec(
        keys=[
            ("namespace", IndexDirection.ASC),
            ("state", IndexDirection.ASC),
            ("scheduled_at", IndexDirection.ASC),
        ],
        name="search_idx",
    ),
]


def to_document(event: Event) -> dict[str, Any]:
    """Convert an Event to its stored document."""
    return {
        "_id": str(event.id),
        "idempotence_key": str(event.idempotence_key),
        "key": event.key,
        "namespace": event.namespace,
        "value": event.value,
        "state": event.state.value,
        "created_at": event.created_at,
        "scheduled_at": event.scheduled_at,
    }


def from_document(doc: dict[str, Any]) -> Event:
    """Rebuild an Event from its stored document.

    Raises:
        ConversionError: If the document is missing fields or holds
            values an Event cannot accept.
    """
    try:
        return Event(
            id=ULID.from_str(doc["_id"]),
            idempotence_key=ULID.from_str(doc["idempotence_key"]),
            key=doc["key"],
            namespace=doc["namespace"],
            value=doc.get("value"),
            state=doc["state"],
            created_at=doc["created_at"],
            scheduled_at=doc["scheduled_at"],
        )
    except (KeyError, ValueError, ValidationError) as err:
        raise ConversionError(f"Cannot decode event document {doc.get('_id')!r}") from err


@contextmanager
def translate_errors(operation: str, **context: Any) -> Iterator[None]:
    """Translate driver exceptions raised in the block into EventStoreErrors.

    Args:
        operation: Name of the store operation, for logging.
        **context: Identifiers logged alongside unexpected failures.
    """
    extra = {"operation": operation, **{k: str(v) for k, v in context.items()}}
    try:
        yield
    except DuplicateKeyError as err:
        if SCHEDULED_INDEX in str(err):
            LOGGER.info("Rejected second scheduled event", extra=extra)
            raise AlreadyScheduledError(
                f"An event is already scheduled for this namespace and key ({operation})"
            ) from err
        LOGGER.error("Unexpected duplicate key", exc_info=True, extra=extra)
        raise UnknownStoreError(str(err)) from err
    except ConnectionFailure as err:
        LOGGER.warning("MongoDB unreachable: %s", err, extra=extra)
        raise StoreConnectionError(str(err)) from err
    except PyMongoError as err:
        if err.timeout:
            LOGGER.warning("MongoDB operation timed out: %s", err, extra=extra)
            raise StoreConnectionError(str(err)) from err
        LOGGER.error("MongoDB operation failed", exc_info=True, extra=extra)
        raise UnknownStoreError(str(err)) from err


class MongoEventStore(EventStore):
    """MongoDB implementation of the EventStore interface.

    This implementation stores one document per event with:
    - The event id as ``_id``
    - A partial unique index on (namespace, key) over Scheduled documents,
      so the server rejects a second Scheduled event even under
      concurrent writers
    - Conditional single-document updates for ``change_state``
    - A multi-document transaction for ``settle_and_next``

    Document structure:
        {
            "_id": "01J...",
            "idempotence_key": "01J...",
            "key": "nightly-report",
            "namespace": "billing",
            "value": {...},
            "state": "SCHEDULED",
            "created_at": ISODate(...),
            "scheduled_at": ISODate(...)
        }

    Examples:
        >>> config = MongoConfiguration(uri="mongodb://localhost:27017/?replicaSet=rs0")
        >>> store = MongoEventStore(config)
        >>> await store.initialize_schema()
        >>>
        >>> event = await store.insert(
        ...     CreateEvent(key="nightly-report", namespace="billing", schedule_at=when)
        ... )
        >>> successor = await store.settle_and_next(
        ...     SettleAndNextEvent(id=event.id, state=State.COMPLETED, next=...)
        ... )
    """

    def __init__(self, config: MongoConfiguration):
        """Initialize the MongoDB event store.

        Args:
            config: MongoDB configuration providing the pooled client.
        """
        self.config = config
        self._collection: IndexedCollection | None = None

    @property
    def _events(self) -> IndexedCollection:
        """Get the indexed events collection, created on first use."""
        if self._collection is None:
            self._collection = IndexedCollection(self.config.events, indexes=EVENT_INDEXES)
        return self._collection

    async def initialize_schema(self) -> None:
        """Create the indexes, including the Scheduled-uniqueness index.

        Examples:
            >>> await store.initialize_schema()
        """
        with translate_errors("initialize_schema"):
            await self._events.ensure_indexes()
        LOGGER.info(
            "Event indexes ready",
            extra={"database": self.config.database, "collection": self.config.events_collection},
        )

    async def ping(self) -> bool:
        return await self.config.verify_connectivity()

    async def close(self) -> None:
        await self.config.on_shutdown()
        self._collection = None

    async def insert(self, request: CreateEvent) -> Event:
        event = request.to_event()
        with translate_errors("insert", namespace=event.namespace, key=event.key):
            await self._events.insert_one(to_document(event))

        LOGGER.debug(
            "Scheduled event",
            extra={"namespace": event.namespace, "key": event.key, "event_id": str(event.id)},
        )
        return event

    async def get(self, namespace: str, key: str, id: ULID) -> Event | None:
        with translate_errors("get", namespace=namespace, key=key, event_id=id):
            doc = await self._events.find_one(
                {"_id": str(id), "namespace": namespace, "key": key}
            )
        return None if doc is None else from_document(doc)

    async def search(self, query: SearchQuery) -> list[Event]:
        lower, upper = query.scheduled_range()
        filter: dict[str, Any] = {
            "namespace": query.namespace,
            "state": {"$in": [state.value for state in query.states()]},
            "scheduled_at": {"$gte": lower, "$lte": upper},
        }
        if query.key is not None:
            filter["key"] = query.key

        with translate_errors("search", namespace=query.namespace):
            if query.order is Order.RAND:
                docs = await self._events.sample(filter, query.limit)
            else:
                direction = (
                    IndexDirection.DESC if query.order is Order.DESC else IndexDirection.ASC
                )
                docs = await self._events.find(
                    filter,
                    sort=[("scheduled_at", int(direction)), ("_id", int(direction))],
                    limit=query.limit,
                )

        return [from_document(doc) for doc in docs]

    async def change_state(self, request: SettleEvent) -> Event | None:
        if request.state is State.SCHEDULED:
            raise IllegalStateError(f"Cannot settle event {request.id} into {request.state}")

        identity = {"_id": str(request.id), "namespace": request.namespace, "key": request.key}
        sources = [state.value for state in settle_sources(request.state)]

        with translate_errors("change_state", namespace=request.namespace, key=request.key):
            doc = await self._events.find_one_and_update(
                {**identity, "state": {"$in": sources}},
                {"$set": {"state": request.state.value}},
            )
            if doc is None:
                # Either missing or already settled; the latter is a no-op.
                doc = await self._events.find_one(identity)

        return None if doc is None else from_document(doc)

    async def settle_and_next(self, request: SettleAndNextEvent) -> Event:
        if request.state is State.SCHEDULED:
            raise IllegalStateError(f"Cannot settle event {request.id} into {request.state}")

        successor = request.next.to_event()
        sources = [state.value for state in settle_sources(request.state)]

        async def settle_then_insert(session: AsyncClientSession) -> None:
            current = await self._events.find_one({"_id": str(request.id)}, session=session)
            if current is None:
                raise NoResultError(f"Event {request.id} does not exist")

            if current["state"] in sources:
                await self._events.update_one(
                    {"_id": str(request.id), "state": current["state"]},
                    {"$set": {"state": request.state.value}},
                    session=session,
                )
            await self._events.insert_one(to_document(successor), session=session)

        with translate_errors(
            "settle_and_next",
            event_id=request.id,
            namespace=successor.namespace,
            key=successor.key,
        ):
            await self._events.ensure_indexes()
            async with self.config.client.start_session() as session:
                await session.with_transaction(settle_then_insert)

        LOGGER.debug(
            "Settled event and scheduled successor",
            extra={
                "event_id": str(request.id),
                "state": request.state.value,
                "successor_id": str(successor.id),
            },
        )
        return successor
