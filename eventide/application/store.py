"""Event store interface and in-memory implementation."""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from collections.abc import AsyncIterator
from contextlib import AsyncExitStack, asynccontextmanager

from ulid import ULID

from ..domain import (
    AlreadyScheduledError,
    CreateEvent,
    Event,
    IllegalStateError,
    NoResultError,
    SearchQuery,
    SettleAndNextEvent,
    SettleEvent,
    State,
)

LOGGER = logging.getLogger(__name__)


class EventStore(ABC):
    """Abstract interface for durable storage of scheduled events.

    The store is the sole owner of persisted events and the sole enforcer
    of the scheduling invariant: for any ``(namespace, key)`` at most one
    event is Scheduled at a time. Events are never deleted; a transition
    only changes the state of the stored event. Callers always receive
    copies.

    Key responsibilities:
    - **Uniqueness**: Reject writes that would create a second Scheduled
      event for a ``(namespace, key)``, even under concurrent writers
    - **Atomicity**: ``settle_and_next`` commits both of its writes or none
    - **Typed failures**: Every failure is an ``EventStoreError`` subclass
    """

    async def initialize_schema(self) -> None:
        """Create whatever the backing storage needs to enforce the invariant.

        Idempotent and safe to call on every process start.
        """
        return None

    async def ping(self) -> bool:
        """Report whether the backing storage is reachable."""
        return True

    async def close(self) -> None:
        """Release connections held by the store."""
        return None

    @abstractmethod
    async def insert(self, request: CreateEvent) -> Event:
        """Persist a new Scheduled event.

        Args:
            request: Key, namespace, due time and payload of the event.

        Returns:
            The stored event with its generated identifiers.

        Raises:
            AlreadyScheduledError: If another event is already Scheduled
                for the same ``(namespace, key)``. Nothing is written.
            StoreConnectionError: If the storage cannot be reached.
        """
        ...

    @abstractmethod
    async def get(self, namespace: str, key: str, id: ULID) -> Event | None:
        """Look up a single event.

        Returns:
            The event, or None if no event matches all three identifiers.

        Raises:
            StoreConnectionError: If the storage cannot be reached.
        """
        ...

    @abstractmethod
    async def search(self, query: SearchQuery) -> list[Event]:
        """Return the events matching ``query``, ordered and truncated to its limit.

        Every call evaluates the query afresh against the current contents.
        """
        ...

    @abstractmethod
    async def change_state(self, request: SettleEvent) -> Event | None:
        """Settle an event into Disabled or Completed.

        The transition follows ``Event.settle``: disabling a Completed event
        or completing a Completed one leaves it unchanged, and the current
        event is returned as-is.

        Args:
            request: Identifiers of the event and the requested state.

        Returns:
            The event after the transition, or None if no event matches
            ``(namespace, key, id)``.

        Raises:
            IllegalStateError: If the requested state is Scheduled,
                whatever the current state of the event.
            StoreConnectionError: If the storage cannot be reached.
        """
        ...

    @abstractmethod
    async def settle_and_next(self, request: SettleAndNextEvent) -> Event:
        """Settle the referenced event and schedule its successor atomically.

        The settle step targets the event ``request.id``; the insert step
        uses ``request.next`` exclusively. Either both writes become visible
        or neither does.

        Args:
            request: The event to settle, its target state and the successor.

        Returns:
            The newly Scheduled successor.

        Raises:
            IllegalStateError: If the requested state is Scheduled.
            NoResultError: If the referenced event does not exist.
            AlreadyScheduledError: If the successor's ``(namespace, key)``
                already has a Scheduled event. The referenced event keeps
                the state it had before the call.
            StoreConnectionError: If the storage cannot be reached.
        """
        ...


class InMemoryEventStore(EventStore):
    """Dictionary-based event store for tests and local development.

    Events are kept by id, and a slot table maps each ``(namespace, key)``
    to the id of its Scheduled event. Every write goes through the slot
    table check. Writes touching a ``(namespace, key)`` hold that pair's
    lock, acquired in sorted order when an operation spans two pairs.

    **NOT suitable for production**: nothing survives a restart and the
    locks only serialize writers within one event loop.
    """

    def __init__(self) -> None:
        """Initialize an empty in-memory event store."""
        self.by_id: dict[ULID, Event] = {}
        self.scheduled: dict[tuple[str, str], ULID] = {}
        self._locks: defaultdict[tuple[str, str], asyncio.Lock] = defaultdict(asyncio.Lock)

    @asynccontextmanager
    async def _serialized(self, *pairs: tuple[str, str]) -> AsyncIterator[None]:
        async with AsyncExitStack() as stack:
            for pair in sorted(set(pairs)):
                await stack.enter_async_context(self._locks[pair])
            yield

    def _put(self, event: Event) -> None:
        pair = (event.namespace, event.key)
        holder = self.scheduled.get(pair)

        if event.is_scheduled():
            if holder is not None and holder != event.id:
                raise AlreadyScheduledError(
                    f"Event {holder} is already scheduled for {event.namespace}/{event.key}"
                )
            self.scheduled[pair] = event.id
        elif holder == event.id:
            del self.scheduled[pair]

        self.by_id[event.id] = event

    def _find(self, namespace: str, key: str, id: ULID) -> Event | None:
        event = self.by_id.get(id)
        if event is None or event.namespace != namespace or event.key != key:
            return None
        return event

    async def insert(self, request: CreateEvent) -> Event:
        event = request.to_event()
        async with self._serialized((event.namespace, event.key)):
            self._put(event)

        LOGGER.debug(
            "Scheduled event",
            extra={"namespace": event.namespace, "key": event.key, "event_id": str(event.id)},
        )
        return event.model_copy(deep=True)

    async def get(self, namespace: str, key: str, id: ULID) -> Event | None:
        event = self._find(namespace, key, id)
        return None if event is None else event.model_copy(deep=True)

    async def search(self, query: SearchQuery) -> list[Event]:
        return [event.model_copy(deep=True) for event in query.apply(list(self.by_id.values()))]

    async def change_state(self, request: SettleEvent) -> Event | None:
        if request.state is State.SCHEDULED:
            raise IllegalStateError(f"Cannot settle event {request.id} into {request.state}")

        async with self._serialized((request.namespace, request.key)):
            current = self._find(request.namespace, request.key, request.id)
            if current is None:
                return None

            settled = current.settle(request.state)
            if settled is not current:
                self._put(settled)

        return settled.model_copy(deep=True)

    async def settle_and_next(self, request: SettleAndNextEvent) -> Event:
        if request.state is State.SCHEDULED:
            raise IllegalStateError(f"Cannot settle event {request.id} into {request.state}")

        predecessor = self.by_id.get(request.id)
        if predecessor is None:
            raise NoResultError(f"Event {request.id} does not exist")

        successor = request.next.to_event()
        async with self._serialized(
            (predecessor.namespace, predecessor.key),
            (successor.namespace, successor.key),
        ):
            current = self.by_id[request.id]
            settled = current.settle(request.state)
            if settled is not current:
                self._put(settled)

            try:
                self._put(successor)
            except AlreadyScheduledError:
                if settled is not current:
                    self._put(current)
                raise

        return successor.model_copy(deep=True)
