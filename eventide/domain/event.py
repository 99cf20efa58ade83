from copy import deepcopy
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator
from pydantic.alias_generators import to_camel
from ulid import ULID

from .exceptions import IllegalStateError


def utc_now() -> datetime:
    """Get the current UTC timestamp, truncated to storage precision."""
    return to_utc(datetime.now(tz=timezone.utc))


def to_utc(value: datetime) -> datetime:
    """Normalize a timestamp to an aware UTC datetime with millisecond precision.

    Naive datetimes are taken to already be in UTC. Sub-millisecond digits
    are dropped so that a value survives a round trip through BSON unchanged.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    else:
        value = value.astimezone(timezone.utc)
    return value.replace(microsecond=value.microsecond // 1000 * 1000)


class State(str, Enum):
    """Lifecycle state of a scheduled event.

    The member values are the literal strings used on the wire and in
    storage. Lookup is case-insensitive, so ``State("completed")`` and
    ``State("Completed")`` both resolve to ``State.COMPLETED``.
    """

    SCHEDULED = "SCHEDULED"
    DISABLED = "DISABLED"
    COMPLETED = "COMPLETED"

    @classmethod
    def _missing_(cls, value: object) -> "State | None":
        if isinstance(value, str):
            return cls.__members__.get(value.strip().upper())
        return None

    def __str__(self) -> str:
        return self.value


# Result of applying a settle operation to an event in a given state.
# Scheduled is never a target: only creation produces a Scheduled event.
TRANSITIONS: dict[State, dict[State, State]] = {
    State.DISABLED: {
        State.SCHEDULED: State.DISABLED,
        State.DISABLED: State.DISABLED,
        State.COMPLETED: State.COMPLETED,
    },
    State.COMPLETED: {
        State.SCHEDULED: State.COMPLETED,
        State.DISABLED: State.COMPLETED,
        State.COMPLETED: State.COMPLETED,
    },
}


def settle_sources(target: State) -> list[State]:
    """States from which settling into ``target`` actually changes the event.

    Args:
        target: The requested settle state.

    Returns:
        The current states that transition to ``target``, in declaration order.

    Raises:
        IllegalStateError: If ``target`` is ``State.SCHEDULED``.
    """
    if target not in TRANSITIONS:
        raise IllegalStateError(f"Cannot settle an event into {target}")
    return [
        current
        for current, result in TRANSITIONS[target].items()
        if result is target and current is not target
    ]


class Event(BaseModel):
    """A named, time-stamped unit of work scheduled within a namespace.

    Events are immutable values. Every transition returns a new Event and
    leaves the original untouched; persisting the result is the job of an
    EventStore, which also guarantees that at most one event per
    ``(namespace, key)`` is Scheduled at any time.

    Attributes:
        id: Unique identifier generated on creation.
        idempotence_key: Secondary unique identifier callers can use to
            deduplicate retried creation requests.
        key: Name of the schedule within its namespace.
        namespace: Logical grouping the key belongs to.
        value: Opaque JSON payload, ``None`` when omitted.
        state: Current lifecycle state.
        created_at: When the event was created (UTC).
        scheduled_at: When the event is due (UTC).

    Examples:
        >>> event = Event.create("nightly-report", "billing", scheduled_at)
        >>> event.is_scheduled()
        True
        >>> done, successor = event.next_duration(timedelta(days=1))
        >>> done.state, successor.state
        (<State.DISABLED: 'DISABLED'>, <State.SCHEDULED: 'SCHEDULED'>)
    """

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    id: ULID = Field(default_factory=ULID)
    idempotence_key: ULID = Field(default_factory=ULID)
    key: str
    namespace: str
    value: Any = None
    state: State = State.SCHEDULED
    created_at: datetime = Field(default_factory=utc_now)
    scheduled_at: datetime

    @field_validator("created_at", "scheduled_at")
    @classmethod
    def _normalize_timestamp(cls, value: datetime) -> datetime:
        return to_utc(value)

    @field_serializer("id", "idempotence_key")
    def _serialize_ulid(self, value: ULID) -> str:
        return str(value)

    @classmethod
    def create(
        cls,
        key: str,
        namespace: str,
        scheduled_at: datetime,
        value: Any = None,
    ) -> "Event":
        """Create a fresh Scheduled event with newly generated identifiers."""
        return cls(key=key, namespace=namespace, scheduled_at=scheduled_at, value=value)

    def is_scheduled(self) -> bool:
        return self.state is State.SCHEDULED

    def disable(self) -> "Event":
        """Disable a Scheduled event. Disabled and Completed events are returned as-is."""
        return self.settle(State.DISABLED)

    def complete(self) -> "Event":
        """Complete a Scheduled or Disabled event. Completed events are returned as-is."""
        return self.settle(State.COMPLETED)

    def settle(self, state: State) -> "Event":
        """Move the event out of Scheduled according to the transition table.

        Raises:
            IllegalStateError: If ``state`` is ``State.SCHEDULED``.
        """
        if state not in TRANSITIONS:
            raise IllegalStateError(f"Cannot settle event {self.id} into {state}")
        result = TRANSITIONS[state][self.state]
        if result is self.state:
            return self
        return self.model_copy(update={"state": result})

    def next(self, scheduled_at: datetime, value: Any = None) -> tuple["Event", "Event"]:
        """Disable this event and produce its Scheduled successor.

        Args:
            scheduled_at: When the successor is due.
            value: Payload for the successor. Defaults to a copy of this
                event's payload.

        Returns:
            Tuple of (this event disabled, the new successor).
        """
        successor = Event.create(
            key=self.key,
            namespace=self.namespace,
            scheduled_at=scheduled_at,
            value=deepcopy(self.value) if value is None else value,
        )
        return self.disable(), successor

    def next_duration(
        self, duration: timedelta, value: Any = None
    ) -> tuple["Event", "Event"]:
        """Like ``next``, with the successor due ``duration`` after this event."""
        return self.next(self.scheduled_at + duration, value)
