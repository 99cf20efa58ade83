"""Request values accepted by EventStore write operations.

The field aliases are the camelCase names used on the wire.
"""

from datetime import datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from ulid import ULID

from .event import Event, State, to_utc


class _Request(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class CreateEvent(_Request):
    """Schedule a new event.

    Attributes:
        key: Name of the schedule within the namespace.
        namespace: Namespace of the schedule.
        schedule_at: When the event is due. Accepted on the wire as
            ``scheduleAt`` (or ``scheduledAt``).
        value: Optional JSON payload.
    """

    key: str = Field(min_length=1)
    namespace: str = Field(min_length=1)
    schedule_at: datetime = Field(
        validation_alias=AliasChoices("scheduleAt", "scheduledAt", "schedule_at"),
        serialization_alias="scheduleAt",
    )
    value: Any = None

    @field_validator("schedule_at")
    @classmethod
    def _normalize_timestamp(cls, value: datetime) -> datetime:
        return to_utc(value)

    def to_event(self) -> Event:
        """Build the fresh Scheduled event this request describes."""
        return Event.create(
            key=self.key,
            namespace=self.namespace,
            scheduled_at=self.schedule_at,
            value=self.value,
        )


class SettleEvent(_Request):
    """Move an existing event out of the Scheduled state."""

    key: str
    id: ULID
    namespace: str
    state: State


class SettleAndNextEvent(_Request):
    """Settle the event ``id`` and schedule ``next`` as one atomic unit."""

    id: ULID
    state: State
    next: CreateEvent
