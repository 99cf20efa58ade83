"""Search queries over scheduled events.

A SearchQuery is a read-only value. Stores translate it into their own query
language; ``SearchQuery.apply`` evaluates it directly over a snapshot of
events and is what the in-memory store uses.
"""

import random
from collections.abc import Iterable
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .event import Event, State, to_utc, utc_now

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

DEFAULT_LIMIT = 100


class Order(str, Enum):
    """Ordering of search results by ``scheduled_at``."""

    ASC = "Asc"
    DESC = "Desc"
    RAND = "Rand"

    @classmethod
    def _missing_(cls, value: object) -> "Order | None":
        if isinstance(value, str):
            return _ORDER_ALIASES.get(value.strip().upper())
        return None


_ORDER_ALIASES = {
    "ASC": Order.ASC,
    "ASCENDING": Order.ASC,
    "DESC": Order.DESC,
    "DESCENDING": Order.DESC,
    "RAND": Order.RAND,
    "RANDOM": Order.RAND,
}


class SearchQuery(BaseModel):
    """Filter, ordering and paging for a search over one namespace.

    Attributes:
        namespace: Namespace to search in (exact match, required).
        key: Optional exact key filter.
        state: States to include. ``None`` means Scheduled only.
        order: Result ordering, ascending by ``scheduled_at`` by default.
        limit: Maximum number of events returned.
        scheduled_at_min: Lower bound on ``scheduled_at``, the epoch if unset.
        scheduled_at_max: Upper bound on ``scheduled_at``, the moment of
            evaluation if unset, so future events stay hidden by default.

    Examples:
        >>> query = SearchQuery(namespace="billing", state=[State.DISABLED])
        >>> query.states()
        [<State.DISABLED: 'DISABLED'>]
        >>> SearchQuery(namespace="billing").states()
        [<State.SCHEDULED: 'SCHEDULED'>]
    """

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    namespace: str
    key: str | None = None
    state: list[State] | None = None
    order: Order = Order.ASC
    limit: int = Field(default=DEFAULT_LIMIT, ge=1)
    scheduled_at_min: datetime | None = None
    scheduled_at_max: datetime | None = None

    @field_validator("scheduled_at_min", "scheduled_at_max")
    @classmethod
    def _normalize_timestamp(cls, value: datetime | None) -> datetime | None:
        return None if value is None else to_utc(value)

    def states(self) -> list[State]:
        if not self.state:
            return [State.SCHEDULED]
        return list(dict.fromkeys(self.state))

    def scheduled_range(self, now: datetime | None = None) -> tuple[datetime, datetime]:
        """Resolve the inclusive ``scheduled_at`` bounds.

        Args:
            now: Reference time for an unset upper bound. Defaults to the
                current time, so every call re-evaluates it.
        """
        lower = self.scheduled_at_min or EPOCH
        upper = self.scheduled_at_max or (now if now is not None else utc_now())
        return lower, upper

    def matches(self, event: Event, now: datetime | None = None) -> bool:
        lower, upper = self.scheduled_range(now)
        return (
            event.namespace == self.namespace
            and (self.key is None or event.key == self.key)
            and event.state in self.states()
            and lower <= event.scheduled_at <= upper
        )

    def apply(
        self, events: Iterable[Event], rng: random.Random | None = None
    ) -> list[Event]:
        """Filter, order and truncate a snapshot of events.

        Args:
            events: The snapshot to evaluate.
            rng: Source of randomness for ``Order.RAND``. Each evaluation
                draws a fresh order unless a seeded generator is passed.
        """
        now = utc_now()
        selected = [event for event in events if self.matches(event, now)]

        if self.order is Order.RAND:
            (rng or random).shuffle(selected)
        else:
            selected.sort(
                key=lambda event: (event.scheduled_at, str(event.id)),
                reverse=self.order is Order.DESC,
            )

        return selected[: self.limit]
