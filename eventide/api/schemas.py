"""Response bodies of the HTTP front door."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from eventide.domain import Event, State


class SearchResponse(BaseModel):
    """A search result echoing the resolved query parameters."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    namespace: str
    state: list[State]
    scheduled_at_min: datetime
    scheduled_at_max: datetime
    limit: int
    events: list[Event]


class ErrorResponse(BaseModel):
    error: str
    detail: str


class HealthResponse(BaseModel):
    ok: bool
    storage: bool
