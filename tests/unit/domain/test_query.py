"""Tests for SearchQuery defaults and evaluation."""

import random
from datetime import datetime, timedelta

import pytest
from pydantic import ValidationError

from eventide.domain import EPOCH, Event, Order, SearchQuery, State


@pytest.fixture
def events(past: datetime) -> list[Event]:
    """Three due events in ns, one in another namespace, one in the future."""
    return [
        Event.create("job1", "ns", past),
        Event.create("job2", "ns", past + timedelta(minutes=1)),
        Event.create("job3", "ns", past - timedelta(minutes=1)).disable(),
        Event.create("job1", "other", past),
        Event.create("job4", "ns", past + timedelta(days=1)),
    ]


def test_defaults():
    query = SearchQuery(namespace="ns")

    assert query.states() == [State.SCHEDULED]
    assert query.order is Order.ASC
    assert query.limit == 100
    assert query.key is None


def test_scheduled_range_defaults(now: datetime):
    lower, upper = SearchQuery(namespace="ns").scheduled_range(now)

    assert lower == EPOCH
    assert upper == now


def test_scheduled_range_reevaluates_now():
    query = SearchQuery(namespace="ns")
    _, first = query.scheduled_range()
    _, second = query.scheduled_range()

    assert second >= first


def test_wire_field_names():
    query = SearchQuery.model_validate(
        {
            "namespace": "ns",
            "key": "job1",
            "state": ["disabled", "COMPLETED"],
            "order": "DESCENDING",
            "limit": 5,
            "scheduledAtMin": "2024-01-01T00:00:00Z",
            "scheduledAtMax": "2024-02-01T00:00:00+01:00",
        }
    )

    assert query.states() == [State.DISABLED, State.COMPLETED]
    assert query.order is Order.DESC
    assert query.limit == 5
    assert query.scheduled_range()[1].utcoffset() == timedelta(0)


@pytest.mark.parametrize(
    ("literal", "order"),
    [
        ("Asc", Order.ASC),
        ("ASCENDING", Order.ASC),
        ("desc", Order.DESC),
        ("Rand", Order.RAND),
        ("RANDOM", Order.RAND),
    ],
)
def test_order_aliases(literal: str, order: Order):
    assert Order(literal) is order


def test_limit_must_be_positive():
    with pytest.raises(ValidationError):
        SearchQuery(namespace="ns", limit=0)


def test_namespace_is_required():
    with pytest.raises(ValidationError):
        SearchQuery()  # type: ignore[call-arg]


def test_apply_filters_namespace_state_and_future(events: list[Event]):
    result = SearchQuery(namespace="ns").apply(events)

    assert [event.key for event in result] == ["job1", "job2"]


def test_apply_filters_key(events: list[Event]):
    result = SearchQuery(namespace="ns", key="job2").apply(events)

    assert [event.key for event in result] == ["job2"]


def test_apply_filters_state(events: list[Event]):
    result = SearchQuery(namespace="ns", state=[State.DISABLED, State.COMPLETED]).apply(events)

    assert [event.key for event in result] == ["job3"]


def test_apply_includes_future_with_explicit_max(events: list[Event], now: datetime):
    query = SearchQuery(namespace="ns", scheduled_at_max=now + timedelta(days=2))

    assert [event.key for event in query.apply(events)] == ["job1", "job2", "job4"]


def test_apply_respects_min(events: list[Event], past: datetime):
    query = SearchQuery(namespace="ns", scheduled_at_min=past + timedelta(seconds=30))

    assert [event.key for event in query.apply(events)] == ["job2"]


def test_apply_descending_and_limit(events: list[Event]):
    query = SearchQuery(namespace="ns", order=Order.DESC, limit=1)

    assert [event.key for event in query.apply(events)] == ["job2"]


def test_apply_random_returns_each_match_once(events: list[Event]):
    query = SearchQuery(namespace="ns", order=Order.RAND)

    result = query.apply(events, rng=random.Random(7))

    assert sorted(event.key for event in result) == ["job1", "job2"]


def test_apply_random_is_reproducible_with_seeded_rng(events: list[Event], now: datetime):
    query = SearchQuery(
        namespace="ns", order=Order.RAND, scheduled_at_max=now + timedelta(days=2)
    )

    first = query.apply(events, rng=random.Random(42))
    second = query.apply(events, rng=random.Random(42))

    assert first == second


def test_search_scenario_predecessor_and_successor(past: datetime):
    predecessor, successor = Event.create("job1", "ns", past).next(past + timedelta(seconds=10))
    snapshot = [predecessor, successor]

    scheduled = SearchQuery(namespace="ns", state=[State.SCHEDULED]).apply(snapshot)
    settled = SearchQuery(namespace="ns", state=[State.DISABLED, State.COMPLETED]).apply(snapshot)

    assert scheduled == [successor]
    assert settled == [predecessor]
