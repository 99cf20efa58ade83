"""Exceptions raised by event stores."""


class EventStoreError(Exception):
    """Base class for every failure an EventStore reports."""

    pass


class StoreConnectionError(EventStoreError):
    """Raised when the backing storage is unreachable or an I/O call fails.

    The failure is not caused by the request, and retrying it is safe.
    """

    pass


class AlreadyScheduledError(EventStoreError):
    """Raised when a write would leave two Scheduled events for one (namespace, key).

    Either pick another key or treat the existing Scheduled event as
    authoritative. Retrying the same request will keep failing until the
    current event is settled.
    """

    pass


class IllegalStateError(EventStoreError):
    """Raised when a caller asks to settle an event into the Scheduled state."""

    pass


class NoResultError(EventStoreError):
    """Raised when a referenced event does not exist."""

    pass


class ConversionError(EventStoreError):
    """Raised when a stored document cannot be decoded into an Event."""

    pass


class UnknownStoreError(EventStoreError):
    """Raised for storage failures that fit no other category."""

    pass
