"""MongoDB collection wrapper with index management and query helpers.

This module provides an IndexedCollection class that wraps a MongoDB
AsyncCollection with automatic index management and helper methods for
the query patterns the event store needs. Every helper takes an optional
session so it can take part in a transaction.
"""

from enum import IntEnum
from typing import Any

from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.asynchronous.client_session import AsyncClientSession
from pymongo.asynchronous.collection import AsyncCollection


class IndexDirection(IntEnum):
    """Sort direction for MongoDB index fields."""

    ASC = ASCENDING
    """Ascending order (1)."""

    DESC = DESCENDING
    """Descending order (-1)."""


class IndexSpec(BaseModel):
    """Specification for a MongoDB index.

    Example:
        >>> # Simple named index
        >>> IndexSpec(keys=[("namespace", IndexDirection.ASC)], name="namespace_idx")
        >>>
        >>> # Unique only among documents matching a filter
        >>> IndexSpec(
        ...     keys=[
        ...         ("namespace", IndexDirection.ASC),
        ...         ("key", IndexDirection.ASC),
        ...     ],
        ...     name="single_scheduled_idx",
        ...     unique=True,
        ...     partial_filter={"state": "SCHEDULED"},
        ... )
    """

    keys: list[tuple[str, IndexDirection]]
    """(field_name, direction) tuples."""

    name: str
    """Index name, reported back in duplicate key errors."""

    unique: bool = False
    """If True, enforce uniqueness."""

    partial_filter: dict[str, Any] | None = None
    """If set, only documents matching this filter are indexed."""

    async def apply(self, collection: AsyncCollection[dict[str, Any]]) -> None:
        """Apply this index specification to a collection.

        Creating an index that already exists with the same options is a
        no-op on the server.

        Args:
            collection: The MongoDB collection to create the index on.
        """
        kwargs: dict[str, Any] = {"name": self.name}
        if self.unique:
            kwargs["unique"] = True
        if self.partial_filter is not None:
            kwargs["partialFilterExpression"] = self.partial_filter

        await collection.create_index(
            [(field, int(direction)) for field, direction in self.keys], **kwargs
        )


class IndexedCollection:
    """A MongoDB collection wrapper with automatic index management.

    IndexedCollection wraps an AsyncCollection and handles:
    - Lazy index creation (indexes created on first use)
    - Find, insert and conditional update operations
    - Optional session pass-through for transactional use

    The event store handles document conversion and error translation;
    IndexedCollection only talks to MongoDB.

    Example:
        >>> collection = IndexedCollection(
        ...     config.events,
        ...     indexes=[
        ...         IndexSpec(keys=[("namespace", IndexDirection.ASC)], name="ns_idx"),
        ...     ],
        ... )
        >>>
        >>> # Indexes are created on first operation
        >>> await collection.insert_one(doc)
        >>> docs = await collection.find({"namespace": "billing"}, limit=10)
    """

    def __init__(
        self,
        collection: AsyncCollection[dict[str, Any]],
        indexes: list[IndexSpec] | None = None,
    ) -> None:
        """Initialize the indexed collection.

        Args:
            collection: The underlying MongoDB AsyncCollection.
            indexes: List of index specifications to create.
        """
        self._collection = collection
        self._indexes = indexes or []
        self._indexes_created = False

    async def ensure_indexes(self) -> None:
        """Create indexes if not already created.

        Called automatically by other methods, but can be called
        explicitly for eager initialization. Must not run inside a
        transaction.
        """
        if self._indexes_created:
            return

        for spec in self._indexes:
            await spec.apply(self._collection)

        self._indexes_created = True

    # ========== Find Operations ==========

    async def find_one(
        self,
        filter: dict[str, Any],
        session: AsyncClientSession | None = None,
    ) -> dict[str, Any] | None:
        """Find a single document matching the filter.

        Args:
            filter: MongoDB query filter.
            session: Optional session the read belongs to.

        Returns:
            The matching document or None.
        """
        await self.ensure_indexes()
        result: dict[str, Any] | None = await self._collection.find_one(
            filter, session=session
        )
        return result

    async def find(
        self,
        filter: dict[str, Any],
        sort: list[tuple[str, int]] | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """Find documents matching the filter.

        Args:
            filter: MongoDB query filter.
            sort: Optional list of (field, direction) tuples.
            limit: Optional maximum number of documents to return.

        Returns:
            Matching documents in cursor order.
        """
        await self.ensure_indexes()

        cursor = self._collection.find(filter)

        if sort:
            cursor = cursor.sort(sort)
        if limit:
            cursor = cursor.limit(limit)

        return [doc async for doc in cursor]

    async def sample(self, filter: dict[str, Any], size: int) -> list[dict[str, Any]]:
        """Draw up to ``size`` distinct matching documents in random order.

        Args:
            filter: MongoDB query filter.
            size: Maximum number of documents to return.
        """
        await self.ensure_indexes()

        pipeline: list[dict[str, Any]] = [
            {"$match": filter},
            {"$sample": {"size": size}},
        ]
        cursor = await self._collection.aggregate(pipeline)
        return [doc async for doc in cursor]

    # ========== Write Operations ==========

    async def insert_one(
        self,
        document: dict[str, Any],
        session: AsyncClientSession | None = None,
    ) -> None:
        """Insert a single document.

        Args:
            document: The document to insert.
            session: Optional session the write belongs to.
        """
        await self.ensure_indexes()
        await self._collection.insert_one(document, session=session)

    async def update_one(
        self,
        filter: dict[str, Any],
        update: dict[str, Any],
        session: AsyncClientSession | None = None,
    ) -> int:
        """Update a single document.

        Args:
            filter: MongoDB query filter.
            update: Update operations (e.g., {"$set": {...}}).
            session: Optional session the write belongs to.

        Returns:
            Number of documents modified.
        """
        await self.ensure_indexes()
        result = await self._collection.update_one(filter, update, session=session)
        return result.modified_count

    async def find_one_and_update(
        self,
        filter: dict[str, Any],
        update: dict[str, Any],
    ) -> dict[str, Any] | None:
        """Atomically update a single document and return it.

        Args:
            filter: MongoDB query filter.
            update: Update operations (e.g., {"$set": {...}}).

        Returns:
            The document after the update, or None if nothing matched.
        """
        await self.ensure_indexes()
        result: dict[str, Any] | None = await self._collection.find_one_and_update(
            filter, update, return_document=ReturnDocument.AFTER
        )
        return result
