"""
Base interface for document storage.

Document-style CRUD over named collections of JSON documents. Filters are
plain dictionaries; a value is either matched for equality or is an operator
dictionary using `$in`, `$gte` or `$lte`:

    {"owner": "user-1", "status": "active", "created_at": {"$gte": start}}
"""

from abc import ABC, abstractmethod
from typing import Any

Document = dict[str, Any]
Filter = dict[str, Any]

ASCENDING = 1
DESCENDING = -1


class DocumentStore(ABC):
    """Abstract base class for document storage implementations."""

    @abstractmethod
    async def initialize(self) -> None:
        """
        Initialize the document store (create tables/indices).

        Raises:
            DocumentStoreError: If initialization fails
        """
        pass

    @abstractmethod
    async def insert(self, collection: str, document: Document) -> str:
        """
        Insert a new document.

        Args:
            collection: Logical collection name
            document: Document with an "id" key

        Returns:
            The document ID

        Raises:
            ValidationError: If the document has no id
            DocumentStoreError: If the insert fails (including duplicate ids)
        """
        pass

    @abstractmethod
    async def find(
        self,
        collection: str,
        filter: Filter | None = None,
        projection: list[str] | None = None,
        sort: list[tuple[str, int]] | None = None,
        limit: int | None = None,
    ) -> list[Document]:
        """
        Find documents matching a filter.

        Args:
            collection: Logical collection name
            filter: Filter conditions
            projection: Optional field names to return ("id" is always included)
            sort: Optional list of (field, ASCENDING | DESCENDING)
            limit: Maximum results

        Returns:
            Matching documents
        """
        pass

    @abstractmethod
    async def find_one(
        self,
        collection: str,
        filter: Filter,
        projection: list[str] | None = None,
    ) -> Document | None:
        """Find the first document matching a filter, or None."""
        pass

    @abstractmethod
    async def replace_one(self, collection: str, filter: Filter, document: Document) -> bool:
        """
        Replace the first document matching a filter.

        Returns:
            True if a document was replaced
        """
        pass

    @abstractmethod
    async def delete_one(self, collection: str, filter: Filter) -> bool:
        """
        Delete the first document matching a filter.

        Returns:
            True if a document was deleted
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close the connection to the document store."""
        pass
