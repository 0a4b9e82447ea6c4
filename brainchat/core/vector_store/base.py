"""
Base interface for vector storage of capture chunks.

Every chunk carries the owning user and the capture it came from so that
searches can be restricted to one user's selected captures.
"""

from abc import ABC, abstractmethod
from datetime import UTC, datetime

from pydantic import BaseModel, Field


class ChunkRecord(BaseModel):
    """Embedded fragment of a capture."""

    id: str = Field(..., description="Chunk ID (<capture_id>_chunk_N)")
    document_id: str = Field(..., description="Capture ID")
    user_id: str = Field(..., description="Owner user ID")
    text: str
    chunk_index: int = 0
    embedding: list[float] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class SearchHit(BaseModel):
    """Similarity search result."""

    text: str
    document_id: str
    score: float
    chunk_id: str | None = None


class VectorStore(ABC):
    """Abstract base class for vector storage implementations."""

    @abstractmethod
    async def initialize(self) -> None:
        """
        Initialize the vector store (create collections/indices).

        Raises:
            VectorStoreError: If initialization fails
        """
        pass

    @abstractmethod
    async def upsert_chunks(self, chunks: list[ChunkRecord]) -> None:
        """
        Store or update embedded chunks.

        Raises:
            ValidationError: If a chunk has no embedding
            VectorStoreError: If upsert operation fails
        """
        pass

    @abstractmethod
    async def search_chunks(
        self,
        vector: list[float],
        user_id: str,
        document_ids: list[str],
        limit: int = 20,
        score_threshold: float | None = None,
    ) -> list[SearchHit]:
        """
        Search a user's chunks restricted to the given captures.

        Args:
            vector: Query embedding vector
            user_id: Owner user ID
            document_ids: Capture IDs the search is restricted to
            limit: Maximum results
            score_threshold: Minimum similarity score

        Returns:
            Hits ordered by decreasing similarity

        Raises:
            VectorStoreError: If the search fails
        """
        pass

    @abstractmethod
    async def delete_document(self, document_id: str, user_id: str) -> None:
        """
        Delete every chunk of a capture.

        Raises:
            VectorStoreError: If deletion fails
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close the connection to the vector store."""
        pass
