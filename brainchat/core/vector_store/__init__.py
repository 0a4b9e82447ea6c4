"""Vector store implementations for capture chunks."""

from brainchat.core.vector_store.base import ChunkRecord, SearchHit, VectorStore
from brainchat.core.vector_store.qdrant import QdrantStore

__all__ = ["ChunkRecord", "SearchHit", "VectorStore", "QdrantStore"]
