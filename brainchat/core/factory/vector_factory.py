"""
Factory for creating vector store backends.
"""

from urllib.parse import urlparse

from brainchat.config import QdrantConfig
from brainchat.core.vector_store.base import VectorStore
from brainchat.core.vector_store.qdrant import QdrantStore


class VectorStoreFactory:
    """Factory for creating vector store backends from configuration."""

    @staticmethod
    def create(config: QdrantConfig, vector_size: int) -> VectorStore:
        """
        Create vector store from configuration.

        Args:
            config: Qdrant configuration
            vector_size: Embedding dimension size

        Returns:
            Vector store instance
        """
        parsed = urlparse(config.url)
        host = parsed.hostname or "localhost"
        port = parsed.port or 6333

        return QdrantStore(
            host=host,
            port=port,
            collection_name=config.collection_name,
            vector_size=vector_size,
            use_grpc=config.use_grpc,
            hnsw_m=config.hnsw_m,
            hnsw_ef_construct=config.hnsw_ef_construct,
            on_disk=config.on_disk,
            batch_size=config.batch_size,
            timeout=config.timeout,
        )
