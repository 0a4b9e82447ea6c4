"""
Qdrant vector store implementation for capture chunks.
"""

from typing import Any
from uuid import NAMESPACE_DNS, UUID, uuid5

from qdrant_client import AsyncQdrantClient
from qdrant_client.models import (
    Distance,
    FieldCondition,
    Filter,
    FilterSelector,
    HnswConfigDiff,
    MatchAny,
    MatchValue,
    PointStruct,
    VectorParams,
)

from brainchat.core.vector_store.base import ChunkRecord, SearchHit, VectorStore
from brainchat.utils.exceptions import ValidationError, VectorStoreError
from brainchat.utils.logger import get_logger

logger = get_logger(__name__)


class QdrantStore(VectorStore):
    """
    Qdrant vector store for capture chunk embeddings.

    Features:
    - HNSW indexing for fast search
    - Keyword payload indices on user_id and document_id
    - Batched upserts
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 6333,
        collection_name: str = "capture_chunks",
        vector_size: int = 768,
        use_grpc: bool = False,
        hnsw_m: int = 16,
        hnsw_ef_construct: int = 100,
        on_disk: bool = False,
        batch_size: int = 100,
        timeout: int = 30,
    ):
        """
        Initialize Qdrant store.

        Args:
            host: Qdrant host
            port: Qdrant port (6333 for HTTP, 6334 for gRPC)
            collection_name: Collection name
            vector_size: Embedding dimension
            use_grpc: Use gRPC connection
            hnsw_m: HNSW M parameter (connections per node)
            hnsw_ef_construct: HNSW ef_construct parameter
            on_disk: Store vectors on disk
            batch_size: Points per upsert request
            timeout: Request timeout in seconds
        """
        self.host = host
        self.port = port
        self.collection_name = collection_name
        self.vector_size = vector_size
        self.use_grpc = use_grpc
        self.hnsw_m = hnsw_m
        self.hnsw_ef_construct = hnsw_ef_construct
        self.on_disk = on_disk
        self.batch_size = batch_size
        self.timeout = timeout
        self.client: AsyncQdrantClient | None = None

    def _to_uuid(self, id_str: str) -> str:
        """Qdrant point ids must be UUIDs; derive one deterministically."""
        try:
            UUID(id_str)
            return id_str
        except ValueError:
            return str(uuid5(NAMESPACE_DNS, id_str))

    async def connect(self) -> None:
        """
        Establish connection to Qdrant.

        Raises:
            VectorStoreError: If connection fails
        """
        if self.client is None:
            try:
                self.client = AsyncQdrantClient(
                    host=self.host,
                    port=self.port,
                    prefer_grpc=self.use_grpc,
                    timeout=self.timeout,
                )
            except Exception as e:
                logger.bind(host=self.host, port=self.port, error=str(e)).error(
                    f"Failed to connect to Qdrant: {e}"
                )
                raise VectorStoreError(f"Failed to connect to Qdrant: {e}") from e

    async def initialize(self) -> None:
        """Create the collection and payload indices if missing."""
        try:
            await self.connect()

            if await self.client.collection_exists(self.collection_name):
                return

            await self.client.create_collection(
                collection_name=self.collection_name,
                vectors_config=VectorParams(
                    size=self.vector_size,
                    distance=Distance.COSINE,
                    hnsw_config=HnswConfigDiff(
                        m=self.hnsw_m,
                        ef_construct=self.hnsw_ef_construct,
                    ),
                    on_disk=self.on_disk,
                ),
            )

            for field_name in ("user_id", "document_id"):
                await self.client.create_payload_index(
                    collection_name=self.collection_name,
                    field_name=field_name,
                    field_schema="keyword",
                )
        except VectorStoreError:
            raise
        except Exception as e:
            logger.bind(collection=self.collection_name, error=str(e)).error(
                f"Failed to initialize Qdrant collection: {e}"
            )
            raise VectorStoreError(f"Failed to initialize Qdrant collection: {e}") from e

    def _chunk_to_payload(self, chunk: ChunkRecord) -> dict[str, Any]:
        return {
            "chunk_id": chunk.id,
            "document_id": chunk.document_id,
            "user_id": chunk.user_id,
            "text": chunk.text,
            "chunk_index": chunk.chunk_index,
            "created_at": chunk.created_at.isoformat(),
        }

    async def upsert_chunks(self, chunks: list[ChunkRecord]) -> None:
        """Upsert chunks in batches of `batch_size`."""
        if not chunks:
            return
        for chunk in chunks:
            if not chunk.embedding:
                raise ValidationError(f"Chunk {chunk.id} has no embedding")

        await self.connect()

        points = [
            PointStruct(
                id=self._to_uuid(chunk.id),
                vector=chunk.embedding,
                payload=self._chunk_to_payload(chunk),
            )
            for chunk in chunks
        ]

        try:
            for i in range(0, len(points), self.batch_size):
                await self.client.upsert(
                    collection_name=self.collection_name,
                    points=points[i : i + self.batch_size],
                )
        except Exception as e:
            logger.bind(collection=self.collection_name, count=len(points), error=str(e)).error(
                f"Failed to upsert chunks: {e}"
            )
            raise VectorStoreError(f"Failed to upsert chunks: {e}") from e

    async def search_chunks(
        self,
        vector: list[float],
        user_id: str,
        document_ids: list[str],
        limit: int = 20,
        score_threshold: float | None = None,
    ) -> list[SearchHit]:
        """Search chunks of `user_id` that belong to `document_ids`."""
        if not document_ids:
            return []

        await self.connect()

        query_filter = Filter(
            must=[
                # User filter - CRITICAL for multi-user isolation
                FieldCondition(key="user_id", match=MatchValue(value=user_id)),
                FieldCondition(key="document_id", match=MatchAny(any=list(document_ids))),
            ]
        )

        try:
            response = await self.client.query_points(
                collection_name=self.collection_name,
                query=vector,
                limit=limit,
                score_threshold=score_threshold,
                query_filter=query_filter,
                with_payload=True,
            )
        except Exception as e:
            logger.bind(collection=self.collection_name, user_id=user_id, error=str(e)).error(
                f"Qdrant search failed: {e}"
            )
            raise VectorStoreError(f"Qdrant search failed: {e}") from e

        return [
            SearchHit(
                text=point.payload.get("text", ""),
                document_id=point.payload["document_id"],
                score=point.score or 0.0,
                chunk_id=point.payload.get("chunk_id"),
            )
            for point in response.points
        ]

    async def delete_document(self, document_id: str, user_id: str) -> None:
        """Delete all chunks of one capture."""
        await self.connect()

        try:
            await self.client.delete(
                collection_name=self.collection_name,
                points_selector=FilterSelector(
                    filter=Filter(
                        must=[
                            FieldCondition(key="user_id", match=MatchValue(value=user_id)),
                            FieldCondition(key="document_id", match=MatchValue(value=document_id)),
                        ]
                    )
                ),
            )
        except Exception as e:
            logger.bind(document_id=document_id, error=str(e)).error(
                f"Failed to delete chunks of {document_id}: {e}"
            )
            raise VectorStoreError(f"Failed to delete chunks: {e}") from e

    async def close(self) -> None:
        """Close the Qdrant client."""
        if self.client is not None:
            await self.client.close()
            self.client = None
