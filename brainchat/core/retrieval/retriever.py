"""
Similarity retrieval over capture chunks.

Combines an Embedder and a VectorStore into the single ranking function the
context aggregator consumes, and keeps capture chunks indexed.
"""

from brainchat.core.embeddings.base import Embedder
from brainchat.core.tokenizer import Tokenizer
from brainchat.core.vector_store.base import ChunkRecord, SearchHit, VectorStore
from brainchat.models.capture import Capture
from brainchat.utils.id_generator import generate_chunk_id
from brainchat.utils.logger import get_logger

logger = get_logger(__name__)


class Retriever:
    """Embeds queries and captures and delegates ranking to the vector store."""

    def __init__(
        self,
        embedder: Embedder,
        vector_store: VectorStore,
        tokenizer: Tokenizer | None = None,
    ):
        self.embedder = embedder
        self.vector_store = vector_store
        self.tokenizer = tokenizer or Tokenizer()

    async def search(
        self,
        query: str,
        user_id: str,
        scope_ids: list[str],
        limit: int = 20,
    ) -> list[SearchHit]:
        """
        Rank chunks of the captures in `scope_ids` against a free-text query.

        An empty scope returns no results without embedding the query.

        Raises:
            EmbeddingError: If the query cannot be embedded
            VectorStoreError: If the search fails
        """
        if not scope_ids:
            return []

        vector = await self.embedder.embed(query)
        return await self.vector_store.search_chunks(
            vector=vector,
            user_id=user_id,
            document_ids=scope_ids,
            limit=limit,
        )

    async def index_capture(self, capture: Capture) -> int:
        """
        (Re)index a capture's content as embedded chunks.

        Returns:
            Number of chunks stored
        """
        texts = self.tokenizer.chunk_text(capture.content)

        await self.vector_store.delete_document(capture.id, capture.owner)
        if not texts:
            return 0

        embeddings = await self.embedder.batch_embed(texts)
        chunks = [
            ChunkRecord(
                id=generate_chunk_id(capture.id, index),
                document_id=capture.id,
                user_id=capture.owner,
                text=text,
                chunk_index=index,
                embedding=embedding,
            )
            for index, (text, embedding) in enumerate(zip(texts, embeddings, strict=True))
        ]
        await self.vector_store.upsert_chunks(chunks)

        logger.bind(capture_id=capture.id, user_id=capture.owner, chunks=len(chunks)).info(
            f"Indexed capture {capture.id} ({len(chunks)} chunks)"
        )
        return len(chunks)
