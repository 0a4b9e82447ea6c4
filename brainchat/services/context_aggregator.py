"""
Context aggregation for brain chat turns.

resolve scope -> source metadata -> similarity retrieval -> AggregatedContext
"""

from brainchat.config import ChatConfig
from brainchat.core.document_store.base import DocumentStore
from brainchat.core.retrieval import Retriever
from brainchat.models.capture import CAPTURES
from brainchat.models.context import (
    AggregatedContext,
    ContextItemType,
    ContextQuery,
    ContextType,
    RetrievedChunk,
    SourceDescriptor,
)
from brainchat.services.scope_resolver import ScopeResolver
from brainchat.utils.exceptions import AggregationError, StoreError
from brainchat.utils.logger import get_logger

logger = get_logger(__name__)

BROAD_RELEVANCE = 0.5
EXPLICIT_RELEVANCE = 1.0


class ContextAggregator:
    """
    Builds the context of one brain chat turn.

    Retrieval failures degrade to "no chunks" while keeping the resolved
    sources; scope and metadata failures raise AggregationError.
    """

    def __init__(
        self,
        scope_resolver: ScopeResolver,
        document_store: DocumentStore,
        retriever: Retriever,
        config: ChatConfig | None = None,
    ):
        """
        Initialize context aggregator.

        Args:
            scope_resolver: Resolves selection policies to capture IDs
            document_store: Source of capture metadata
            retriever: Similarity search over capture chunks
            config: Chat configuration (retrieval limit)
        """
        self.scope_resolver = scope_resolver
        self.store = document_store
        self.retriever = retriever
        self.config = config or ChatConfig()

    async def aggregate(self, query: ContextQuery) -> AggregatedContext:
        """
        Aggregate context for a question.

        Args:
            query: User, selection policy, items, question and filters

        Returns:
            Sources in scope plus retrieved chunks

        Raises:
            AggregationError: If the scope or its metadata cannot be loaded
        """
        scope_ids = await self.scope_resolver.resolve(
            query.user_id, query.context_type, query.context_items, query.filters
        )
        if not scope_ids:
            logger.bind(user_id=query.user_id, context_type=query.context_type.value).debug(
                "Empty scope, skipping retrieval"
            )
            return AggregatedContext.empty()

        sources = await self._build_sources(query, scope_ids)

        limit = self.config.default_retrieval_limit
        if query.filters is not None and query.filters.limit:
            limit = query.filters.limit

        chunks: list[RetrievedChunk] = []
        try:
            hits = await self.retriever.search(
                query=query.query,
                user_id=query.user_id,
                scope_ids=scope_ids,
                limit=limit,
            )
            chunks = [
                RetrievedChunk(
                    text=hit.text,
                    source_id=hit.document_id,
                    source_type=ContextItemType.CAPTURE,
                    similarity=hit.score,
                )
                for hit in hits
            ]
        except Exception as e:
            logger.bind(
                user_id=query.user_id,
                operation="retrieve_chunks",
                scope_size=len(scope_ids),
                error=str(e),
            ).warning(f"Retrieval failed, continuing without chunks: {e}")

        logger.bind(user_id=query.user_id, context_type=query.context_type.value).info(
            f"Aggregated {len(sources)} sources and {len(chunks)} chunks"
        )

        return AggregatedContext(
            sources=sources,
            retrieved_chunks=chunks,
            total_sources=len(scope_ids),
        )

    async def _build_sources(
        self, query: ContextQuery, scope_ids: list[str]
    ) -> list[SourceDescriptor]:
        """One batched metadata lookup for every capture in scope."""
        try:
            docs = await self.store.find(
                CAPTURES,
                {"id": {"$in": scope_ids}, "owner": query.user_id},
                projection=["title", "url", "format"],
            )
        except StoreError as e:
            logger.bind(
                user_id=query.user_id,
                context_type=query.context_type.value,
                operation="load_sources",
                error=str(e),
            ).error(f"Source metadata lookup failed: {e}")
            raise AggregationError(
                f"Failed to load source metadata: {e}",
                context={"user_id": query.user_id},
            ) from e

        relevance = (
            BROAD_RELEVANCE if query.context_type == ContextType.ALL else EXPLICIT_RELEVANCE
        )
        by_id = {doc["id"]: doc for doc in docs}

        return [
            SourceDescriptor(
                id=capture_id,
                type=ContextItemType.CAPTURE,
                title=by_id[capture_id].get("title") or by_id[capture_id].get("url") or "Untitled",
                relevance_score=relevance,
            )
            for capture_id in scope_ids
            if capture_id in by_id
        ]
