"""
Tests for ContextAggregator.
"""

from unittest.mock import AsyncMock

import pytest
from fakes import FakeRetriever, make_capture, seed_captures

from brainchat.config import ChatConfig
from brainchat.core.vector_store.base import SearchHit
from brainchat.models.context import (
    ContextFilters,
    ContextItem,
    ContextItemType,
    ContextQuery,
    ContextType,
)
from brainchat.services.context_aggregator import ContextAggregator
from brainchat.services.scope_resolver import ScopeResolver
from brainchat.utils.exceptions import AggregationError, DocumentStoreError, EmbeddingError


def make_query(context_type=ContextType.ALL, items=None, filters=None) -> ContextQuery:
    return ContextQuery(
        user_id="user-1",
        context_type=context_type,
        context_items=items or [],
        query="what did I read about rust?",
        filters=filters,
    )


@pytest.fixture
async def seeded_store(document_store):
    await seed_captures(
        document_store,
        make_capture("A", title="Rust ownership"),
        make_capture("B", title="", url="https://example.com/b"),
        make_capture("C", title=""),
    )
    return document_store


def make_aggregator(store, retriever, config=None) -> ContextAggregator:
    config = config or ChatConfig()
    return ContextAggregator(ScopeResolver(store, config), store, retriever, config)


@pytest.mark.unit
@pytest.mark.asyncio
class TestContextAggregator:
    """Test aggregation of sources and chunks."""

    async def test_empty_scope_skips_retrieval(self, document_store):
        retriever = FakeRetriever()
        aggregator = make_aggregator(document_store, retriever)

        context = await aggregator.aggregate(make_query())

        assert context.sources == []
        assert context.retrieved_chunks == []
        assert context.total_sources == 0
        assert retriever.calls == []

    async def test_sources_and_chunks(self, seeded_store):
        hits = [
            SearchHit(text="Borrowing rules", document_id="A", score=0.92),
            SearchHit(text="Lifetimes", document_id="B", score=0.81),
        ]
        retriever = FakeRetriever(hits=hits)
        aggregator = make_aggregator(seeded_store, retriever)

        context = await aggregator.aggregate(make_query())

        assert context.total_sources == 3
        assert {source.id for source in context.sources} == {"A", "B", "C"}
        assert [chunk.text for chunk in context.retrieved_chunks] == ["Borrowing rules", "Lifetimes"]
        assert context.retrieved_chunks[0].source_id == "A"
        assert context.retrieved_chunks[0].similarity == 0.92
        assert retriever.calls[0]["user_id"] == "user-1"
        assert set(retriever.calls[0]["scope_ids"]) == {"A", "B", "C"}

    async def test_source_titles_fall_back_to_url(self, seeded_store):
        aggregator = make_aggregator(seeded_store, FakeRetriever())

        context = await aggregator.aggregate(make_query())
        titles = {source.id: source.title for source in context.sources}

        assert titles == {"A": "Rust ownership", "B": "https://example.com/b", "C": "Untitled"}

    async def test_broad_policy_relevance(self, seeded_store):
        aggregator = make_aggregator(seeded_store, FakeRetriever())

        context = await aggregator.aggregate(make_query())

        assert all(source.relevance_score == 0.5 for source in context.sources)

    async def test_explicit_policy_relevance(self, seeded_store):
        aggregator = make_aggregator(seeded_store, FakeRetriever())
        items = [ContextItem(type=ContextItemType.CAPTURE, id="A")]

        context = await aggregator.aggregate(make_query(ContextType.SPECIFIC, items))

        assert [source.id for source in context.sources] == ["A"]
        assert context.sources[0].relevance_score == 1.0

    async def test_retrieval_failure_keeps_sources(self, seeded_store):
        retriever = FakeRetriever(error=EmbeddingError("embedding service down"))
        aggregator = make_aggregator(seeded_store, retriever)

        context = await aggregator.aggregate(make_query())

        assert len(context.sources) == 3
        assert context.retrieved_chunks == []
        assert context.total_sources == 3

    async def test_retrieval_failure_with_braces_in_message(self, seeded_store):
        retriever = FakeRetriever(
            error=RuntimeError("Unexpected Response: 500 {'status': {'error': 'boom'}}")
        )
        aggregator = make_aggregator(seeded_store, retriever)

        context = await aggregator.aggregate(make_query())

        assert len(context.sources) == 3
        assert context.retrieved_chunks == []

    async def test_default_retrieval_limit(self, seeded_store):
        retriever = FakeRetriever()
        aggregator = make_aggregator(
            seeded_store, retriever, ChatConfig(default_retrieval_limit=7)
        )

        await aggregator.aggregate(make_query())

        assert retriever.calls[0]["limit"] == 7

    async def test_filter_limit_overrides_default(self, seeded_store):
        hits = [SearchHit(text=f"chunk {i}", document_id="A", score=0.5) for i in range(5)]
        retriever = FakeRetriever(hits=hits)
        aggregator = make_aggregator(seeded_store, retriever)

        context = await aggregator.aggregate(make_query(filters=ContextFilters(limit=2)))

        assert retriever.calls[0]["limit"] == 2
        assert len(context.retrieved_chunks) == 2

    async def test_metadata_failure_raises(self):
        resolver = AsyncMock()
        resolver.resolve.return_value = ["A"]
        store = AsyncMock()
        store.find.side_effect = DocumentStoreError("connection lost")
        aggregator = ContextAggregator(resolver, store, FakeRetriever())

        with pytest.raises(AggregationError, match="Failed to load source metadata"):
            await aggregator.aggregate(make_query())

    async def test_scope_failure_propagates(self):
        resolver = AsyncMock()
        resolver.resolve.side_effect = AggregationError("scope failed")
        retriever = FakeRetriever()
        aggregator = ContextAggregator(resolver, AsyncMock(), retriever)

        with pytest.raises(AggregationError, match="scope failed"):
            await aggregator.aggregate(make_query())
        assert retriever.calls == []
