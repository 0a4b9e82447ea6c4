"""
Tests for QdrantStore.

The Qdrant client is replaced with an AsyncMock; filters and payloads sent
to it are asserted directly.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest

from brainchat.core.vector_store.base import ChunkRecord
from brainchat.core.vector_store.qdrant import QdrantStore
from brainchat.utils.exceptions import ValidationError, VectorStoreError


def make_chunk(index: int, document_id: str = "cap-1", user_id: str = "user-1") -> ChunkRecord:
    return ChunkRecord(
        id=f"{document_id}_chunk_{index}",
        document_id=document_id,
        user_id=user_id,
        text=f"chunk {index}",
        chunk_index=index,
        embedding=[0.1, 0.2, 0.3],
    )


@pytest.fixture
def mock_client():
    with patch("brainchat.core.vector_store.qdrant.AsyncQdrantClient") as client_cls:
        client = AsyncMock()
        client_cls.return_value = client
        yield client


@pytest.fixture
def store(mock_client):
    return QdrantStore(collection_name="test_chunks", vector_size=3, batch_size=2)


@pytest.mark.unit
@pytest.mark.asyncio
class TestInitialize:
    """Test collection setup."""

    async def test_creates_collection_and_indices(self, store, mock_client):
        mock_client.collection_exists.return_value = False

        await store.initialize()

        mock_client.create_collection.assert_awaited_once()
        vectors_config = mock_client.create_collection.call_args.kwargs["vectors_config"]
        assert vectors_config.size == 3
        indexed = [
            call.kwargs["field_name"] for call in mock_client.create_payload_index.call_args_list
        ]
        assert indexed == ["user_id", "document_id"]

    async def test_existing_collection_is_kept(self, store, mock_client):
        mock_client.collection_exists.return_value = True

        await store.initialize()

        mock_client.create_collection.assert_not_awaited()

    async def test_failure_wrapped(self, store, mock_client):
        mock_client.collection_exists.side_effect = RuntimeError("unreachable")

        with pytest.raises(VectorStoreError, match="Failed to initialize"):
            await store.initialize()


@pytest.mark.unit
@pytest.mark.asyncio
class TestUpsert:
    """Test chunk upserts."""

    async def test_batches(self, store, mock_client):
        await store.upsert_chunks([make_chunk(i) for i in range(5)])

        assert mock_client.upsert.await_count == 3
        first_batch = mock_client.upsert.call_args_list[0].kwargs["points"]
        assert first_batch[0].payload["chunk_id"] == "cap-1_chunk_0"
        assert first_batch[0].payload["user_id"] == "user-1"

    async def test_point_ids_are_deterministic_uuids(self, store):
        assert store._to_uuid("cap-1_chunk_0") == store._to_uuid("cap-1_chunk_0")
        uuid_value = "6f1c3f6e-3c2a-4c61-9e55-7d3b0f1d2a10"
        assert store._to_uuid(uuid_value) == uuid_value

    async def test_empty_is_noop(self, store, mock_client):
        await store.upsert_chunks([])
        mock_client.upsert.assert_not_awaited()

    async def test_requires_embedding(self, store):
        chunk = make_chunk(0)
        chunk.embedding = []

        with pytest.raises(ValidationError):
            await store.upsert_chunks([chunk])

    async def test_failure_wrapped(self, store, mock_client):
        mock_client.upsert.side_effect = RuntimeError("disk full")

        with pytest.raises(VectorStoreError):
            await store.upsert_chunks([make_chunk(0)])


@pytest.mark.unit
@pytest.mark.asyncio
class TestSearch:
    """Test scoped similarity search."""

    async def test_filters_by_user_and_documents(self, store, mock_client):
        point = SimpleNamespace(
            score=0.87,
            payload={"text": "ownership", "document_id": "cap-1", "chunk_id": "cap-1_chunk_0"},
        )
        mock_client.query_points.return_value = SimpleNamespace(points=[point])

        hits = await store.search_chunks([0.1, 0.2, 0.3], "user-1", ["cap-1", "cap-2"], limit=5)

        assert len(hits) == 1
        assert hits[0].document_id == "cap-1"
        assert hits[0].score == 0.87
        kwargs = mock_client.query_points.call_args.kwargs
        assert kwargs["limit"] == 5
        conditions = {c.key: c.match for c in kwargs["query_filter"].must}
        assert conditions["user_id"].value == "user-1"
        assert conditions["document_id"].any == ["cap-1", "cap-2"]

    async def test_empty_scope_skips_query(self, store, mock_client):
        assert await store.search_chunks([0.1], "user-1", []) == []
        mock_client.query_points.assert_not_awaited()

    async def test_failure_wrapped(self, store, mock_client):
        mock_client.query_points.side_effect = RuntimeError("timeout")

        with pytest.raises(VectorStoreError, match="search failed"):
            await store.search_chunks([0.1], "user-1", ["cap-1"])


@pytest.mark.unit
@pytest.mark.asyncio
class TestDeleteAndClose:
    """Test deletes and shutdown."""

    async def test_delete_document_scoped_to_user(self, store, mock_client):
        await store.delete_document("cap-1", "user-1")

        selector = mock_client.delete.call_args.kwargs["points_selector"]
        conditions = {c.key: c.match.value for c in selector.filter.must}
        assert conditions == {"user_id": "user-1", "document_id": "cap-1"}

    async def test_close(self, store, mock_client):
        await store.connect()
        await store.close()

        mock_client.close.assert_awaited_once()
        assert store.client is None
