"""
Tests for factory classes.

Tests the creation of components using factories.
"""

from unittest.mock import AsyncMock

import pytest

from brainchat.config import EmbedderConfig, LLMConfig, QdrantConfig, StorageConfig
from brainchat.core.document_store import SQLiteDocumentStore
from brainchat.core.embeddings.ollama import OllamaEmbedder
from brainchat.core.embeddings.openai import OpenAIEmbedder
from brainchat.core.factory import (
    DocumentStoreFactory,
    EmbedderFactory,
    LLMFactory,
    VectorStoreFactory,
)
from brainchat.core.llm.base import LLMProvider
from brainchat.core.llm.ollama import OllamaLLM
from brainchat.core.llm.openai import OpenAILLM
from brainchat.core.vector_store.qdrant import QdrantStore
from brainchat.utils.exceptions import ConfigurationError


@pytest.mark.unit
class TestLLMFactory:
    """Test LLM factory."""

    def test_create_ollama_llm(self):
        config = LLMConfig(provider="ollama", model="llama3.1:8b", base_url="http://ollama:11434")

        llm = LLMFactory.create(config)

        assert isinstance(llm, OllamaLLM)
        assert isinstance(llm, LLMProvider)
        assert llm.model == "llama3.1:8b"
        assert llm.host == "http://ollama:11434"

    def test_ollama_default_host(self):
        llm = LLMFactory.create(LLMConfig(provider="ollama", model="mistral"))
        assert llm.host == "http://localhost:11434"

    def test_create_openai_llm(self):
        config = LLMConfig(provider="openai", model="gpt-4o-mini", api_key="sk-test")

        llm = LLMFactory.create(config)

        assert isinstance(llm, OpenAILLM)
        assert llm.model == "gpt-4o-mini"

    def test_openai_requires_api_key(self):
        with pytest.raises(ConfigurationError, match="API key"):
            LLMFactory.create(LLMConfig(provider="openai"))

    def test_unsupported_provider(self):
        with pytest.raises(ConfigurationError, match="Unsupported LLM provider"):
            LLMFactory.create(LLMConfig(provider="anthropic-local"))


@pytest.mark.unit
class TestEmbedderFactory:
    """Test embedder factory."""

    def test_create_ollama_embedder(self):
        embedder = EmbedderFactory.create(EmbedderConfig(provider="ollama"))

        assert isinstance(embedder, OllamaEmbedder)
        assert embedder.model == "nomic-embed-text"

    def test_create_openai_embedder(self):
        config = EmbedderConfig(
            provider="openai", model="text-embedding-3-small", api_key="sk-test"
        )

        embedder = EmbedderFactory.create(config)

        assert isinstance(embedder, OpenAIEmbedder)

    def test_openai_requires_api_key(self):
        with pytest.raises(ConfigurationError):
            EmbedderFactory.create(EmbedderConfig(provider="openai"))

    def test_unsupported_provider(self):
        with pytest.raises(ConfigurationError, match="Unsupported embedder provider"):
            EmbedderFactory.create(EmbedderConfig(provider="word2vec"))


@pytest.mark.unit
@pytest.mark.asyncio
class TestEmbedderDimension:
    """Test dimension resolution."""

    async def test_configured_dimension_wins(self):
        embedder = AsyncMock()

        dimension = await EmbedderFactory.get_dimension(embedder, EmbedderConfig(dimension=384))

        assert dimension == 384
        embedder.get_dimension.assert_not_awaited()

    async def test_discovers_dimension(self):
        embedder = AsyncMock()
        embedder.get_dimension.return_value = 768

        assert await EmbedderFactory.get_dimension(embedder, EmbedderConfig()) == 768


@pytest.mark.unit
class TestVectorStoreFactory:
    """Test vector store factory."""

    def test_create_qdrant_store(self):
        config = QdrantConfig(url="http://qdrant:6400", collection_name="chunks", hnsw_m=32)

        store = VectorStoreFactory.create(config, vector_size=768)

        assert isinstance(store, QdrantStore)
        assert store.host == "qdrant"
        assert store.port == 6400
        assert store.collection_name == "chunks"
        assert store.vector_size == 768
        assert store.hnsw_m == 32

    def test_default_port(self):
        store = VectorStoreFactory.create(QdrantConfig(url="http://qdrant"), vector_size=3)
        assert store.port == 6333


@pytest.mark.unit
class TestDocumentStoreFactory:
    """Test document store factory."""

    def test_create_sqlite_store(self, tmp_path):
        db_path = str(tmp_path / "brain.db")

        store = DocumentStoreFactory.create(StorageConfig(db_path=db_path))

        assert isinstance(store, SQLiteDocumentStore)
        assert store.db_path == db_path

    def test_unsupported_backend(self):
        with pytest.raises(ConfigurationError, match="Unsupported storage backend"):
            DocumentStoreFactory.create(StorageConfig(backend="mongodb"))
