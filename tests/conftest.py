"""
Shared test fixtures.

Storage uses a real SQLiteDocumentStore on an in-memory database; LLM,
embedder and vector store are replaced by the fakes in fakes.py.
"""

from collections.abc import AsyncGenerator

import pytest
from fakes import FakeLLM

from brainchat.config import ChatConfig, Config, TokenizerConfig
from brainchat.core.document_store import SQLiteDocumentStore


@pytest.fixture
def chat_config() -> ChatConfig:
    return ChatConfig()


@pytest.fixture
def test_config() -> Config:
    """Configuration that needs no network access."""
    return Config(tokenizer=TokenizerConfig(provider="approximate", chunk_size=50, chunk_overlap=10))


@pytest.fixture
async def document_store() -> AsyncGenerator[SQLiteDocumentStore, None]:
    store = SQLiteDocumentStore(":memory:")
    await store.initialize()
    yield store
    await store.close()


@pytest.fixture
def fake_llm() -> FakeLLM:
    return FakeLLM()
