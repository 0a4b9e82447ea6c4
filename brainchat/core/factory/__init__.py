"""
Factory modules for creating Brain Chat components.

Provides modular factories for LLM, Embedder, Vector Store and Document Store.
"""

from brainchat.core.factory.document_factory import DocumentStoreFactory
from brainchat.core.factory.embedder_factory import EmbedderFactory
from brainchat.core.factory.llm_factory import LLMFactory
from brainchat.core.factory.vector_factory import VectorStoreFactory

__all__ = [
    "LLMFactory",
    "EmbedderFactory",
    "DocumentStoreFactory",
    "VectorStoreFactory",
]
