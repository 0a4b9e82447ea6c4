"""
Embedding providers for capture chunks and chat queries.

Supported providers:
- Ollama (native SDK)
- OpenAI (official SDK)
"""

from brainchat.core.embeddings.base import Embedder
from brainchat.core.embeddings.ollama import OllamaEmbedder
from brainchat.core.embeddings.openai import OpenAIEmbedder

__all__ = [
    "Embedder",
    "OllamaEmbedder",
    "OpenAIEmbedder",
]
