"""
Ollama embedder using native ollama-python SDK.
"""

import asyncio

import ollama

from brainchat.core.embeddings.base import Embedder
from brainchat.utils.exceptions import EmbeddingError, ValidationError
from brainchat.utils.logger import get_logger

logger = get_logger(__name__)


class OllamaEmbedder(Embedder):
    """
    Ollama embedder for capture chunks and queries.

    Supports models like nomic-embed-text, mxbai-embed-large, etc.
    """

    def __init__(
        self,
        host: str = "http://localhost:11434",
        model: str = "nomic-embed-text",
        timeout: float = 120.0,
        concurrency: int = 8,
    ):
        self.host = host
        self.model = model
        self.timeout = timeout
        self.concurrency = concurrency
        self._dimension: int | None = None

        self.client = ollama.AsyncClient(host=host, timeout=timeout)

    async def embed(self, text: str, **kwargs) -> list[float]:
        """
        Generate embedding for text using Ollama.

        Raises:
            ValidationError: If text is empty
            EmbeddingError: If Ollama embedding fails
        """
        if not text or not text.strip():
            raise ValidationError("Text cannot be empty")

        try:
            response = await self.client.embeddings(model=self.model, prompt=text, **kwargs)
        except Exception as e:
            logger.bind(model=self.model, host=self.host, error=str(e)).error(
                f"Ollama embedding error: {e}"
            )
            raise EmbeddingError(f"Ollama embedding error: {e}") from e

        if not response or "embedding" not in response:
            raise EmbeddingError("Ollama returned invalid embedding response")
        return response["embedding"]

    async def batch_embed(self, texts: list[str], **kwargs) -> list[list[float]]:
        """Embed texts in concurrent groups of `concurrency` requests."""
        embeddings = []
        for i in range(0, len(texts), self.concurrency):
            batch = texts[i : i + self.concurrency]
            embeddings.extend(await asyncio.gather(*(self.embed(text, **kwargs) for text in batch)))
        return embeddings

    async def get_dimension(self) -> int:
        if self._dimension is None:
            self._dimension = await super().get_dimension()
        return self._dimension

    async def close(self):
        """Close client (Ollama SDK handles cleanup internally)."""
        pass
