"""
Abstract base class for embedding providers.
Turns capture chunks and user questions into vectors for similarity search.
"""

from abc import ABC, abstractmethod


class Embedder(ABC):
    """
    Abstract base for embedding providers.

    Responsibilities:
    - Generate vector embeddings for text
    - Batch processing for efficiency
    - Consistent vector dimensions
    """

    @abstractmethod
    async def embed(self, text: str, **kwargs) -> list[float]:
        """
        Generate embedding vector for text.

        Args:
            text: Text to embed
            **kwargs: Provider-specific parameters

        Returns:
            List of floats representing the embedding vector

        Raises:
            ValidationError: If text is invalid
            EmbeddingError: If embedding generation fails
        """
        pass

    async def batch_embed(self, texts: list[str], **kwargs) -> list[list[float]]:
        """
        Generate embeddings for multiple texts, sequentially by default.

        Returns:
            List of embedding vectors (same order as input texts)
        """
        return [await self.embed(text, **kwargs) for text in texts]

    async def get_dimension(self) -> int:
        """Embedding dimension, discovered by embedding a test string."""
        test_embedding = await self.embed("test")
        return len(test_embedding)

    @abstractmethod
    async def close(self):
        """Close any open connections."""
        pass
