"""
OpenAI embedder using official SDK.
"""

from openai import AsyncOpenAI

from brainchat.core.embeddings.base import Embedder
from brainchat.utils.exceptions import EmbeddingError, ValidationError
from brainchat.utils.logger import get_logger

logger = get_logger(__name__)


class OpenAIEmbedder(Embedder):
    """
    OpenAI embedder for capture chunks and queries.

    Supports models like text-embedding-3-small, text-embedding-3-large, etc.
    """

    # Known dimensions for OpenAI embedding models
    _MODEL_DIMENSIONS = {
        "text-embedding-3-small": 1536,
        "text-embedding-3-large": 3072,
        "text-embedding-ada-002": 1536,
    }

    def __init__(
        self,
        api_key: str,
        model: str = "text-embedding-3-small",
        base_url: str | None = None,
        timeout: float = 120.0,
    ):
        self.model = model
        self.client = AsyncOpenAI(api_key=api_key, base_url=base_url, timeout=timeout)

    @property
    def dimension(self) -> int | None:
        return self._MODEL_DIMENSIONS.get(self.model)

    async def embed(self, text: str, **kwargs) -> list[float]:
        """
        Generate embedding for text using OpenAI.

        Raises:
            ValidationError: If text is empty
            EmbeddingError: If OpenAI API call fails
        """
        if not text or not text.strip():
            raise ValidationError("Text cannot be empty")

        try:
            response = await self.client.embeddings.create(model=self.model, input=text, **kwargs)
        except Exception as e:
            logger.bind(model=self.model, error=str(e), error_type=type(e).__name__).error(
                f"OpenAI embedding error: {e}"
            )
            raise EmbeddingError(f"OpenAI embedding error: {e}") from e

        if not response.data:
            raise EmbeddingError("OpenAI returned empty embedding response")
        return response.data[0].embedding

    async def batch_embed(self, texts: list[str], **kwargs) -> list[list[float]]:
        """Embed many texts in one request (OpenAI keeps input order)."""
        if not texts:
            raise ValidationError("Texts list cannot be empty")

        try:
            response = await self.client.embeddings.create(model=self.model, input=texts, **kwargs)
        except Exception as e:
            logger.bind(model=self.model, num_texts=len(texts), error=str(e)).error(
                f"OpenAI batch embedding error: {e}"
            )
            raise EmbeddingError(f"OpenAI batch embedding error: {e}") from e

        return [item.embedding for item in response.data]

    async def get_dimension(self) -> int:
        if self.dimension:
            return self.dimension
        return await super().get_dimension()

    async def close(self):
        """Close OpenAI client."""
        await self.client.close()
