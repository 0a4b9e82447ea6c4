"""
Factory for creating embedder providers.
"""

from brainchat.config import EmbedderConfig
from brainchat.core.embeddings.base import Embedder
from brainchat.core.embeddings.ollama import OllamaEmbedder
from brainchat.core.embeddings.openai import OpenAIEmbedder
from brainchat.utils.exceptions import ConfigurationError


class EmbedderFactory:
    """Factory for creating embedder providers from configuration."""

    @staticmethod
    def create(config: EmbedderConfig) -> Embedder:
        """
        Create embedder from configuration.

        Raises:
            ConfigurationError: If provider is not supported or misconfigured
        """
        if config.provider == "ollama":
            return OllamaEmbedder(
                host=config.base_url,
                model=config.model,
                timeout=config.timeout,
            )
        elif config.provider == "openai":
            if not config.api_key:
                raise ConfigurationError("OpenAI API key is required")
            return OpenAIEmbedder(
                api_key=config.api_key,
                model=config.model,
                timeout=config.timeout,
            )
        else:
            raise ConfigurationError(f"Unsupported embedder provider: {config.provider}")

    @staticmethod
    async def get_dimension(embedder: Embedder, config: EmbedderConfig | None = None) -> int:
        """
        Get embedding dimension with fallback logic.

        Priority:
        1. From config if provided
        2. From the embedder itself (known model table or a test embedding)
        """
        if config and config.dimension:
            return config.dimension
        return await embedder.get_dimension()
