"""
Ollama LLM provider using native ollama-python SDK.
"""

from collections.abc import AsyncIterator

import ollama

from brainchat.core.llm.base import ChatMessages, LLMProvider, StreamChunk, StreamError, TokenUsage
from brainchat.utils.cancellation import CancellationToken
from brainchat.utils.exceptions import LLMError, ValidationError
from brainchat.utils.logger import get_logger

logger = get_logger(__name__)


class OllamaLLM(LLMProvider):
    """
    Ollama LLM provider for chat generation.

    Uses native ollama-python SDK for blocking and streamed chat.
    """

    def __init__(
        self,
        host: str = "http://localhost:11434",
        model: str = "llama3.1:8b",
        timeout: float = 120.0,
    ):
        """
        Initialize Ollama LLM provider.

        Args:
            host: Ollama server URL
            model: Default model name (e.g., "llama3.1", "mistral")
            timeout: Request timeout in seconds
        """
        self.host = host
        self.model = model
        self.timeout = timeout

        self.client = ollama.AsyncClient(host=host, timeout=timeout)

    def _options(self, max_tokens: int, temperature: float, extra: dict | None = None) -> dict:
        return {"temperature": temperature, "num_predict": max_tokens, **(extra or {})}

    async def chat(
        self,
        messages: ChatMessages,
        model: str | None = None,
        max_tokens: int = 2000,
        temperature: float = 0.7,
        **kwargs,
    ) -> str:
        """
        Generate a chat reply using Ollama.

        Raises:
            ValidationError: If messages are empty
            LLMError: If the Ollama call fails or returns no content
        """
        if not messages:
            raise ValidationError("Messages cannot be empty")

        try:
            response = await self.client.chat(
                model=model or self.model,
                messages=messages,
                options=self._options(max_tokens, temperature, kwargs.get("options")),
            )
        except Exception as e:
            logger.bind(model=model or self.model, host=self.host, error=str(e)).error(
                f"Ollama chat error: {e}"
            )
            raise LLMError(f"Ollama chat error: {e}") from e

        content = response["message"]["content"]
        if not content:
            raise LLMError("Ollama returned empty content")
        return content

    async def stream_chat(
        self,
        messages: ChatMessages,
        model: str | None = None,
        cancel_token: CancellationToken | None = None,
        max_tokens: int = 2000,
        temperature: float = 0.7,
    ) -> AsyncIterator[StreamChunk]:
        """Stream a chat reply; usage comes from the final `done` part."""
        model = model or self.model

        try:
            stream = await self.client.chat(
                model=model,
                messages=messages,
                stream=True,
                options=self._options(max_tokens, temperature),
            )
            async for part in stream:
                if cancel_token is not None and cancel_token.cancelled:
                    break

                content = part["message"]["content"]
                if content:
                    yield StreamChunk(delta=content)

                if part.get("done"):
                    prompt_tokens = part.get("prompt_eval_count") or 0
                    completion_tokens = part.get("eval_count") or 0
                    yield StreamChunk(
                        usage=TokenUsage(
                            prompt_tokens=prompt_tokens,
                            completion_tokens=completion_tokens,
                            total_tokens=prompt_tokens + completion_tokens,
                        )
                    )
        except Exception as e:
            logger.bind(model=model, host=self.host, error=str(e)).error(
                f"Ollama stream error: {e}"
            )
            yield StreamChunk(error=StreamError(message=str(e)))

    async def close(self):
        """Close client (Ollama SDK handles cleanup internally)."""
        pass
