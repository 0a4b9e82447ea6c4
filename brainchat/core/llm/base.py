"""
Abstract base class for LLM providers.
Handles blocking chat completions and incremental token streams.
"""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

from pydantic import BaseModel

from brainchat.utils.cancellation import CancellationToken

ChatMessages = list[dict[str, str]]


class TokenUsage(BaseModel):
    """Metering data reported by a provider at the end of a stream."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class StreamError(BaseModel):
    """Error payload delivered inside a stream."""

    message: str


class StreamChunk(BaseModel):
    """
    One event of a generation stream.

    A chunk carries any combination of a text delta, usage data or an error.
    """

    delta: str | None = None
    usage: TokenUsage | None = None
    error: StreamError | None = None


class LLMProvider(ABC):
    """
    Abstract base for LLM text generation providers.

    Responsibilities:
    - Blocking completion from a single prompt
    - Chat completion from a message list
    - Incremental token streaming with cooperative cancellation
    """

    model: str

    async def complete(
        self,
        prompt: str,
        max_tokens: int = 2000,
        temperature: float = 0.7,
        **kwargs,
    ) -> str:
        """
        Generate completion from a single prompt.

        Args:
            prompt: The input prompt
            max_tokens: Maximum tokens to generate
            temperature: Sampling temperature
            **kwargs: Provider-specific parameters

        Returns:
            Generated text

        Raises:
            ValidationError: If the prompt is empty
            LLMError: Provider-specific errors
        """
        return await self.chat(
            [{"role": "user", "content": prompt}],
            max_tokens=max_tokens,
            temperature=temperature,
            **kwargs,
        )

    @abstractmethod
    async def chat(
        self,
        messages: ChatMessages,
        model: str | None = None,
        max_tokens: int = 2000,
        temperature: float = 0.7,
        **kwargs,
    ) -> str:
        """
        Generate a reply for a list of chat messages.

        Args:
            messages: [{"role": ..., "content": ...}, ...]
            model: Optional model override
            max_tokens: Maximum tokens to generate
            temperature: Sampling temperature
            **kwargs: Provider-specific parameters

        Returns:
            Generated text
        """
        pass

    @abstractmethod
    def stream_chat(
        self,
        messages: ChatMessages,
        model: str | None = None,
        cancel_token: CancellationToken | None = None,
        max_tokens: int = 2000,
        temperature: float = 0.7,
    ) -> AsyncIterator[StreamChunk]:
        """
        Stream a reply for a list of chat messages.

        Implementations are async generators. Provider failures are delivered
        as a final chunk with `error` set instead of being raised. When the
        cancel token fires the generator stops at the next chunk boundary.

        Args:
            messages: [{"role": ..., "content": ...}, ...]
            model: Optional model override
            cancel_token: Cooperative cancellation token
            max_tokens: Maximum tokens to generate
            temperature: Sampling temperature

        Yields:
            StreamChunk events in arrival order
        """
        pass

    @abstractmethod
    async def close(self):
        """
        Close any open connections.
        """
