"""
OpenAI LLM provider using official SDK.

Also works with OpenAI-compatible gateways (OpenRouter, vLLM, ...) through
`base_url`.
"""

from collections.abc import AsyncIterator

from openai import AsyncOpenAI

from brainchat.core.llm.base import ChatMessages, LLMProvider, StreamChunk, StreamError, TokenUsage
from brainchat.utils.cancellation import CancellationToken
from brainchat.utils.exceptions import LLMError, ValidationError
from brainchat.utils.logger import get_logger

logger = get_logger(__name__)


class OpenAILLM(LLMProvider):
    """
    OpenAI LLM provider for chat generation.

    Uses the official OpenAI SDK for blocking and streamed chat completions.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        organization: str | None = None,
        base_url: str | None = None,
        timeout: float = 120.0,
    ):
        """
        Initialize OpenAI LLM provider.

        Args:
            api_key: OpenAI API key
            model: Default model name (e.g., "gpt-4o", "gpt-4o-mini")
            organization: Optional organization ID
            base_url: Optional custom base URL
            timeout: Request timeout in seconds
        """
        self.model = model

        self.client = AsyncOpenAI(
            api_key=api_key, organization=organization, base_url=base_url, timeout=timeout
        )

    async def chat(
        self,
        messages: ChatMessages,
        model: str | None = None,
        max_tokens: int = 2000,
        temperature: float = 0.7,
        **kwargs,
    ) -> str:
        """
        Generate a chat completion using OpenAI.

        Raises:
            ValidationError: If messages are empty
            LLMError: If the OpenAI API call fails or returns no content
        """
        if not messages:
            raise ValidationError("Messages cannot be empty")

        params = {
            "model": model or self.model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
            **kwargs,
        }

        try:
            response = await self.client.chat.completions.create(**params)
            content = response.choices[0].message.content

            if not content:
                raise LLMError("OpenAI returned empty content")

            return content
        except LLMError:
            raise
        except Exception as e:
            logger.bind(model=params["model"], error=str(e), error_type=type(e).__name__).error(
                f"OpenAI API error: {e}"
            )
            raise LLMError(f"OpenAI API error: {e}") from e

    async def stream_chat(
        self,
        messages: ChatMessages,
        model: str | None = None,
        cancel_token: CancellationToken | None = None,
        max_tokens: int = 2000,
        temperature: float = 0.7,
    ) -> AsyncIterator[StreamChunk]:
        """Stream a chat completion, reporting usage in the final chunk."""
        model = model or self.model

        try:
            stream = await self.client.chat.completions.create(
                model=model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
                stream=True,
                stream_options={"include_usage": True},
            )
        except Exception as e:
            logger.bind(model=model, error=str(e), error_type=type(e).__name__).error(
                f"OpenAI stream error: {e}"
            )
            yield StreamChunk(error=StreamError(message=str(e)))
            return

        try:
            async for event in stream:
                if cancel_token is not None and cancel_token.cancelled:
                    break

                delta = None
                if event.choices:
                    delta = event.choices[0].delta.content

                usage = None
                if event.usage is not None:
                    usage = TokenUsage(
                        prompt_tokens=event.usage.prompt_tokens,
                        completion_tokens=event.usage.completion_tokens,
                        total_tokens=event.usage.total_tokens,
                    )

                if delta or usage:
                    yield StreamChunk(delta=delta or None, usage=usage)
        except Exception as e:
            logger.bind(model=model, error=str(e), error_type=type(e).__name__).error(
                f"OpenAI stream interrupted: {e}"
            )
            yield StreamChunk(error=StreamError(message=str(e)))
        finally:
            await stream.close()

    async def close(self):
        """Close OpenAI client."""
        await self.client.close()
