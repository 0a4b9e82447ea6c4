"""
Streaming response coordination.

Drives one generation (blocking or streamed), relays text deltas and usage to
the caller, observes the cancellation token between chunks and commits the
final reply only when generation completed. Partial replies of a cancelled or
failed generation are discarded.
"""

import asyncio
import contextlib
import inspect
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any

from pydantic import BaseModel, model_validator

from brainchat.core.llm.base import ChatMessages, LLMProvider, StreamChunk, TokenUsage
from brainchat.utils.cancellation import CancellationToken
from brainchat.utils.exceptions import GenerationError
from brainchat.utils.logger import get_logger

logger = get_logger(__name__)

ChunkCallback = Callable[[str], Any]
UsageCallback = Callable[[TokenUsage], Any]
Commit = Callable[[str], Awaitable[Any]]


class GenerationRequest(BaseModel):
    """A single generation: either a rendered prompt or a chat message list."""

    prompt: str | None = None
    messages: ChatMessages | None = None
    model: str | None = None
    stream: bool = False
    max_tokens: int = 2000
    temperature: float = 0.7

    @model_validator(mode="after")
    def check_input(self) -> "GenerationRequest":
        if (self.prompt is None) == (self.messages is None):
            raise ValueError("Exactly one of prompt or messages is required")
        return self

    def chat_messages(self) -> ChatMessages:
        if self.messages is not None:
            return self.messages
        return [{"role": "user", "content": self.prompt}]


async def _call(callback: Callable[..., Any] | None, value: Any) -> None:
    if callback is None:
        return
    result = callback(value)
    if inspect.isawaitable(result):
        await result


class StreamCoordinator:
    """
    Generation driver shared by both conversation variants.

    Usage:
        coordinator = StreamCoordinator(llm)
        text = await coordinator.drive(request, on_chunk=send, cancel_token=token)
    """

    def __init__(self, llm: LLMProvider):
        self.llm = llm

    async def drive(
        self,
        request: GenerationRequest,
        on_chunk: ChunkCallback | None = None,
        on_usage: UsageCallback | None = None,
        cancel_token: CancellationToken | None = None,
        commit: Commit | None = None,
    ) -> str:
        """
        Run a generation to completion.

        Args:
            request: Prompt or messages plus generation parameters
            on_chunk: Called with every text delta (once with the full text when blocking)
            on_usage: Called with usage data when the provider reports it
            cancel_token: Cooperative cancellation token
            commit: Awaited with the final text before returning

        Returns:
            The complete reply

        Raises:
            GenerationTimeoutError: If the token fired because of a timeout
            GenerationCancelledError: If the token fired for any other reason
            GenerationError: If the stream delivered an error
            LLMError: If a blocking completion failed
        """
        if not request.stream:
            text = await self._complete(request, cancel_token)
            await _call(on_chunk, text)
            if commit is not None:
                await commit(text)
            return text

        stream = self.open(request, cancel_token)
        return await self.consume(stream, on_chunk, on_usage, cancel_token, commit)

    def open(
        self, request: GenerationRequest, cancel_token: CancellationToken | None = None
    ) -> AsyncIterator[StreamChunk]:
        """Create the provider stream for a request without consuming it."""
        return self.llm.stream_chat(
            request.chat_messages(),
            model=request.model,
            cancel_token=cancel_token,
            max_tokens=request.max_tokens,
            temperature=request.temperature,
        )

    async def consume(
        self,
        stream: AsyncIterator[StreamChunk],
        on_chunk: ChunkCallback | None = None,
        on_usage: UsageCallback | None = None,
        cancel_token: CancellationToken | None = None,
        commit: Commit | None = None,
    ) -> str:
        """Drive an already created stream through the callbacks."""
        parts: list[str] = []
        async for chunk in self.relay(stream, cancel_token, commit):
            if chunk.delta:
                parts.append(chunk.delta)
                await _call(on_chunk, chunk.delta)
            if chunk.usage is not None:
                await _call(on_usage, chunk.usage)
        return "".join(parts)

    async def relay(
        self,
        stream: AsyncIterator[StreamChunk],
        cancel_token: CancellationToken | None = None,
        commit: Commit | None = None,
    ) -> AsyncIterator[StreamChunk]:
        """
        Re-yield a provider stream with cancellation and error handling applied.

        The commit callback runs after the last chunk, and only if the stream
        completed without error or cancellation.
        """
        parts: list[str] = []
        try:
            async for chunk in stream:
                if cancel_token is not None:
                    cancel_token.raise_if_cancelled()
                if chunk.error is not None:
                    logger.bind(operation="stream", error=chunk.error.message).error(
                        f"Generation stream failed: {chunk.error.message}"
                    )
                    raise GenerationError(chunk.error.message)
                if chunk.delta:
                    parts.append(chunk.delta)
                if chunk.delta or chunk.usage is not None:
                    yield StreamChunk(delta=chunk.delta, usage=chunk.usage)

            # Providers stop quietly on cancellation
            if cancel_token is not None:
                cancel_token.raise_if_cancelled()
        finally:
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()

        if commit is not None:
            await commit("".join(parts))

    async def _complete(
        self, request: GenerationRequest, cancel_token: CancellationToken | None
    ) -> str:
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()

        if request.prompt is not None:
            generation = self.llm.complete(
                request.prompt,
                max_tokens=request.max_tokens,
                temperature=request.temperature,
                model=request.model,
            )
        else:
            generation = self.llm.chat(
                request.messages,
                model=request.model,
                max_tokens=request.max_tokens,
                temperature=request.temperature,
            )

        if cancel_token is None:
            return await generation

        task = asyncio.ensure_future(generation)
        waiter = asyncio.ensure_future(cancel_token.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            waiter.cancel()

        if not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
            cancel_token.raise_if_cancelled()

        return task.result()
