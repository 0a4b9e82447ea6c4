"""
Tests for StreamCoordinator.

Tests cover:
1. Streamed generation with chunk and usage callbacks
2. Commit only after successful completion
3. Cancellation and timeout between chunks
4. Error chunks
5. Blocking generation
"""

import asyncio
from unittest.mock import AsyncMock

import pytest
from fakes import FakeLLM, error_chunk

from brainchat.core.llm.base import StreamChunk, TokenUsage
from brainchat.services.stream_coordinator import GenerationRequest, StreamCoordinator
from brainchat.utils.cancellation import REASON_TIMEOUT, CancellationToken
from brainchat.utils.exceptions import (
    GenerationCancelledError,
    GenerationError,
    GenerationTimeoutError,
)


def deltas(*words: str) -> list[StreamChunk]:
    return [StreamChunk(delta=word) for word in words]


@pytest.mark.unit
class TestGenerationRequest:
    """Test request validation."""

    def test_requires_prompt_or_messages(self):
        with pytest.raises(ValueError):
            GenerationRequest()

    def test_rejects_both(self):
        with pytest.raises(ValueError):
            GenerationRequest(prompt="hi", messages=[{"role": "user", "content": "hi"}])

    def test_prompt_becomes_user_message(self):
        request = GenerationRequest(prompt="hello")
        assert request.chat_messages() == [{"role": "user", "content": "hello"}]


@pytest.mark.unit
@pytest.mark.asyncio
class TestStreamingDrive:
    """Test streamed generation."""

    async def test_chunks_usage_and_commit(self):
        coordinator = StreamCoordinator(FakeLLM())
        received, usages = [], []
        commit = AsyncMock()

        text = await coordinator.drive(
            GenerationRequest(prompt="hi", stream=True),
            on_chunk=received.append,
            on_usage=usages.append,
            commit=commit,
        )

        assert text == "Hello there"
        assert received == ["Hello", " there"]
        assert usages == [TokenUsage(prompt_tokens=5, completion_tokens=2, total_tokens=7)]
        commit.assert_awaited_once_with("Hello there")

    async def test_async_callbacks_are_awaited(self):
        coordinator = StreamCoordinator(FakeLLM())
        received = []

        async def on_chunk(delta):
            received.append(delta)

        await coordinator.drive(GenerationRequest(prompt="hi", stream=True), on_chunk=on_chunk)

        assert received == ["Hello", " there"]

    async def test_cancel_mid_stream_commits_nothing(self):
        llm = FakeLLM(chunks=deltas("one", " two", " three", " four"))
        token = CancellationToken()
        llm.on_chunk = lambda index: token.cancel() if index == 1 else None
        coordinator = StreamCoordinator(llm)
        received = []
        commit = AsyncMock()

        with pytest.raises(GenerationCancelledError):
            await coordinator.drive(
                GenerationRequest(prompt="hi", stream=True),
                on_chunk=received.append,
                cancel_token=token,
                commit=commit,
            )

        assert received == ["one", " two"]
        commit.assert_not_awaited()

    async def test_timeout_reason_raises_timeout(self):
        llm = FakeLLM(chunks=deltas("a", "b", "c"))
        token = CancellationToken()
        llm.on_chunk = lambda index: token.cancel(REASON_TIMEOUT)
        coordinator = StreamCoordinator(llm)
        commit = AsyncMock()

        with pytest.raises(GenerationTimeoutError):
            await coordinator.drive(
                GenerationRequest(prompt="hi", stream=True), cancel_token=token, commit=commit
            )

        commit.assert_not_awaited()

    async def test_error_chunk_raises(self):
        llm = FakeLLM(chunks=[*deltas("partial"), error_chunk("rate limited")])
        coordinator = StreamCoordinator(llm)
        commit = AsyncMock()

        with pytest.raises(GenerationError, match="rate limited"):
            await coordinator.drive(GenerationRequest(prompt="hi", stream=True), commit=commit)

        commit.assert_not_awaited()

    async def test_relay_yields_chunks_then_commits(self):
        llm = FakeLLM()
        coordinator = StreamCoordinator(llm)
        commit = AsyncMock()
        stream = coordinator.open(GenerationRequest(prompt="hi", stream=True))

        chunks = [chunk async for chunk in coordinator.relay(stream, commit=commit)]

        assert [chunk.delta for chunk in chunks if chunk.delta] == ["Hello", " there"]
        assert chunks[-1].usage.total_tokens == 7
        commit.assert_awaited_once_with("Hello there")

    async def test_open_passes_model_override(self):
        llm = FakeLLM()
        coordinator = StreamCoordinator(llm)

        stream = coordinator.open(GenerationRequest(prompt="hi", model="other", stream=True))
        [chunk async for chunk in stream]

        assert llm.stream_calls[0]["model"] == "other"


@pytest.mark.unit
@pytest.mark.asyncio
class TestBlockingDrive:
    """Test blocking generation."""

    async def test_prompt_completion(self):
        llm = FakeLLM(reply="full answer")
        coordinator = StreamCoordinator(llm)
        received = []
        commit = AsyncMock()

        text = await coordinator.drive(
            GenerationRequest(prompt="hi"), on_chunk=received.append, commit=commit
        )

        assert text == "full answer"
        assert received == ["full answer"]
        commit.assert_awaited_once_with("full answer")
        assert llm.chat_calls[0]["messages"] == [{"role": "user", "content": "hi"}]

    async def test_messages_completion(self):
        llm = FakeLLM(reply="ok")
        coordinator = StreamCoordinator(llm)
        messages = [{"role": "system", "content": "s"}, {"role": "user", "content": "u"}]

        text = await coordinator.drive(GenerationRequest(messages=messages))

        assert text == "ok"
        assert llm.chat_calls[0]["messages"] == messages

    async def test_already_cancelled_token(self):
        llm = FakeLLM()
        coordinator = StreamCoordinator(llm)
        token = CancellationToken()
        token.cancel()

        with pytest.raises(GenerationCancelledError):
            await coordinator.drive(GenerationRequest(prompt="hi"), cancel_token=token)

        assert llm.chat_calls == []

    async def test_cancel_during_blocking_generation(self):
        llm = FakeLLM()
        started = asyncio.Event()

        async def slow_chat(*args, **kwargs):
            started.set()
            await asyncio.sleep(10)
            return "too late"

        llm.chat = slow_chat
        coordinator = StreamCoordinator(llm)
        token = CancellationToken()
        commit = AsyncMock()

        task = asyncio.create_task(
            coordinator.drive(GenerationRequest(prompt="hi"), cancel_token=token, commit=commit)
        )
        await started.wait()
        token.cancel(REASON_TIMEOUT)

        with pytest.raises(GenerationTimeoutError):
            await task
        commit.assert_not_awaited()
