"""
Integration tests for BrainChatService.

The service runs against a real in-memory SQLite document store and the
fakes for LLM, embedder and vector store.
"""

from unittest.mock import AsyncMock

import pytest
from fakes import FakeEmbedder, FakeLLM, FakeVectorStore, error_chunk, make_capture, seed_captures

from brainchat.core.llm.base import StreamChunk
from brainchat.models.capture import CaptureStatus
from brainchat.models.context import ContextItem, ContextItemType, ContextType
from brainchat.models.conversation import (
    ConversationStartRequest,
    Message,
    MessageRole,
)
from brainchat.services.brain_chat import BrainChatService
from brainchat.utils.cancellation import REASON_TIMEOUT, CancellationToken
from brainchat.utils.exceptions import GenerationCancelledError, NotFoundError, ValidationError

ARTICLE = (
    "Rust guarantees memory safety through ownership. Every value has a single "
    "owner and the borrow checker enforces reference rules at compile time."
)


@pytest.fixture
def vector_store():
    return FakeVectorStore()


@pytest.fixture
def service(fake_llm, vector_store, document_store, test_config):
    return BrainChatService(
        llm=fake_llm,
        embedder=FakeEmbedder(),
        vector_store=vector_store,
        document_store=document_store,
        config=test_config,
    )


async def collect(events) -> list[dict]:
    return [event async for event in events]


def start_request() -> ConversationStartRequest:
    return ConversationStartRequest(
        messages=[Message(role=MessageRole.USER, content="What should I read next?")]
    )


@pytest.mark.unit
@pytest.mark.asyncio
class TestProcessMessage:
    """Test blocking brain chat turns."""

    async def test_creates_session_and_persists_exchange(self, service, fake_llm):
        reply = await service.process_message("user-1", "what do I know about rust", ContextType.ALL)

        assert reply.response == "Hello from the assistant"
        assert reply.session_id.startswith("conv_")
        assert reply.context_used.sources == 0
        assert reply.context_used.retrieved_chunks == 0

        session = await service.get_session(reply.session_id, "user-1")
        assert session.title == "what do I know about"
        assert [m.role for m in session.messages] == [MessageRole.USER, MessageRole.ASSISTANT]
        assert session.messages[1].content == "Hello from the assistant"

        prompt = fake_llm.chat_calls[0]["messages"][0]["content"]
        assert "No relevant information found across 0 sources." in prompt
        assert "CONVERSATION HISTORY:\nUSER: what do I know about rust" in prompt

    async def test_follow_up_uses_history(self, service, fake_llm):
        first = await service.process_message("user-1", "first question", ContextType.ALL)

        second = await service.process_message(
            "user-1", "second question", ContextType.ALL, session_id=first.session_id
        )

        assert second.session_id == first.session_id
        prompt = fake_llm.chat_calls[1]["messages"][0]["content"]
        assert (
            "USER: first question\n\nASSISTANT: Hello from the assistant\n\nUSER: second question"
            in prompt
        )
        session = await service.get_session(first.session_id, "user-1")
        assert len(session.messages) == 4

    async def test_unknown_session_id_creates_new_session(self, service):
        reply = await service.process_message(
            "user-1", "hello", ContextType.ALL, session_id="conv_doesnotexist"
        )
        assert reply.session_id != "conv_doesnotexist"

    async def test_empty_message_rejected(self, service):
        with pytest.raises(ValidationError, match="Message is required"):
            await service.process_message("user-1", "   ", ContextType.ALL)

        assert await service.list_sessions("user-1") == []

    async def test_retrieved_context_reaches_prompt(self, service, document_store, fake_llm):
        await seed_captures(document_store, make_capture("cap-1", content=ARTICLE))
        await service.index_capture("cap-1", "user-1")

        reply = await service.process_message(
            "user-1",
            "how does rust manage memory",
            ContextType.SPECIFIC,
            [ContextItem(type=ContextItemType.CAPTURE, id="cap-1")],
        )

        assert reply.context_used.sources == 1
        assert reply.context_used.retrieved_chunks >= 1
        prompt = fake_llm.chat_calls[0]["messages"][0]["content"]
        assert "CONTEXT INFORMATION (1 sources searched)" in prompt
        assert "[From: cap-1]" in prompt

        session = await service.get_session(reply.session_id, "user-1")
        assert session.messages[1].context_used.sources == ["cap-1"]

    async def test_cancelled_turn_persists_no_messages(self, service):
        token = CancellationToken()
        token.cancel()

        with pytest.raises(GenerationCancelledError):
            await service.process_message("user-1", "hello", ContextType.ALL, cancel_token=token)

        sessions = await service.list_sessions("user-1")
        assert len(sessions) == 1
        assert sessions[0].messages == []


@pytest.mark.unit
@pytest.mark.asyncio
class TestStreamMessage:
    """Test streamed brain chat turns."""

    async def test_event_sequence(self, service):
        events = await collect(await service.stream_message("user-1", "hello", ContextType.ALL))

        assert events[0] == {"delta": "Hello"}
        assert events[1] == {"delta": " there"}
        assert events[2]["usage"]["total_tokens"] == 7
        assert events[-1]["done"] is True

        session = await service.get_session(events[-1]["session_id"], "user-1")
        assert [m.content for m in session.messages] == ["hello", "Hello there"]

    async def test_cancellation_ends_with_error_event(self, document_store, test_config):
        llm = FakeLLM(chunks=[StreamChunk(delta="one"), StreamChunk(delta=" two")])
        service = BrainChatService(
            llm, FakeEmbedder(), FakeVectorStore(), document_store, test_config
        )
        token = CancellationToken()
        llm.on_chunk = lambda index: token.cancel()

        events = await collect(
            await service.stream_message("user-1", "hello", ContextType.ALL, cancel_token=token)
        )

        assert events[0] == {"delta": "one"}
        assert events[-1]["error"] == "Request cancelled"
        assert events[-1]["code"] == "REQUEST_CANCELLED"
        sessions = await service.list_sessions("user-1")
        assert sessions[0].messages == []

    async def test_timeout_event(self, document_store, test_config):
        llm = FakeLLM(chunks=[StreamChunk(delta="one"), StreamChunk(delta=" two")])
        service = BrainChatService(
            llm, FakeEmbedder(), FakeVectorStore(), document_store, test_config
        )
        token = CancellationToken()
        llm.on_chunk = lambda index: token.cancel(REASON_TIMEOUT)

        events = await collect(
            await service.stream_message("user-1", "hello", ContextType.ALL, cancel_token=token)
        )

        assert events[-1]["error"] == "Request timed out"
        assert events[-1]["code"] == "REQUEST_TIMEOUT"

    async def test_error_chunk_event(self, document_store, test_config):
        llm = FakeLLM(chunks=[StreamChunk(delta="partial"), error_chunk("model overloaded")])
        service = BrainChatService(
            llm, FakeEmbedder(), FakeVectorStore(), document_store, test_config
        )

        events = await collect(await service.stream_message("user-1", "hello", ContextType.ALL))

        assert events[-1]["error"] == "AI conversation failed"
        assert events[-1]["code"] == "AI_CONVERSATION_FAILED"
        assert events[-1]["details"] == "model overloaded"
        assert not any(event.get("done") for event in events)

    async def test_error_event_keeps_braced_details(self, document_store, test_config):
        details = "Error code: 429 - {'error': {'message': 'Rate limit reached'}}"
        llm = FakeLLM(chunks=[error_chunk(details)])
        service = BrainChatService(
            llm, FakeEmbedder(), FakeVectorStore(), document_store, test_config
        )

        events = await collect(await service.stream_message("user-1", "hello", ContextType.ALL))

        assert events == [
            {"error": "AI conversation failed", "code": "AI_CONVERSATION_FAILED", "details": details}
        ]

    async def test_validation_raised_before_stream(self, service):
        with pytest.raises(ValidationError):
            await service.stream_message("user-1", "", ContextType.ALL)


@pytest.mark.unit
@pytest.mark.asyncio
class TestSessionQueries:
    """Test session helpers."""

    async def test_get_session_rejects_conversation(self, service):
        conversation = await service.start_conversation("user-1", start_request())

        with pytest.raises(NotFoundError):
            await service.get_session(conversation.id, "user-1")

    async def test_foreign_session_not_found(self, service):
        reply = await service.process_message("user-1", "hello", ContextType.ALL)

        with pytest.raises(NotFoundError):
            await service.get_session(reply.session_id, "user-2")
        with pytest.raises(NotFoundError):
            await service.delete_session(reply.session_id, "user-2")

        assert await service.get_session(reply.session_id, "user-1")

    async def test_rename_and_archive(self, service):
        reply = await service.process_message("user-1", "hello", ContextType.ALL)

        renamed = await service.update_session_title(reply.session_id, "user-1", "Greetings")
        archived = await service.archive_session(reply.session_id, "user-1")

        assert renamed.title == "Greetings"
        assert archived.is_active is False

    async def test_delete_session(self, service):
        reply = await service.process_message("user-1", "hello", ContextType.ALL)

        await service.delete_session(reply.session_id, "user-1")

        assert await service.list_sessions("user-1") == []


@pytest.mark.unit
@pytest.mark.asyncio
class TestConversations:
    """Test static-context conversations."""

    async def test_stream_start_persists_on_completion(self, service):
        events = await collect(service.start_conversation_stream("user-1", start_request()))

        assert events[-1]["done"] is True
        conversation = await service.get_conversation(events[-1]["conversation_id"], "user-1")
        assert [m.role for m in conversation.messages] == [MessageRole.USER, MessageRole.ASSISTANT]
        assert conversation.messages[-1].content == "Hello there"

    async def test_cancelled_stream_start_persists_nothing(self, document_store, test_config):
        llm = FakeLLM(chunks=[StreamChunk(delta="one"), StreamChunk(delta=" two")])
        service = BrainChatService(
            llm, FakeEmbedder(), FakeVectorStore(), document_store, test_config
        )
        token = CancellationToken()
        llm.on_chunk = lambda index: token.cancel()

        events = await collect(
            service.start_conversation_stream("user-1", start_request(), cancel_token=token)
        )

        assert events[-1]["error"] == "Request cancelled"
        assert await service.list_conversations("user-1") == []

    async def test_send_message_appends_exchange(self, service):
        conversation = await service.start_conversation("user-1", start_request())

        events = await collect(
            await service.send_conversation_message(conversation.id, "user-1", "Tell me more")
        )

        assert events[-1] == {"done": True, "conversation_id": conversation.id}
        stored = await service.get_conversation(conversation.id, "user-1")
        assert [m.content for m in stored.messages[-2:]] == ["Tell me more", "Hello there"]

    async def test_send_message_to_foreign_conversation(self, service):
        conversation = await service.start_conversation("user-1", start_request())

        with pytest.raises(NotFoundError):
            await service.send_conversation_message(conversation.id, "user-2", "hi")

    async def test_delete_conversation(self, service):
        conversation = await service.start_conversation("user-1", start_request())

        with pytest.raises(NotFoundError):
            await service.delete_conversation(conversation.id, "user-2")

        await service.delete_conversation(conversation.id, "user-1")
        with pytest.raises(NotFoundError):
            await service.get_conversation(conversation.id, "user-1")


@pytest.mark.unit
@pytest.mark.asyncio
class TestIndexCapture:
    """Test capture indexing."""

    async def test_indexes_owned_capture(self, service, document_store, vector_store):
        await seed_captures(document_store, make_capture("cap-1", content=ARTICLE))

        count = await service.index_capture("cap-1", "user-1")

        assert count >= 1
        assert all(chunk.user_id == "user-1" for chunk in vector_store.chunks.values())
        assert "cap-1_chunk_0" in vector_store.chunks

    async def test_rejects_foreign_capture(self, service, document_store):
        await seed_captures(document_store, make_capture("cap-1", owner="user-2", content=ARTICLE))

        with pytest.raises(NotFoundError):
            await service.index_capture("cap-1", "user-1")

    async def test_rejects_inactive_capture(self, service, document_store):
        await seed_captures(
            document_store,
            make_capture("cap-1", status=CaptureStatus.ARCHIVED, content=ARTICLE),
        )

        with pytest.raises(NotFoundError):
            await service.index_capture("cap-1", "user-1")


@pytest.mark.unit
@pytest.mark.asyncio
class TestLifecycle:
    """Test initialize and close."""

    async def test_initialize_and_close(self, test_config):
        document_store = AsyncMock()
        vector_store = FakeVectorStore()
        llm = FakeLLM()
        service = BrainChatService(llm, FakeEmbedder(), vector_store, document_store, test_config)

        await service.initialize()
        await service.close()

        document_store.initialize.assert_awaited_once()
        document_store.close.assert_awaited_once()
        assert vector_store.initialized
        assert llm.closed
