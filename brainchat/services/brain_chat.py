"""
Brain Chat Service - Integrates all components.

Brings together:
- Scope resolution & context aggregation over captures and collections
- Prompt assembly
- Blocking and streamed generation with cooperative cancellation
- Conversation persistence for sessions and static-context conversations
"""

from collections.abc import AsyncIterator, Callable
from typing import Any

from pydantic import BaseModel

from brainchat.config import Config
from brainchat.core.document_store.base import DocumentStore
from brainchat.core.embeddings.base import Embedder
from brainchat.core.llm.base import LLMProvider, StreamChunk
from brainchat.core.retrieval import Retriever
from brainchat.core.tokenizer import Tokenizer
from brainchat.core.vector_store.base import VectorStore
from brainchat.models.capture import CAPTURES, Capture, CaptureStatus
from brainchat.models.context import (
    AggregatedContext,
    ContextFilters,
    ContextItem,
    ContextQuery,
    ContextType,
)
from brainchat.models.conversation import (
    Conversation,
    ConversationStartRequest,
    Message,
    MessageRole,
    MessageStatus,
)
from brainchat.services.context_aggregator import ContextAggregator
from brainchat.services.conversation_manager import ConversationManager
from brainchat.services.prompt_builder import build_prompt
from brainchat.services.scope_resolver import ScopeResolver
from brainchat.services.stream_coordinator import GenerationRequest, StreamCoordinator
from brainchat.utils.cancellation import CancellationToken
from brainchat.utils.exceptions import (
    BrainChatError,
    GenerationCancelledError,
    GenerationTimeoutError,
    NotFoundError,
    ValidationError,
)
from brainchat.utils.logger import get_logger

logger = get_logger(__name__)

Event = dict[str, Any]


class ContextCounts(BaseModel):
    sources: int
    retrieved_chunks: int


class ChatReply(BaseModel):
    """Result of a blocking brain chat turn."""

    session_id: str
    response: str
    context_used: ContextCounts

    @classmethod
    def build(
        cls, session: Conversation, response: str, context: AggregatedContext
    ) -> "ChatReply":
        return cls(
            session_id=session.id,
            response=response,
            context_used=ContextCounts(
                sources=len(context.sources),
                retrieved_chunks=len(context.retrieved_chunks),
            ),
        )


class BrainChatService:
    """
    Unified brain chat service integrating all components.

    Features:
    - Context-grounded chat over a selection policy (sessions)
    - Plain chat over a static context (conversations)
    - Server-sent event streams with timeout and disconnect handling
    - Capture indexing for similarity retrieval
    """

    def __init__(
        self,
        llm: LLMProvider,
        embedder: Embedder,
        vector_store: VectorStore,
        document_store: DocumentStore,
        config: Config,
    ):
        """
        Initialize Brain Chat Service.

        Args:
            llm: LLM provider for text generation
            embedder: Embedder for query and capture embeddings
            vector_store: Vector database holding capture chunks (Qdrant)
            document_store: Document database for captures and conversations
            config: Configuration object
        """
        self.llm = llm
        self.embedder = embedder
        self.config = config

        # Direct store references kept for infrastructure operations only (initialize, close)
        self.vector_store = vector_store
        self.document_store = document_store

        self.retriever = Retriever(
            embedder=embedder,
            vector_store=vector_store,
            tokenizer=Tokenizer(config.tokenizer),
        )
        self.scope_resolver = ScopeResolver(document_store, config.chat)
        self.aggregator = ContextAggregator(
            scope_resolver=self.scope_resolver,
            document_store=document_store,
            retriever=self.retriever,
            config=config.chat,
        )
        self.conversations = ConversationManager(document_store, llm, config.chat)
        self.coordinator = StreamCoordinator(llm)

    async def initialize(self) -> None:
        """Initialize all stores."""
        logger.info("Initializing Brain Chat Service")

        await self.document_store.initialize()
        logger.info("Document store initialized")

        await self.vector_store.initialize()
        logger.info("Vector store initialized")

        logger.info("Brain Chat Service ready")

    # ═══════════════════════════════════════════════════════════
    # SESSIONS (/brain-chat)
    # ═══════════════════════════════════════════════════════════

    async def process_message(
        self,
        user_id: str,
        message: str,
        context_type: ContextType,
        context_items: list[ContextItem] | None = None,
        session_id: str | None = None,
        filters: ContextFilters | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> ChatReply:
        """
        Answer one message against the selected context and persist the exchange.

        Returns:
            Session ID, reply and counts of the context used

        Raises:
            ValidationError: If the message is empty
            AggregationError: If the context cannot be aggregated
            GenerationError: If generation fails, times out or is cancelled
        """
        session, context, request, message = await self._prepare_turn(
            user_id, message, context_type, context_items, session_id, filters, stream=False
        )

        async def commit(text: str) -> None:
            await self.conversations.append_exchange(session, message, text, context)

        try:
            response = await self.coordinator.drive(
                request, on_chunk=None, cancel_token=cancel_token, commit=commit
            )
        except BrainChatError as e:
            logger.bind(user_id=user_id, session_id=session.id, error=str(e)).error(
                f"Brain chat processing failed: {e}"
            )
            raise

        return ChatReply.build(session, response, context)

    async def stream_message(
        self,
        user_id: str,
        message: str,
        context_type: ContextType,
        context_items: list[ContextItem] | None = None,
        session_id: str | None = None,
        filters: ContextFilters | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> AsyncIterator[Event]:
        """
        Prepare a streamed answer.

        Validation, session lookup and aggregation happen before this method
        returns, so their errors surface as regular exceptions. Errors raised
        while streaming are delivered as a final error event.

        Returns:
            Event iterator: {"delta"}, {"usage"}, then {"done", "session_id"} or {"error", "code"}
        """
        session, context, request, message = await self._prepare_turn(
            user_id, message, context_type, context_items, session_id, filters, stream=True
        )
        stream = self.coordinator.open(request, cancel_token)

        async def commit(text: str) -> None:
            await self.conversations.append_exchange(session, message, text, context)

        return self._events(
            stream,
            cancel_token,
            commit,
            done={"session_id": session.id},
            log_extra={"user_id": user_id, "session_id": session.id},
        )

    async def _prepare_turn(
        self,
        user_id: str,
        message: str,
        context_type: ContextType,
        context_items: list[ContextItem] | None,
        session_id: str | None,
        filters: ContextFilters | None,
        stream: bool,
    ) -> tuple[Conversation, AggregatedContext, GenerationRequest, str]:
        message = (message or "").strip()
        if not message:
            raise ValidationError("Message is required")

        session = await self.conversations.get_or_create_session(
            session_id, user_id, context_type, context_items, message
        )

        context = await self.aggregator.aggregate(
            ContextQuery(
                user_id=user_id,
                context_type=context_type,
                context_items=context_items or [],
                query=message,
                filters=filters,
            )
        )

        history = [*session.messages, Message(role=MessageRole.USER, content=message)]
        request = GenerationRequest(
            prompt=build_prompt(history, context, max_chunks=self.config.chat.max_prompt_chunks),
            model=self.config.chat.model,
            stream=stream,
            max_tokens=self.config.chat.max_tokens,
            temperature=self.config.chat.temperature,
        )
        return session, context, request, message

    async def list_sessions(self, user_id: str, limit: int | None = None) -> list[Conversation]:
        return await self.conversations.list_sessions(user_id, limit)

    async def get_session(self, session_id: str, user_id: str) -> Conversation:
        session = await self.conversations.get(session_id, user_id)
        if session is None or not session.is_session:
            raise NotFoundError("Session not found", context={"session_id": session_id})
        return session

    async def delete_session(self, session_id: str, user_id: str) -> None:
        await self.get_session(session_id, user_id)
        await self.conversations.delete(session_id, user_id)

    async def update_session_title(self, session_id: str, user_id: str, title: str) -> Conversation:
        await self.get_session(session_id, user_id)
        return await self.conversations.update_title(session_id, user_id, title)

    async def archive_session(self, session_id: str, user_id: str) -> Conversation:
        await self.get_session(session_id, user_id)
        return await self.conversations.archive(session_id, user_id)

    # ═══════════════════════════════════════════════════════════
    # CONVERSATIONS (/brain-ai)
    # ═══════════════════════════════════════════════════════════

    async def start_conversation(
        self,
        user_id: str,
        request: ConversationStartRequest,
        cancel_token: CancellationToken | None = None,
    ) -> Conversation:
        return await self.conversations.create_conversation(user_id, request, cancel_token)

    def start_conversation_stream(
        self,
        user_id: str,
        request: ConversationStartRequest,
        cancel_token: CancellationToken | None = None,
    ) -> AsyncIterator[Event]:
        """
        Stream the reply to a new conversation's initial turns.

        The conversation is persisted only once the reply completed.
        """
        conversation, stream = self.conversations.start_conversation_stream(
            user_id, request, cancel_token
        )

        async def commit(text: str) -> None:
            if text:
                await self.conversations.append_turn(
                    conversation, MessageRole.ASSISTANT, text, status=MessageStatus.RECEIVED
                )
            else:
                await self.conversations.save(conversation)

        return self._events(
            stream,
            cancel_token,
            commit,
            done={"conversation_id": conversation.id},
            log_extra={"user_id": user_id, "conversation_id": conversation.id},
        )

    async def send_conversation_message(
        self,
        conversation_id: str,
        user_id: str,
        content: str,
        cancel_token: CancellationToken | None = None,
    ) -> AsyncIterator[Event]:
        """
        Stream the reply to a new user turn of an existing conversation.

        Raises:
            ValidationError: If the content is empty
            NotFoundError: If the conversation is absent or not owned
        """
        conversation, stream = await self.conversations.send_message(
            conversation_id, user_id, content, cancel_token
        )

        async def commit(text: str) -> None:
            await self.conversations.append_exchange(conversation, content, text)

        return self._events(
            stream,
            cancel_token,
            commit,
            done={"conversation_id": conversation.id},
            log_extra={"user_id": user_id, "conversation_id": conversation.id},
        )

    async def list_conversations(self, user_id: str, limit: int | None = None):
        return await self.conversations.list_conversations(user_id, limit)

    async def get_conversation(self, conversation_id: str, user_id: str) -> Conversation:
        conversation = await self.conversations.get(conversation_id, user_id)
        if conversation is None:
            raise NotFoundError(
                "Conversation not found", context={"conversation_id": conversation_id}
            )
        return conversation

    async def delete_conversation(self, conversation_id: str, user_id: str) -> None:
        if not await self.conversations.delete(conversation_id, user_id):
            raise NotFoundError(
                "Conversation not found", context={"conversation_id": conversation_id}
            )

    # ═══════════════════════════════════════════════════════════
    # CAPTURES
    # ═══════════════════════════════════════════════════════════

    async def index_capture(self, capture_id: str, user_id: str) -> int:
        """
        (Re)index an owned, active capture for similarity retrieval.

        Returns:
            Number of chunks stored

        Raises:
            NotFoundError: If the capture is absent, inactive or not owned
        """
        doc = await self.document_store.find_one(
            CAPTURES,
            {"id": capture_id, "owner": user_id, "status": CaptureStatus.ACTIVE.value},
        )
        if doc is None:
            raise NotFoundError("Capture not found", context={"capture_id": capture_id})

        return await self.retriever.index_capture(Capture.model_validate(doc))

    # ═══════════════════════════════════════════════════════════
    # HELPER METHODS
    # ═══════════════════════════════════════════════════════════

    async def _events(
        self,
        stream: AsyncIterator[StreamChunk],
        cancel_token: CancellationToken | None,
        commit: Callable[[str], Any],
        done: Event,
        log_extra: dict[str, Any],
    ) -> AsyncIterator[Event]:
        try:
            async for chunk in self.coordinator.relay(stream, cancel_token, commit):
                if chunk.delta:
                    yield {"delta": chunk.delta}
                if chunk.usage is not None:
                    yield {"usage": chunk.usage.model_dump()}
            yield {"done": True, **done}
        except GenerationTimeoutError as e:
            logger.bind(**log_extra).warning(f"Generation timed out: {e}")
            yield {"error": "Request timed out", "code": e.code, "details": e.message}
        except GenerationCancelledError as e:
            logger.bind(**log_extra).info(f"Generation cancelled: {e}")
            yield {"error": "Request cancelled", "code": e.code, "details": e.message}
        except BrainChatError as e:
            logger.bind(**log_extra, error=str(e)).error(f"Streaming failed: {e}")
            yield {"error": "AI conversation failed", "code": e.code, "details": e.message}

    async def close(self) -> None:
        """Close all connections."""
        logger.info("Shutting down Brain Chat Service")

        await self.document_store.close()
        await self.vector_store.close()

        await self.llm.close()
        await self.embedder.close()

        logger.info("Brain Chat Service shutdown complete")
