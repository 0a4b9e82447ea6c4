"""
Conversation lifecycle management.

Owns persistence of conversations of both selection variants: policy-backed
sessions (/brain-chat) and static-context conversations (/brain-ai). Every
read, update and delete is scoped by (id, user_id); a conversation owned by
someone else is indistinguishable from a missing one.
"""

from collections.abc import AsyncIterator

from brainchat.config import ChatConfig
from brainchat.core.document_store.base import DESCENDING, DocumentStore
from brainchat.core.llm.base import LLMProvider, StreamChunk
from brainchat.models.context import AggregatedContext, ContextItem, ContextType
from brainchat.models.conversation import (
    CONVERSATIONS,
    ContextUsage,
    Conversation,
    ConversationStartRequest,
    ConversationSummary,
    Message,
    MessageRole,
    MessageStatus,
    PolicySelection,
    StaticContextSelection,
)
from brainchat.services.prompt_builder import build_chat_messages
from brainchat.services.stream_coordinator import GenerationRequest, StreamCoordinator
from brainchat.utils.cancellation import CancellationToken
from brainchat.utils.exceptions import NotFoundError, ValidationError
from brainchat.utils.logger import get_logger

logger = get_logger(__name__)

TITLE_WORDS = 5
TITLE_MAX_LENGTH = 50


def generate_session_title(first_message: str) -> str:
    """
    Derive a session title from the first message.

    The first five space-separated words; longer than 50 characters is cut
    to 47 characters plus "...".
    """
    title = " ".join(first_message.split(" ")[:TITLE_WORDS])
    if len(title) > TITLE_MAX_LENGTH:
        return title[: TITLE_MAX_LENGTH - 3] + "..."
    return title


class ConversationManager:
    """
    Persisted conversations for one document store.

    Usage:
        manager = ConversationManager(document_store, llm)
        session = await manager.create_session(user_id, ContextType.ALL, [], "hello")
        await manager.append_turn(session, MessageRole.USER, "hello")
    """

    def __init__(
        self,
        document_store: DocumentStore,
        llm: LLMProvider,
        config: ChatConfig | None = None,
    ):
        """
        Initialize conversation manager.

        Args:
            document_store: Persistence backend
            llm: Generation backend for the conversation variant
            config: Chat configuration (model, limits)
        """
        self.store = document_store
        self.llm = llm
        self.config = config or ChatConfig()
        self.coordinator = StreamCoordinator(llm)

    # ═══════════════════════════════════════════════════════════
    # CREATION
    # ═══════════════════════════════════════════════════════════

    async def create_session(
        self,
        user_id: str,
        context_type: ContextType,
        context_items: list[ContextItem] | None,
        first_message: str,
    ) -> Conversation:
        """Create and persist an empty policy-backed session."""
        session = Conversation(
            user_id=user_id,
            title=generate_session_title(first_message),
            selection=PolicySelection(
                context_type=context_type, context_items=context_items or []
            ),
        )
        await self._insert(session)

        logger.bind(user_id=user_id, conversation_id=session.id).info(
            f"Created session {session.id}"
        )
        return session

    async def get_or_create_session(
        self,
        session_id: str | None,
        user_id: str,
        context_type: ContextType,
        context_items: list[ContextItem] | None,
        first_message: str,
    ) -> Conversation:
        """Load an owned session by ID, or create a new one."""
        if session_id:
            existing = await self.get(session_id, user_id)
            if existing is not None and existing.is_session:
                return existing
        return await self.create_session(user_id, context_type, context_items, first_message)

    def _new_conversation(
        self, user_id: str, request: ConversationStartRequest
    ) -> Conversation:
        if not request.messages:
            raise ValidationError(
                "Messages are required to start a conversation",
                context={"user_id": user_id},
            )

        conversation = Conversation(
            user_id=user_id,
            title=request.title or "new conversation",
            selection=StaticContextSelection(context=request.context),
            messages=list(request.messages),
        )
        if request.created_at:
            conversation.created_at = request.created_at
        return conversation

    async def create_conversation(
        self,
        user_id: str,
        request: ConversationStartRequest,
        cancel_token: CancellationToken | None = None,
    ) -> Conversation:
        """
        Open a static-context conversation and answer its initial turns.

        The conversation is persisted before generation; a non-empty reply
        is appended as a received assistant turn and persisted again.

        Raises:
            ValidationError: If no initial messages are given (nothing is persisted)
            GenerationTimeoutError: If the token fired because of a timeout
            GenerationCancelledError: If the token fired for any other reason
            LLMError: If generation fails
        """
        conversation = self._new_conversation(user_id, request)
        await self._insert(conversation)

        reply = await self.coordinator.drive(
            GenerationRequest(
                messages=build_chat_messages(conversation.messages),
                model=self.config.model,
                max_tokens=self.config.max_tokens,
                temperature=self.config.temperature,
            ),
            cancel_token=cancel_token,
        )
        if reply:
            await self.append_turn(
                conversation, MessageRole.ASSISTANT, reply, status=MessageStatus.RECEIVED
            )

        logger.bind(user_id=user_id, conversation_id=conversation.id).info(
            f"Started conversation {conversation.id}"
        )
        return conversation

    def start_conversation_stream(
        self,
        user_id: str,
        request: ConversationStartRequest,
        cancel_token: CancellationToken | None = None,
    ) -> tuple[Conversation, AsyncIterator[StreamChunk]]:
        """
        Prepare a static-context conversation and its reply stream.

        Nothing is persisted; the caller commits once the stream completes.

        Raises:
            ValidationError: If no initial messages are given
        """
        conversation = self._new_conversation(user_id, request)
        stream = self.llm.stream_chat(
            build_chat_messages(conversation.messages),
            model=self.config.model,
            cancel_token=cancel_token,
            max_tokens=self.config.max_tokens,
            temperature=self.config.temperature,
        )
        return conversation, stream

    # ═══════════════════════════════════════════════════════════
    # TURNS
    # ═══════════════════════════════════════════════════════════

    async def append_turn(
        self,
        conversation: Conversation,
        role: MessageRole,
        content: str,
        context_used: ContextUsage | None = None,
        status: MessageStatus | None = None,
    ) -> Message:
        """Append a timestamped turn and persist the conversation."""
        if status is None:
            status = MessageStatus.SENT if role == MessageRole.USER else MessageStatus.RECEIVED

        message = Message(role=role, content=content, status=status, context_used=context_used)
        conversation.messages.append(message)
        await self.save(conversation)
        return message

    async def append_exchange(
        self,
        conversation: Conversation,
        user_message: str,
        ai_response: str,
        context: AggregatedContext | None = None,
    ) -> Conversation:
        """
        Append a user turn and its assistant reply, persisting once.

        When a context is given the reply records which sources produced it.
        """
        context_used = None
        if context is not None:
            context_used = ContextUsage(
                sources=context.source_ids,
                retrieved_chunks=len(context.retrieved_chunks),
            )

        conversation.messages.append(
            Message(role=MessageRole.USER, content=user_message, status=MessageStatus.SENT)
        )
        conversation.messages.append(
            Message(
                role=MessageRole.ASSISTANT,
                content=ai_response,
                status=MessageStatus.RECEIVED,
                context_used=context_used,
            )
        )
        await self.save(conversation)
        return conversation

    async def send_message(
        self,
        conversation_id: str,
        user_id: str,
        content: str,
        cancel_token: CancellationToken | None = None,
    ) -> tuple[Conversation, AsyncIterator[StreamChunk]]:
        """
        Prepare the reply stream for a new user turn.

        The stream is returned unconsumed; neither turn is persisted here.

        Raises:
            ValidationError: If the content is empty
            NotFoundError: If the conversation is absent or not owned
        """
        if not content or not content.strip():
            raise ValidationError("Message content is required")

        conversation = await self.get(conversation_id, user_id)
        if conversation is None:
            raise NotFoundError(
                "Conversation not found",
                context={"conversation_id": conversation_id, "user_id": user_id},
            )

        stream = self.llm.stream_chat(
            build_chat_messages(conversation.messages, content),
            model=self.config.model,
            cancel_token=cancel_token,
            max_tokens=self.config.max_tokens,
            temperature=self.config.temperature,
        )
        return conversation, stream

    # ═══════════════════════════════════════════════════════════
    # QUERIES
    # ═══════════════════════════════════════════════════════════

    async def list_sessions(self, user_id: str, limit: int | None = None) -> list[Conversation]:
        """Full session records, most recently active first."""
        docs = await self.store.find(
            CONVERSATIONS,
            {"user_id": user_id, "selection.kind": "policy"},
            sort=[("last_activity", DESCENDING)],
            limit=self._clamp_limit(limit),
        )
        return [Conversation.model_validate(doc) for doc in docs]

    async def list_conversations(
        self, user_id: str, limit: int | None = None
    ) -> list[ConversationSummary]:
        """Conversation summaries without message bodies, most recent first."""
        docs = await self.store.find(
            CONVERSATIONS,
            {"user_id": user_id, "selection.kind": "static"},
            sort=[("last_activity", DESCENDING)],
            limit=self._clamp_limit(limit),
        )
        return [
            ConversationSummary.from_conversation(Conversation.model_validate(doc))
            for doc in docs
        ]

    async def get(self, conversation_id: str, user_id: str) -> Conversation | None:
        doc = await self.store.find_one(CONVERSATIONS, {"id": conversation_id, "user_id": user_id})
        if doc is None:
            return None
        return Conversation.model_validate(doc)

    # ═══════════════════════════════════════════════════════════
    # MUTATIONS
    # ═══════════════════════════════════════════════════════════

    async def delete(self, conversation_id: str, user_id: str) -> bool:
        """
        Delete an owned conversation.

        Returns:
            False when nothing was deleted (absent or owned by someone else)
        """
        deleted = await self.store.delete_one(
            CONVERSATIONS, {"id": conversation_id, "user_id": user_id}
        )
        if deleted:
            logger.bind(user_id=user_id, conversation_id=conversation_id).info(
                f"Deleted conversation {conversation_id}"
            )
        return deleted

    async def update_title(self, conversation_id: str, user_id: str, title: str) -> Conversation:
        """
        Rename an owned conversation.

        Raises:
            ValidationError: If the trimmed title is empty or too long
            NotFoundError: If the conversation is absent or not owned
        """
        title = (title or "").strip()
        if not title:
            raise ValidationError("Title is required")
        if len(title) > self.config.max_title_length:
            raise ValidationError(
                f"Title must be at most {self.config.max_title_length} characters"
            )

        conversation = await self._require(conversation_id, user_id)
        conversation.title = title
        await self.save(conversation)
        return conversation

    async def archive(self, conversation_id: str, user_id: str) -> Conversation:
        """
        Mark an owned conversation inactive. Archived conversations stay readable.

        Raises:
            NotFoundError: If the conversation is absent or not owned
        """
        conversation = await self._require(conversation_id, user_id)
        conversation.is_active = False
        await self.save(conversation)
        return conversation

    async def save(self, conversation: Conversation) -> None:
        """Persist a conversation, inserting it on first save."""
        conversation.touch()
        replaced = await self.store.replace_one(
            CONVERSATIONS,
            {"id": conversation.id, "user_id": conversation.user_id},
            conversation.model_dump(),
        )
        if not replaced:
            await self.store.insert(CONVERSATIONS, conversation.model_dump())

    # ═══════════════════════════════════════════════════════════
    # HELPER METHODS
    # ═══════════════════════════════════════════════════════════

    async def _insert(self, conversation: Conversation) -> None:
        conversation.touch()
        await self.store.insert(CONVERSATIONS, conversation.model_dump())

    async def _require(self, conversation_id: str, user_id: str) -> Conversation:
        conversation = await self.get(conversation_id, user_id)
        if conversation is None:
            raise NotFoundError(
                "Conversation not found",
                context={"conversation_id": conversation_id, "user_id": user_id},
            )
        return conversation

    def _clamp_limit(self, limit: int | None) -> int:
        limit = limit or self.config.list_limit
        return max(1, min(limit, self.config.max_list_limit))
