"""
Conversation model with two selection variants.

A conversation is the persisted unit of multi-turn interaction. How its
context was selected is a sum type:

- PolicySelection: a selection policy plus explicit items, re-resolved on
  every turn (the "session" shape used by /brain-chat).
- StaticContextSelection: flags and id lists fixed at creation
  (the "conversation" shape used by /brain-ai).

Adapter views at the bottom of the module keep both response shapes.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Annotated, Literal

from pydantic import BaseModel, Field

from brainchat.models.context import ContextItem, ContextType
from brainchat.utils.exceptions import ValidationError
from brainchat.utils.id_generator import generate_conversation_id, generate_message_id

CONVERSATIONS = "conversations"


def utcnow() -> datetime:
    return datetime.now(UTC)


class MessageRole(str, Enum):
    """Author of a message."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class MessageStatus(str, Enum):
    """Delivery status of a message."""

    SENT = "sent"
    RECEIVED = "received"


class ContextUsage(BaseModel):
    """Which context produced an assistant turn."""

    sources: list[str] = Field(default_factory=list, description="Capture IDs in scope")
    retrieved_chunks: int = 0


class Message(BaseModel):
    """One turn of a conversation."""

    id: str = Field(default_factory=generate_message_id)
    role: MessageRole
    content: str
    timestamp: datetime = Field(default_factory=utcnow)
    status: MessageStatus = MessageStatus.SENT
    context_used: ContextUsage | None = None


class Toggle(BaseModel):
    enabled: bool = False


class IdList(BaseModel):
    ids: list[str] = Field(default_factory=list)


class BrainChatContext(BaseModel):
    """Static context descriptor chosen when a conversation starts."""

    brain: Toggle = Field(default_factory=Toggle)
    bookmarks: Toggle = Field(default_factory=Toggle)
    captures: IdList = Field(default_factory=IdList)
    collections: IdList = Field(default_factory=IdList)


class PolicySelection(BaseModel):
    """Selection policy stored at the conversation level."""

    kind: Literal["policy"] = "policy"
    context_type: ContextType
    context_items: list[ContextItem] = Field(default_factory=list)


class StaticContextSelection(BaseModel):
    """Static context descriptor fixed at creation time."""

    kind: Literal["static"] = "static"
    context: BrainChatContext = Field(default_factory=BrainChatContext)


SelectionDescriptor = Annotated[
    PolicySelection | StaticContextSelection, Field(discriminator="kind")
]


class Conversation(BaseModel):
    """
    Persisted conversation, exclusively owned by one user.

    `last_activity` is refreshed on every persist by the conversation manager.
    """

    id: str = Field(default_factory=generate_conversation_id)
    user_id: str
    title: str = "new conversation"
    selection: SelectionDescriptor
    messages: list[Message] = Field(default_factory=list)
    is_active: bool = True
    created_at: datetime = Field(default_factory=utcnow)
    last_activity: datetime = Field(default_factory=utcnow)

    def touch(self) -> None:
        self.last_activity = utcnow()

    @property
    def is_session(self) -> bool:
        return isinstance(self.selection, PolicySelection)


class ConversationStartRequest(BaseModel):
    """Payload used to open a static-context conversation."""

    title: str | None = None
    created_at: datetime | None = None
    context: BrainChatContext = Field(default_factory=BrainChatContext)
    messages: list[Message] = Field(default_factory=list)


# Adapter views


class SessionSummary(BaseModel):
    """Session listing entry."""

    id: str
    title: str
    context_type: ContextType
    message_count: int
    is_active: bool
    created_at: datetime
    last_activity: datetime

    @classmethod
    def from_conversation(cls, conversation: Conversation) -> "SessionSummary":
        selection = conversation.selection
        if not isinstance(selection, PolicySelection):
            raise ValidationError(
                "Conversation is not a session", context={"conversation_id": conversation.id}
            )
        return cls(
            id=conversation.id,
            title=conversation.title,
            context_type=selection.context_type,
            message_count=len(conversation.messages),
            is_active=conversation.is_active,
            created_at=conversation.created_at,
            last_activity=conversation.last_activity,
        )


class SessionDetail(SessionSummary):
    """Full session, including selection items and messages."""

    context_items: list[ContextItem]
    messages: list[Message]

    @classmethod
    def from_conversation(cls, conversation: Conversation) -> "SessionDetail":
        summary = SessionSummary.from_conversation(conversation)
        return cls(
            **summary.model_dump(),
            context_items=conversation.selection.context_items,
            messages=conversation.messages,
        )


class ConversationSummary(BaseModel):
    """Conversation listing entry; carries no message bodies."""

    id: str
    title: str
    message_count: int
    created_at: datetime
    last_activity: datetime

    @classmethod
    def from_conversation(cls, conversation: Conversation) -> "ConversationSummary":
        return cls(
            id=conversation.id,
            title=conversation.title,
            message_count=len(conversation.messages),
            created_at=conversation.created_at,
            last_activity=conversation.last_activity,
        )


class ConversationDetail(ConversationSummary):
    """Full conversation, including messages."""

    messages: list[Message]

    @classmethod
    def from_conversation(cls, conversation: Conversation) -> "ConversationDetail":
        summary = ConversationSummary.from_conversation(conversation)
        return cls(**summary.model_dump(), messages=conversation.messages)
