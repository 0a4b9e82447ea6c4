"""Data models for Brain Chat."""

from brainchat.models.capture import Capture, CaptureStatus, Collection
from brainchat.models.context import (
    AggregatedContext,
    ContextFilters,
    ContextItem,
    ContextItemType,
    ContextQuery,
    ContextType,
    DateRange,
    RetrievedChunk,
    SourceDescriptor,
)
from brainchat.models.conversation import (
    BrainChatContext,
    ContextUsage,
    Conversation,
    ConversationDetail,
    ConversationStartRequest,
    ConversationSummary,
    Message,
    MessageRole,
    MessageStatus,
    PolicySelection,
    SelectionDescriptor,
    SessionDetail,
    SessionSummary,
    StaticContextSelection,
)

__all__ = [
    # Captures
    "Capture",
    "CaptureStatus",
    "Collection",
    # Context
    "AggregatedContext",
    "ContextFilters",
    "ContextItem",
    "ContextItemType",
    "ContextQuery",
    "ContextType",
    "DateRange",
    "RetrievedChunk",
    "SourceDescriptor",
    # Conversations
    "BrainChatContext",
    "ContextUsage",
    "Conversation",
    "ConversationDetail",
    "ConversationStartRequest",
    "ConversationSummary",
    "Message",
    "MessageRole",
    "MessageStatus",
    "PolicySelection",
    "SelectionDescriptor",
    "SessionDetail",
    "SessionSummary",
    "StaticContextSelection",
]
