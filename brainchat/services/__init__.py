"""
Services for Brain Chat.

High-level business logic services:
- BrainChatService: Unified interface for all brain chat operations
- ScopeResolver: Selection policy to capture IDs
- ContextAggregator: Sources and retrieved chunks for a turn
- ConversationManager: Session and conversation persistence
- StreamCoordinator: Blocking/streamed generation with cancellation
"""

from brainchat.services.brain_chat import BrainChatService, ChatReply
from brainchat.services.context_aggregator import ContextAggregator
from brainchat.services.conversation_manager import ConversationManager, generate_session_title
from brainchat.services.scope_resolver import ScopeResolver
from brainchat.services.stream_coordinator import GenerationRequest, StreamCoordinator

__all__ = [
    "BrainChatService",
    "ChatReply",
    "ContextAggregator",
    "ConversationManager",
    "GenerationRequest",
    "ScopeResolver",
    "StreamCoordinator",
    "generate_session_title",
]
