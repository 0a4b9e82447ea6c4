"""Utility modules for Brain Chat."""

from brainchat.utils.cancellation import CancellationToken
from brainchat.utils.exceptions import (
    AggregationError,
    AuthorizationError,
    BrainChatError,
    ConfigurationError,
    DocumentStoreError,
    EmbeddingError,
    GenerationCancelledError,
    GenerationError,
    GenerationTimeoutError,
    LLMError,
    NotFoundError,
    StoreError,
    ValidationError,
    VectorStoreError,
)
from brainchat.utils.id_generator import (
    generate_chunk_id,
    generate_conversation_id,
    generate_message_id,
)
from brainchat.utils.logger import get_logger, setup_logging

__all__ = [
    # Logging
    "get_logger",
    "setup_logging",
    # Cancellation
    "CancellationToken",
    # ID Generators
    "generate_conversation_id",
    "generate_message_id",
    "generate_chunk_id",
    # Exceptions
    "BrainChatError",
    "StoreError",
    "DocumentStoreError",
    "VectorStoreError",
    "ValidationError",
    "AuthorizationError",
    "NotFoundError",
    "ConfigurationError",
    "AggregationError",
    "EmbeddingError",
    "LLMError",
    "GenerationError",
    "GenerationTimeoutError",
    "GenerationCancelledError",
]
