"""
Custom exception hierarchy for Brain Chat.

Provides structured error types for better error handling and debugging.
All exceptions inherit from BrainChatError for easy catching. Each class
carries a machine-readable code and the HTTP status the API maps it to.
"""


class BrainChatError(Exception):
    """
    Base exception for all Brain Chat errors.
    All custom exceptions should inherit from this class.
    """

    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message: str, context: dict | None = None):
        """
        Initialize Brain Chat error.
        Args:
            message: Error message
            context: Optional context dictionary with additional error details
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}


class StoreError(BrainChatError):
    """
    Base exception for store operations.
    Used for errors related to data storage operations.
    """

    code = "STORE_ERROR"


class DocumentStoreError(StoreError):
    """
    Document store operation errors.
    Raised when document database operations fail.
    """

    pass


class VectorStoreError(StoreError):
    """
    Vector store operation errors.
    Raised when vector database operations fail.
    """

    pass


class ValidationError(BrainChatError):
    """
    Validation errors.
    Raised when input validation fails or data is invalid.
    """

    code = "INVALID_REQUEST"
    status_code = 400

    def __init__(self, message: str, context: dict | None = None, code: str | None = None):
        super().__init__(message, context)
        if code:
            self.code = code


class AuthorizationError(BrainChatError):
    """
    Authorization errors.
    Raised when the caller is not authenticated.
    """

    code = "UNAUTHORIZED"
    status_code = 401


class NotFoundError(BrainChatError):
    """
    Resource not found errors.
    Raised when a conversation is absent or not owned by the caller.
    """

    code = "NOT_FOUND"
    status_code = 404


class ConfigurationError(BrainChatError):
    """
    Configuration errors.
    Raised when configuration is invalid or missing required values.
    """

    code = "CONFIGURATION_ERROR"


class AggregationError(BrainChatError):
    """
    Context aggregation errors.
    Raised when scope resolution or source lookup fails.
    """

    code = "CONTEXT_AGGREGATION_FAILED"


class EmbeddingError(BrainChatError):
    """
    Embedding generation errors.
    Raised when embedding generation fails.
    """

    code = "EMBEDDING_FAILED"


class LLMError(BrainChatError):
    """
    LLM operation errors.
    Raised when LLM operations fail (API errors, empty responses, etc.).
    """

    code = "AI_CONVERSATION_FAILED"
    status_code = 502


class GenerationError(LLMError):
    """
    Generation errors.
    Raised when a generation stream delivers an error payload or breaks.
    """

    pass


class GenerationTimeoutError(GenerationError):
    """Raised when the cancellation token fires because of a timeout."""

    code = "REQUEST_TIMEOUT"
    status_code = 504


class GenerationCancelledError(GenerationError):
    """Raised when the caller disconnects before generation completes."""

    code = "REQUEST_CANCELLED"
    status_code = 499
