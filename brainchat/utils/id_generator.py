"""
ID generation utilities for Brain Chat.

Provides consistent ID generation for all entity types:
- Conversations: conv_xxx
- Messages: msg_xxx
- Chunks: <capture_id>_chunk_N
"""

from uuid import uuid4


def generate_conversation_id() -> str:
    """
    Generate unique Conversation ID.

    Returns:
        ID in format "conv_xxx" where xxx is 12 hex characters
    """
    return f"conv_{uuid4().hex[:12]}"


def generate_message_id() -> str:
    """
    Generate unique Message ID.

    Returns:
        ID in format "msg_xxx" where xxx is 12 hex characters
    """
    return f"msg_{uuid4().hex[:12]}"


def generate_chunk_id(capture_id: str, chunk_index: int) -> str:
    """
    Generate Chunk ID based on parent capture.

    Args:
        capture_id: Parent capture ID
        chunk_index: Zero-based chunk index

    Returns:
        ID in format "<capture_id>_chunk_N"
    """
    return f"{capture_id}_chunk_{chunk_index}"
