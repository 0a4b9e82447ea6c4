"""
Prompt assembly for brain chat.

Pure functions: the same history and context always render the same prompt.
"""

from brainchat.models.context import AggregatedContext
from brainchat.models.conversation import Message

MAX_PROMPT_CHUNKS = 10

SYSTEM_INSTRUCTION = (
    "You are a helpful assistant that can help with questions about the user's "
    "brain chat conversation."
)

PERSONA = (
    "You are an intelligent knowledge assistant that helps users explore and "
    "understand information from their personal knowledge base."
)

INSTRUCTIONS = [
    "Use the context information provided above to answer questions accurately",
    "If the context doesn't contain relevant information, say so clearly",
    "Be conversational and helpful",
    "Reference specific sources when relevant",
    "Ask clarifying questions if the user's intent is unclear",
    "Maintain context from the conversation history",
]

CHUNK_SEPARATOR = "\n\n---\n\n"


def build_context_string(
    context: AggregatedContext, max_chunks: int = MAX_PROMPT_CHUNKS
) -> str:
    """
    Render retrieved chunks as the context block of the prompt.

    At most `max_chunks` chunks are included, in retrieval order.
    """
    if not context.retrieved_chunks:
        return f"No relevant information found across {context.total_sources} sources."

    chunks = context.retrieved_chunks[:max_chunks]
    header = (
        f"Found {len(context.retrieved_chunks)} relevant pieces of information "
        f"from {len(context.sources)} sources:\n\n"
    )
    body = CHUNK_SEPARATOR.join(f"[From: {chunk.source_id}]\n{chunk.text}" for chunk in chunks)
    return header + body


def format_history(messages: list[Message]) -> str:
    return "\n\n".join(f"{message.role.value.upper()}: {message.content}" for message in messages)


def build_brain_chat_prompt(
    messages: list[Message], context_string: str, source_count: int
) -> str:
    """
    Render the full prompt: persona, context, history and instructions.

    Args:
        messages: Conversation history, oldest first (including the new user turn)
        context_string: Output of build_context_string
        source_count: Number of sources searched

    Returns:
        Prompt ending with "ASSISTANT: "
    """
    instructions = "\n".join(f"- {line}" for line in INSTRUCTIONS)
    return (
        f"{PERSONA}\n\n"
        f"CONTEXT INFORMATION ({source_count} sources searched):\n"
        f"{context_string}\n\n"
        f"CONVERSATION HISTORY:\n"
        f"{format_history(messages)}\n\n"
        f"INSTRUCTIONS:\n"
        f"{instructions}\n\n"
        f"ASSISTANT: "
    )


def build_prompt(
    messages: list[Message],
    context: AggregatedContext,
    max_chunks: int = MAX_PROMPT_CHUNKS,
) -> str:
    """Build the session-variant prompt from history and aggregated context."""
    return build_brain_chat_prompt(
        messages,
        build_context_string(context, max_chunks=max_chunks),
        context.total_sources,
    )


def build_chat_messages(
    history: list[Message], new_content: str | None = None
) -> list[dict[str, str]]:
    """
    Build the chat-style message list for conversation-variant generation.

    The fixed system instruction comes first, then the history and, when
    given, the new user turn.
    """
    messages = [{"role": "system", "content": SYSTEM_INSTRUCTION}]
    messages.extend({"role": message.role.value, "content": message.content} for message in history)
    if new_content is not None:
        messages.append({"role": "user", "content": new_content})
    return messages
