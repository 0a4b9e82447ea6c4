"""
LLM provider abstraction layer for chat generation.

Supported providers:
- Ollama (native SDK)
- OpenAI (official SDK, also OpenAI-compatible gateways)
"""
from brainchat.core.llm.base import LLMProvider, StreamChunk, StreamError, TokenUsage
from brainchat.core.llm.ollama import OllamaLLM
from brainchat.core.llm.openai import OpenAILLM

__all__ = [
    "LLMProvider",
    "StreamChunk",
    "StreamError",
    "TokenUsage",
    "OllamaLLM",
    "OpenAILLM",
]
