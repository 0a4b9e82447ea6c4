"""
Token counting and chunking for capture indexing.

Uses tiktoken for OpenAI-compatible token boundaries, with a character-based
approximation for environments where loading an encoding is not wanted.
"""

import tiktoken

from brainchat.config import TokenizerConfig


class Tokenizer:
    """
    Token counter and overlapping chunker.

    Usage:
        tokenizer = Tokenizer()
        count = tokenizer.count_tokens("Hello world")
        chunks = tokenizer.chunk_text(long_capture_text)
    """

    def __init__(self, config: TokenizerConfig | None = None):
        """
        Initialize tokenizer with configuration.

        Args:
            config: Optional tokenizer configuration. Uses defaults if not provided.
        """
        self.config = config or TokenizerConfig()
        self._encoder: tiktoken.Encoding | None = None

    @property
    def approximate(self) -> bool:
        return self.config.provider == "approximate"

    @property
    def encoder(self) -> tiktoken.Encoding:
        """Lazy-load tiktoken encoder."""
        if self._encoder is None:
            self._encoder = tiktoken.get_encoding(self.config.model)
        return self._encoder

    def count_tokens(self, text: str) -> int:
        """Count tokens (estimated when the provider is "approximate")."""
        if not text:
            return 0
        if self.approximate:
            return self.estimate_tokens(text)
        return len(self.encoder.encode(text))

    def estimate_tokens(self, text: str) -> int:
        """Fast approximate token count using the configured chars_per_token ratio."""
        if not text:
            return 0
        return int(len(text) / self.config.chars_per_token)

    def chunk_text(
        self,
        text: str,
        chunk_size: int | None = None,
        chunk_overlap: int | None = None,
    ) -> list[str]:
        """
        Split text into overlapping windows of roughly `chunk_size` tokens.

        Args:
            text: Text to split
            chunk_size: Tokens per chunk (defaults to config)
            chunk_overlap: Tokens shared by consecutive chunks (defaults to config)

        Returns:
            Non-empty chunks in document order

        Raises:
            ValueError: If overlap is not smaller than chunk size
        """
        chunk_size = chunk_size or self.config.chunk_size
        chunk_overlap = self.config.chunk_overlap if chunk_overlap is None else chunk_overlap
        if chunk_overlap >= chunk_size:
            raise ValueError("chunk_overlap must be smaller than chunk_size")

        if not text or not text.strip():
            return []

        step = chunk_size - chunk_overlap

        if self.approximate:
            size = int(chunk_size * self.config.chars_per_token)
            stride = int(step * self.config.chars_per_token)
            windows = [text[i : i + size] for i in range(0, len(text), stride)]
        else:
            tokens = self.encoder.encode(text)
            windows = [
                self.encoder.decode(tokens[i : i + chunk_size])
                for i in range(0, len(tokens), step)
            ]

        # Drop a trailing window fully contained in its predecessor
        chunks = [window.strip() for window in windows if window.strip()]
        if len(chunks) > 1 and chunks[-1] in chunks[-2]:
            chunks.pop()
        return chunks
