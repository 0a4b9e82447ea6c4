"""Tokenizer used to chunk captures before embedding."""

from brainchat.config import TokenizerConfig
from brainchat.core.tokenizer.tokenizer import Tokenizer

__all__ = ["Tokenizer", "TokenizerConfig"]
