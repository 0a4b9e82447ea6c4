"""Similarity retrieval over capture chunks."""

from brainchat.core.retrieval.retriever import Retriever

__all__ = ["Retriever"]
