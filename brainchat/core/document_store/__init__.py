"""
Document store implementations for Brain Chat.

Available backends:
- SQLiteDocumentStore: Local JSON document storage via aiosqlite
"""

from brainchat.core.document_store.base import ASCENDING, DESCENDING, DocumentStore
from brainchat.core.document_store.sqlite_store import SQLiteDocumentStore

__all__ = [
    "ASCENDING",
    "DESCENDING",
    "DocumentStore",
    "SQLiteDocumentStore",
]
