"""
Factory for creating document store backends.
"""

from brainchat.config import StorageConfig
from brainchat.core.document_store.base import DocumentStore
from brainchat.core.document_store.sqlite_store import SQLiteDocumentStore
from brainchat.utils.exceptions import ConfigurationError


class DocumentStoreFactory:
    """Factory for creating document store backends from configuration."""

    @staticmethod
    def create(config: StorageConfig) -> DocumentStore:
        """
        Create document store from configuration.

        Raises:
            ConfigurationError: If backend is not supported
        """
        if config.backend == "sqlite":
            return SQLiteDocumentStore(db_path=config.db_path)
        raise ConfigurationError(f"Unsupported storage backend: {config.backend}")
