"""
SQLite document store implementation.

Stores JSON documents in a single table keyed by (collection, id) and
filters them with SQLite's JSON1 functions, using aiosqlite.
"""

import json
import re
import sqlite3
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Any

import aiosqlite

from brainchat.core.document_store.base import (
    DESCENDING,
    Document,
    DocumentStore,
    Filter,
)
from brainchat.utils.exceptions import DocumentStoreError, ValidationError
from brainchat.utils.logger import get_logger

logger = get_logger(__name__)

_FIELD_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)*$")


def encode_datetime(value: datetime) -> str:
    """Fixed-width UTC ISO string so that text comparison follows time order."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="microseconds")


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return encode_datetime(value)
    if isinstance(value, Enum):
        return value.value
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


class SQLiteDocumentStore(DocumentStore):
    """
    SQLite-based document store for captures, collections and conversations.

    Features:
    - Single local file (or ":memory:" for tests)
    - JSON documents with equality, $in and range filters
    - Projection, sort and limit
    """

    def __init__(self, db_path: str = "data/brainchat.db"):
        """
        Initialize SQLite document store.

        Args:
            db_path: Path to SQLite database file, or ":memory:"
        """
        self.db_path = db_path
        self.connection: aiosqlite.Connection | None = None

        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    async def connect(self) -> None:
        """Establish connection to SQLite."""
        if self.connection is None:
            try:
                self.connection = await aiosqlite.connect(self.db_path)
                await self.connection.execute("PRAGMA journal_mode = WAL")
                await self.connection.commit()
            except sqlite3.Error as e:
                logger.bind(db_path=self.db_path, error=str(e)).error(
                    f"Failed to connect to SQLite: {e}"
                )
                raise DocumentStoreError(f"Failed to connect to SQLite: {e}") from e

    async def initialize(self) -> None:
        """Initialize database schema."""
        await self.connect()

        try:
            await self.connection.execute(
                """
                CREATE TABLE IF NOT EXISTS documents (
                    collection TEXT NOT NULL,
                    id TEXT NOT NULL,
                    body TEXT NOT NULL,
                    PRIMARY KEY (collection, id)
                )
                """
            )
            await self.connection.execute(
                "CREATE INDEX IF NOT EXISTS idx_documents_owner "
                "ON documents(collection, json_extract(body, '$.owner'))"
            )
            await self.connection.execute(
                "CREATE INDEX IF NOT EXISTS idx_documents_user "
                "ON documents(collection, json_extract(body, '$.user_id'))"
            )
            await self.connection.commit()
        except sqlite3.Error as e:
            logger.bind(error=str(e)).error(f"Failed to initialize SQLite schema: {e}")
            raise DocumentStoreError(f"Failed to initialize SQLite schema: {e}") from e

    # ═══════════════════════════════════════════════════════════
    # CRUD OPERATIONS
    # ═══════════════════════════════════════════════════════════

    async def insert(self, collection: str, document: Document) -> str:
        """Insert a new document."""
        doc_id = document.get("id")
        if not doc_id:
            raise ValidationError("Document must have an id")

        await self.connect()
        try:
            await self.connection.execute(
                "INSERT INTO documents (collection, id, body) VALUES (?, ?, ?)",
                (collection, doc_id, self._dumps(document)),
            )
            await self.connection.commit()
        except sqlite3.Error as e:
            logger.bind(collection=collection, document_id=doc_id, error=str(e)).error(
                f"Failed to insert document {doc_id}: {e}"
            )
            raise DocumentStoreError(f"Failed to insert document: {e}") from e

        return doc_id

    async def find(
        self,
        collection: str,
        filter: Filter | None = None,
        projection: list[str] | None = None,
        sort: list[tuple[str, int]] | None = None,
        limit: int | None = None,
    ) -> list[Document]:
        """Find documents matching a filter."""
        await self.connect()

        where, params = self._build_where(filter or {})
        query = f"SELECT body FROM documents WHERE collection = ?{where}"
        params = [collection, *params]

        if sort:
            order_parts = []
            for field, direction in sort:
                order_parts.append(
                    f"{self._field_expr(field, params)} {'DESC' if direction == DESCENDING else 'ASC'}"
                )
            query += " ORDER BY " + ", ".join(order_parts)

        if limit is not None:
            query += " LIMIT ?"
            params.append(int(limit))

        try:
            cursor = await self.connection.execute(query, params)
            rows = await cursor.fetchall()
        except sqlite3.Error as e:
            logger.bind(collection=collection, error=str(e)).error(
                f"Failed to query documents: {e}"
            )
            raise DocumentStoreError(f"Failed to query documents: {e}") from e

        return [self._project(json.loads(row[0]), projection) for row in rows]

    async def find_one(
        self,
        collection: str,
        filter: Filter,
        projection: list[str] | None = None,
    ) -> Document | None:
        """Find the first document matching a filter, or None."""
        results = await self.find(collection, filter, projection=projection, limit=1)
        return results[0] if results else None

    async def replace_one(self, collection: str, filter: Filter, document: Document) -> bool:
        """Replace the first matching document, keeping its id."""
        current = await self.find_one(collection, filter, projection=["id"])
        if current is None:
            return False

        document = {**document, "id": current["id"]}
        try:
            await self.connection.execute(
                "UPDATE documents SET body = ? WHERE collection = ? AND id = ?",
                (self._dumps(document), collection, current["id"]),
            )
            await self.connection.commit()
        except sqlite3.Error as e:
            logger.bind(collection=collection, document_id=current["id"], error=str(e)).error(
                f"Failed to replace document {current['id']}: {e}"
            )
            raise DocumentStoreError(f"Failed to replace document: {e}") from e

        return True

    async def delete_one(self, collection: str, filter: Filter) -> bool:
        """Delete the first matching document."""
        current = await self.find_one(collection, filter, projection=["id"])
        if current is None:
            return False

        try:
            await self.connection.execute(
                "DELETE FROM documents WHERE collection = ? AND id = ?",
                (collection, current["id"]),
            )
            await self.connection.commit()
        except sqlite3.Error as e:
            logger.bind(collection=collection, document_id=current["id"], error=str(e)).error(
                f"Failed to delete document {current['id']}: {e}"
            )
            raise DocumentStoreError(f"Failed to delete document: {e}") from e

        return True

    async def close(self) -> None:
        """Close the connection."""
        if self.connection is not None:
            await self.connection.close()
            self.connection = None

    # ═══════════════════════════════════════════════════════════
    # HELPER METHODS
    # ═══════════════════════════════════════════════════════════

    def _dumps(self, document: Document) -> str:
        return json.dumps(document, default=_json_default)

    def _encode_value(self, value: Any) -> Any:
        if isinstance(value, datetime):
            return encode_datetime(value)
        if isinstance(value, Enum):
            return value.value
        if isinstance(value, bool):
            return int(value)
        return value

    def _field_expr(self, field: str, params: list[Any]) -> str:
        """SQL expression for a document field; appends its JSON path to params."""
        if field == "id":
            return "id"
        if not _FIELD_PATTERN.match(field):
            raise ValidationError(f"Invalid field name: {field}")
        params.append(f"$.{field}")
        return "json_extract(body, ?)"

    def _build_where(self, filter: Filter) -> tuple[str, list[Any]]:
        clauses: list[str] = []
        params: list[Any] = []

        for field, condition in filter.items():
            is_operator = isinstance(condition, dict) and all(
                key.startswith("$") for key in condition
            )
            if is_operator:
                for op, value in condition.items():
                    if op == "$in":
                        values = list(value)
                        if not values:
                            clauses.append("0")
                            continue
                        expr = self._field_expr(field, params)
                        placeholders = ", ".join("?" for _ in values)
                        clauses.append(f"{expr} IN ({placeholders})")
                        params.extend(self._encode_value(v) for v in values)
                    elif op == "$gte":
                        clauses.append(f"{self._field_expr(field, params)} >= ?")
                        params.append(self._encode_value(value))
                    elif op == "$lte":
                        clauses.append(f"{self._field_expr(field, params)} <= ?")
                        params.append(self._encode_value(value))
                    else:
                        raise ValidationError(f"Unsupported filter operator: {op}")
            elif condition is None:
                clauses.append(f"{self._field_expr(field, params)} IS NULL")
            else:
                clauses.append(f"{self._field_expr(field, params)} = ?")
                params.append(self._encode_value(condition))

        where = "".join(f" AND {clause}" for clause in clauses)
        return where, params

    def _project(self, document: Document, projection: list[str] | None) -> Document:
        if not projection:
            return document
        fields = {"id", *projection}
        return {key: value for key, value in document.items() if key in fields}
