"""
Scope resolution: selection policy -> set of capture IDs.

Policies:
- all: every active capture of the user (optionally date/format filtered)
- collection: members of the referenced collections
- bookmarks: active bookmarked captures
- specific: explicitly chosen captures, re-verified for ownership
- mixed: collection ∪ specific
"""

import asyncio

from brainchat.config import ChatConfig
from brainchat.core.document_store.base import DESCENDING, DocumentStore, Filter
from brainchat.models.capture import CAPTURES, COLLECTIONS, CaptureStatus
from brainchat.models.context import ContextFilters, ContextItem, ContextItemType, ContextType
from brainchat.utils.exceptions import AggregationError, StoreError, ValidationError
from brainchat.utils.logger import get_logger

logger = get_logger(__name__)


def _dedupe(ids: list[str]) -> list[str]:
    """Drop duplicates keeping first-seen order."""
    return list(dict.fromkeys(ids))


class ScopeResolver:
    """
    Turns a selection policy and its parameters into the capture IDs in scope.

    Every returned ID belongs to an active capture owned by the requesting
    user. An empty result is valid.
    """

    def __init__(self, document_store: DocumentStore, config: ChatConfig | None = None):
        self.store = document_store
        self.config = config or ChatConfig()

    async def resolve(
        self,
        user_id: str,
        context_type: ContextType,
        context_items: list[ContextItem] | None = None,
        filters: ContextFilters | None = None,
    ) -> list[str]:
        """
        Resolve a selection policy for a user.

        Args:
            user_id: Requesting user
            context_type: Selection policy
            context_items: Explicit capture/collection items
            filters: Optional date range and content type filters

        Returns:
            Ordered, de-duplicated capture IDs

        Raises:
            ValidationError: If the policy is unknown
            AggregationError: If the document store fails
        """
        try:
            context_type = ContextType(context_type)
        except ValueError as e:
            raise ValidationError(f"Invalid context type: {context_type}") from e

        items = context_items or []

        try:
            if context_type == ContextType.ALL:
                return await self._resolve_all(user_id, filters)
            if context_type == ContextType.COLLECTION:
                return await self._resolve_collections(user_id, items)
            if context_type == ContextType.BOOKMARKS:
                return await self._resolve_bookmarks(user_id, filters)
            if context_type == ContextType.SPECIFIC:
                return await self._resolve_specific(user_id, items)
            if context_type == ContextType.MIXED:
                from_collections, specific = await asyncio.gather(
                    self._resolve_collections(user_id, items),
                    self._resolve_specific(user_id, items),
                )
                return _dedupe(from_collections + specific)
        except StoreError as e:
            logger.bind(
                user_id=user_id,
                context_type=context_type.value,
                operation="resolve_scope",
                error=str(e),
            ).error(f"Scope resolution failed: {e}")
            raise AggregationError(
                f"Failed to resolve {context_type.value} scope: {e}",
                context={"user_id": user_id, "context_type": context_type.value},
            ) from e

        raise ValidationError(f"Unsupported context type: {context_type.value}")

    async def _resolve_all(self, user_id: str, filters: ContextFilters | None) -> list[str]:
        query = self._active_captures_filter(user_id)
        self._apply_filters(query, filters, content_types=True)

        docs = await self.store.find(
            CAPTURES,
            query,
            projection=["id"],
            sort=[("created_at", DESCENDING)],
            limit=self.config.max_all_captures,
        )
        return [doc["id"] for doc in docs]

    async def _resolve_bookmarks(self, user_id: str, filters: ContextFilters | None) -> list[str]:
        query = self._active_captures_filter(user_id)
        query["bookmarked"] = True
        self._apply_filters(query, filters, content_types=False)

        docs = await self.store.find(
            CAPTURES,
            query,
            projection=["id"],
            sort=[("created_at", DESCENDING)],
            limit=self.config.max_bookmarked_captures,
        )
        return [doc["id"] for doc in docs]

    async def _resolve_collections(self, user_id: str, items: list[ContextItem]) -> list[str]:
        collection_ids = _dedupe(
            [item.id for item in items if item.type == ContextItemType.COLLECTION]
        )
        if not collection_ids:
            return []

        collections = await self.store.find(
            COLLECTIONS,
            {"id": {"$in": collection_ids}, "user": user_id},
            projection=["captures"],
        )
        # Keep the order in which the collections were requested
        by_id = {doc["id"]: doc for doc in collections}
        members = _dedupe(
            [
                capture_id
                for collection_id in collection_ids
                if collection_id in by_id
                for capture_id in by_id[collection_id].get("captures", [])
            ]
        )
        return await self._owned_active(user_id, members)

    async def _resolve_specific(self, user_id: str, items: list[ContextItem]) -> list[str]:
        requested = _dedupe([item.id for item in items if item.type == ContextItemType.CAPTURE])
        return await self._owned_active(user_id, requested)

    async def _owned_active(self, user_id: str, capture_ids: list[str]) -> list[str]:
        """Filter IDs down to active captures owned by the user, keeping order."""
        if not capture_ids:
            return []

        query = self._active_captures_filter(user_id)
        query["id"] = {"$in": capture_ids}
        docs = await self.store.find(CAPTURES, query, projection=["id"])

        verified = {doc["id"] for doc in docs}
        return [capture_id for capture_id in capture_ids if capture_id in verified]

    def _active_captures_filter(self, user_id: str) -> Filter:
        return {"owner": user_id, "status": CaptureStatus.ACTIVE.value}

    def _apply_filters(
        self, query: Filter, filters: ContextFilters | None, content_types: bool
    ) -> None:
        if filters is None:
            return
        if filters.date_range is not None:
            query["created_at"] = {
                "$gte": filters.date_range.start,
                "$lte": filters.date_range.end,
            }
        if content_types and filters.content_types:
            query["format"] = {"$in": filters.content_types}
