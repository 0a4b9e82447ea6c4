"""
Selection policy and aggregated context models.

A ContextQuery describes which part of the knowledge base a question is
asked against; an AggregatedContext is what the aggregator found there.
Both are transient and never persisted on their own.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, model_validator


class ContextType(str, Enum):
    """Selection policy over a user's knowledge base."""

    ALL = "all"
    COLLECTION = "collection"
    BOOKMARKS = "bookmarks"
    SPECIFIC = "specific"
    MIXED = "mixed"


class ContextItemType(str, Enum):
    """Kind of an explicitly selected item."""

    CAPTURE = "capture"
    COLLECTION = "collection"


class ContextItem(BaseModel):
    """Explicit selection parameter: a capture or a collection."""

    type: ContextItemType
    id: str


class DateRange(BaseModel):
    """Inclusive creation-date range."""

    start: datetime
    end: datetime

    @model_validator(mode="after")
    def check_order(self) -> "DateRange":
        if self.start > self.end:
            raise ValueError("date_range.start must not be after date_range.end")
        return self


class ContextFilters(BaseModel):
    """Optional filters applied while resolving and retrieving."""

    date_range: DateRange | None = None
    content_types: list[str] | None = None
    limit: int | None = Field(default=None, ge=1, le=100, description="Max retrieved chunks")


class ContextQuery(BaseModel):
    """Input of the context aggregator."""

    user_id: str
    context_type: ContextType
    context_items: list[ContextItem] = Field(default_factory=list)
    query: str
    filters: ContextFilters | None = None


class SourceDescriptor(BaseModel):
    """Lightweight description of a capture in scope."""

    id: str
    type: ContextItemType = ContextItemType.CAPTURE
    title: str
    relevance_score: float


class RetrievedChunk(BaseModel):
    """Text fragment returned by similarity search."""

    text: str
    source_id: str
    source_type: ContextItemType = ContextItemType.CAPTURE
    similarity: float


class AggregatedContext(BaseModel):
    """Resolved scope plus retrieval results for one turn."""

    sources: list[SourceDescriptor] = Field(default_factory=list)
    retrieved_chunks: list[RetrievedChunk] = Field(default_factory=list)
    total_sources: int = 0

    @classmethod
    def empty(cls) -> "AggregatedContext":
        return cls(sources=[], retrieved_chunks=[], total_sources=0)

    @property
    def source_ids(self) -> list[str]:
        return [source.id for source in self.sources]
