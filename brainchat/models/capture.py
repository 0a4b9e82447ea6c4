"""
Capture and Collection models.

Captures are the stored units of user content; collections group captures.
Both are owned by the storage layer and read-only to the chat pipeline.
"""

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, Field

CAPTURES = "captures"
COLLECTIONS = "collections"


class CaptureStatus(str, Enum):
    """Capture lifecycle status."""

    ACTIVE = "active"
    ARCHIVED = "archived"
    DELETED = "deleted"


class Capture(BaseModel):
    """
    A saved piece of user content (article, note, video transcript, ...).

    Only `active` captures take part in brain chat context.
    """

    id: str = Field(..., description="Unique capture ID")
    owner: str = Field(..., description="Owner user ID")
    title: str | None = Field(default=None, description="Capture title")
    url: str | None = Field(default=None, description="Source URL")
    content: str = Field(default="", description="Clean text content")
    format: str = Field(default="article", description="Content type")
    bookmarked: bool = Field(default=False, description="Bookmarked by the owner")
    status: CaptureStatus = Field(default=CaptureStatus.ACTIVE, description="Lifecycle status")
    summary: str | None = Field(default=None, description="AI summary (written elsewhere)")
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class Collection(BaseModel):
    """A named group of captures owned by one user."""

    id: str = Field(..., description="Unique collection ID")
    user: str = Field(..., description="Owner user ID")
    name: str = Field(..., description="Collection name")
    description: str | None = None
    captures: list[str] = Field(default_factory=list, description="Member capture IDs")
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
