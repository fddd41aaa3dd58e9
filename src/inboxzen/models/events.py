"""
Semantic events emitted by the document adapter.

The core never inspects raw mutation records, only these signals.
"""

from enum import Enum

from pydantic import BaseModel, Field


class EventKind(str, Enum):
    """Kinds of document signals the pipeline reacts to."""
    ITEM_ADDED = "item_added"
    ITEM_CHANGED = "item_changed"
    ITEM_REMOVED = "item_removed"
    UNREAD_INDICATOR_APPEARED = "unread_indicator_appeared"
    UNREAD_INDICATOR_REMOVED = "unread_indicator_removed"
    GLOBAL_NOTIFICATION = "global_notification"  # Badge outside any item


class DocumentEvent(BaseModel):
    """A single document signal."""

    kind: EventKind
    item_id: str = Field(default="", description="Empty for global notifications")

    model_config = {"frozen": True}
