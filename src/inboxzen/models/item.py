"""
Conversation item models.

Items are owned by the external document; the core only reads their content
and keeps derived state keyed by item id.
"""

from pydantic import BaseModel, Field

from .category import Category


class ItemContent(BaseModel):
    """Text extracted from a conversation item by the document adapter."""

    text: str = Field(default="", description="Latest message snippet")
    sender: str = Field(default="", description="Participant names")
    subject: str = Field(default="", description="Conversation subject line")

    model_config = {"frozen": True}


class ConversationItem(BaseModel):
    """A conversation as currently shown by the document."""

    item_id: str = Field(description="Conversation identifier, unique per conversation")
    content: ItemContent = Field(default_factory=ItemContent)
    unread: bool = Field(default=False, description="Unread/notification indicator shown")


class ClassifiedItem(BaseModel):
    """Result emitted to the presentation layer."""

    item_id: str
    category: Category
