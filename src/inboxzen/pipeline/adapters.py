"""
Adapter interfaces at the edges of the pipeline.

- DocumentAdapter: read side of the external, observable document (item
  content, unread flag, typed change events)
- PresentationAdapter: write side (render or remove a category label)

InMemoryDocument and LabelBoard implement them without a real UI; the CLI
replays event logs through them and the tests drive them directly.
"""

import asyncio
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import AsyncIterator, Dict, List, Optional, Tuple

import structlog

from inboxzen.models.category import Category
from inboxzen.models.events import DocumentEvent, EventKind
from inboxzen.models.item import ConversationItem, ItemContent


logger = structlog.get_logger(__name__)


class DocumentAdapter(ABC):
    """Read-only view of the conversation list."""

    @abstractmethod
    def list_item_ids(self) -> List[str]:
        """Ids of the items currently shown, in display order."""
        raise NotImplementedError

    @abstractmethod
    def read_content(self, item_id: str) -> Optional[ItemContent]:
        """Current content of an item, None if it is no longer shown."""
        raise NotImplementedError

    @abstractmethod
    def read_unread_flag(self, item_id: str) -> Optional[bool]:
        """Whether the unread indicator is shown, None if the item is gone."""
        raise NotImplementedError

    @abstractmethod
    def events(self) -> AsyncIterator[DocumentEvent]:
        """Stream of semantic change events."""
        raise NotImplementedError


class PresentationAdapter(ABC):
    """Consumer of classification results."""

    @abstractmethod
    def on_classified(self, item_id: str, category: Category) -> None:
        raise NotImplementedError

    @abstractmethod
    def on_evicted(self, item_id: str) -> None:
        raise NotImplementedError


# ============================================================================
# IN-MEMORY IMPLEMENTATIONS
# ============================================================================

_CLOSED = None


class InMemoryDocument(DocumentAdapter):
    """
    Mutable conversation list that emits events as it is changed.
    """

    def __init__(self, items: Optional[List[ConversationItem]] = None):
        self._items: "OrderedDict[str, ConversationItem]" = OrderedDict()
        self._queue: asyncio.Queue = asyncio.Queue()
        for item in items or []:
            self._items[item.item_id] = item

    # Read side

    def list_item_ids(self) -> List[str]:
        return list(self._items)

    def read_content(self, item_id: str) -> Optional[ItemContent]:
        item = self._items.get(item_id)
        return item.content if item else None

    def read_unread_flag(self, item_id: str) -> Optional[bool]:
        item = self._items.get(item_id)
        return item.unread if item else None

    async def events(self) -> AsyncIterator[DocumentEvent]:
        while True:
            event = await self._queue.get()
            if event is _CLOSED:
                return
            yield event

    # Mutations

    def add_item(
        self,
        item_id: str,
        text: str = "",
        sender: str = "",
        subject: str = "",
        unread: bool = False,
        emit: bool = True,
    ) -> ConversationItem:
        item = ConversationItem(
            item_id=item_id,
            content=ItemContent(text=text, sender=sender, subject=subject),
            unread=unread,
        )
        self._items[item_id] = item
        if emit:
            self.emit(EventKind.ITEM_ADDED, item_id)
        return item

    def update_text(self, item_id: str, text: str, emit: bool = True) -> None:
        item = self._items[item_id]
        content = item.content.model_copy(update={"text": text})
        self._items[item_id] = item.model_copy(update={"content": content})
        if emit:
            self.emit(EventKind.ITEM_CHANGED, item_id)

    def mark_unread(self, item_id: str, emit: bool = True) -> None:
        self._items[item_id] = self._items[item_id].model_copy(update={"unread": True})
        if emit:
            self.emit(EventKind.UNREAD_INDICATOR_APPEARED, item_id)

    def mark_read(self, item_id: str, emit: bool = True) -> None:
        self._items[item_id] = self._items[item_id].model_copy(update={"unread": False})
        if emit:
            self.emit(EventKind.UNREAD_INDICATOR_REMOVED, item_id)

    def remove_item(self, item_id: str, emit: bool = True) -> None:
        self._items.pop(item_id, None)
        if emit:
            self.emit(EventKind.ITEM_REMOVED, item_id)

    def notify_global(self) -> None:
        self.emit(EventKind.GLOBAL_NOTIFICATION)

    def emit(self, kind: EventKind, item_id: str = "") -> None:
        self._queue.put_nowait(DocumentEvent(kind=kind, item_id=item_id))

    def close(self) -> None:
        """End the event stream once queued events are consumed."""
        self._queue.put_nowait(_CLOSED)


class LabelBoard(PresentationAdapter):
    """
    Records the labels currently applied, plus a history of label changes.
    """

    def __init__(self):
        self.labels: Dict[str, Category] = {}
        self.history: List[Tuple[str, str, Optional[Category]]] = []

    def on_classified(self, item_id: str, category: Category) -> None:
        self.labels[item_id] = category
        self.history.append(("classified", item_id, category))

    def on_evicted(self, item_id: str) -> None:
        self.labels.pop(item_id, None)
        self.history.append(("evicted", item_id, None))

    def label(self, item_id: str) -> Optional[Category]:
        return self.labels.get(item_id)
