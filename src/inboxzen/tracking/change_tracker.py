"""
Change tracker: last classified snippet per item.

A change is meaningful when the current text differs from the last committed
fingerprint and is not empty. Never-seen items count as previously empty.
Empty text means "not rendered yet", never "empty message".
"""

from typing import Dict, Optional


class ChangeTracker:
    """In-memory item id → fingerprint map."""

    def __init__(self):
        self._fingerprints: Dict[str, str] = {}

    def has_meaningful_change(self, item_id: str, current_text: str) -> bool:
        if not current_text:
            return False
        return current_text != self._fingerprints.get(item_id, "")

    def commit(self, item_id: str, current_text: str) -> None:
        """
        Record the text about to be classified.

        Call exactly once, immediately before dispatching classification, so a
        concurrent signal on the same content sees it as unchanged.
        """
        self._fingerprints[item_id] = current_text

    def fingerprint(self, item_id: str) -> Optional[str]:
        return self._fingerprints.get(item_id)

    def forget(self, item_id: str) -> bool:
        """Drop an item's fingerprint. Returns whether one existed."""
        return self._fingerprints.pop(item_id, None) is not None

    def __contains__(self, item_id: str) -> bool:
        return item_id in self._fingerprints

    def __len__(self) -> int:
        return len(self._fingerprints)
