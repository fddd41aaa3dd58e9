"""
Category filtering over applied labels.

Filtering is a pure read-side query: it never classifies and never touches
the category store. Items labelled with the requested category are visible,
every other item (unlabelled ones included) is hidden.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from inboxzen.models.category import Category


# Ctrl+<key> shortcuts of the conversation list
FILTER_SHORTCUTS: Dict[str, Category] = {
    "j": Category.JOB_OFFERS,
    "n": Category.NETWORKING,
    "s": Category.SALES,
    "p": Category.SPAM,
    "o": Category.OTHER,
}


def shortcut_category(key: str) -> Optional[Category]:
    """Category bound to a shortcut key, None if unbound."""
    if not key:
        return None
    return FILTER_SHORTCUTS.get(key.lower())


@dataclass
class FilterView:
    """Visibility of items under a filter (category None = no filter)."""
    category: Optional[Category]
    visible: List[str] = field(default_factory=list)
    hidden: List[str] = field(default_factory=list)


def apply_filter(
    item_ids: Iterable[str],
    labels: Dict[str, Category],
    category: Optional[Category],
) -> FilterView:
    """
    Split items into visible and hidden for a category.

    Args:
        item_ids: Items in display order
        labels: Currently applied labels
        category: Category to show, None to show everything

    Returns:
        FilterView
    """
    view = FilterView(category=category)
    for item_id in item_ids:
        if category is None or labels.get(item_id) == category:
            view.visible.append(item_id)
        else:
            view.hidden.append(item_id)
    return view
