"""
Conversation category taxonomy.

A closed enumeration: anything that does not parse into one of these values is
not a category, which keeps remote-answer validation a total function.
"""

from enum import Enum
from typing import Optional


class Category(str, Enum):
    """Categories a conversation can be labelled with."""
    JOB_OFFERS = "Job Offers"
    NETWORKING = "Networking"
    SALES = "Sales"
    SPAM = "Spam"
    OTHER = "Other"

    @property
    def compact(self) -> str:
        """Identifier form without spaces, e.g. "JobOffers"."""
        return self.value.replace(" ", "")


# Tie-break order for the local scorer (first declared wins)
PRIORITY_ORDER = (
    Category.JOB_OFFERS,
    Category.NETWORKING,
    Category.SALES,
    Category.SPAM,
)

DEFAULT_CATEGORIES = [c.value for c in Category]

_LOOKUP = {}
for _category in Category:
    _LOOKUP[_category.value.lower()] = _category
    _LOOKUP[_category.compact.lower()] = _category
    _LOOKUP[_category.name.lower()] = _category


def parse_category(value: Optional[str]) -> Optional[Category]:
    """
    Parse a category from its display label or identifier, case-insensitively.

    Args:
        value: Raw string ("Job Offers", "JobOffers", "job_offers", ...)

    Returns:
        Matching Category, or None if the value is not a known category
    """
    if not isinstance(value, str):
        return None
    return _LOOKUP.get(value.strip().lower())
