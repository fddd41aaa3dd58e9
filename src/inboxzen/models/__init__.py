# Data models for the incremental classification pipeline

from .category import Category, DEFAULT_CATEGORIES, PRIORITY_ORDER, parse_category
from .item import ClassifiedItem, ConversationItem, ItemContent
from .cache import CacheEpoch, ClassificationRecord, PersistedState
from .events import DocumentEvent, EventKind
from .api_models import (
    ClassifyRequest,
    ClassifyResponse,
    HealthResponse,
    VersionInfo,
)

__all__ = [
    "Category",
    "DEFAULT_CATEGORIES",
    "PRIORITY_ORDER",
    "parse_category",
    "ClassifiedItem",
    "ConversationItem",
    "ItemContent",
    "CacheEpoch",
    "ClassificationRecord",
    "PersistedState",
    "DocumentEvent",
    "EventKind",
    "ClassifyRequest",
    "ClassifyResponse",
    "HealthResponse",
    "VersionInfo",
]
