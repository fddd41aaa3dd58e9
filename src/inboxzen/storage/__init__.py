"""
Persistence package.

- kv_store: key-value store interface and in-memory implementation
- database: SQLAlchemy-backed key-value store
- category_store: versioned, expiring category cache
- preferences: user preferences (API key, AI opt-in, categories)
- channel: request/response channel over the stores
"""

from .kv_store import InMemoryKeyValueStore, KeyValueStore, StoreError
from .category_store import CategoryStore
from .preferences import PreferencesStore, UserPreferences
from .channel import StoreChannel

__all__ = [
    "InMemoryKeyValueStore",
    "KeyValueStore",
    "StoreError",
    "CategoryStore",
    "PreferencesStore",
    "UserPreferences",
    "StoreChannel",
]
