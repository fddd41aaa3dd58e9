"""
Cache models: per-item classification records, the global cache epoch and the
persisted key-value layout.

The persisted layout keeps the camelCase keys used by the extension storage so
an existing store can be read as-is.
"""

from datetime import datetime, timezone
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from .category import Category, DEFAULT_CATEGORIES


# Persisted keys
KEY_CATEGORIES = "categories"
KEY_API_KEY = "apiKey"
KEY_USE_AI = "useAI"
KEY_CACHED_CLASSIFICATIONS = "cachedClassifications"
KEY_CACHE_VERSION = "cacheVersion"
KEY_CACHE_EXPIRY = "cacheExpiry"

EPOCH_KEYS = [KEY_CACHE_VERSION, KEY_CACHE_EXPIRY]


def to_epoch_millis(moment: datetime) -> int:
    """Convert an aware datetime to epoch milliseconds."""
    return int(moment.timestamp() * 1000)


def from_epoch_millis(millis: int) -> datetime:
    """Convert epoch milliseconds to an aware UTC datetime."""
    return datetime.fromtimestamp(millis / 1000, tz=timezone.utc)


class ClassificationRecord(BaseModel):
    """The single cached classification of one item."""

    item_id: str
    category: Category
    written_at: Optional[datetime] = Field(
        default=None,
        description="When this session wrote the record (None if loaded from storage)",
    )


class CacheEpoch(BaseModel):
    """Validity stamp covering the whole category store."""

    version: int = Field(ge=0, description="Cache schema version the records were written under")
    expiry: datetime = Field(description="Records are invalid from this instant on")

    model_config = {"frozen": True}

    def is_valid(self, now: datetime, expected_version: int) -> bool:
        """True while now < expiry and version >= expected_version."""
        return now < self.expiry and self.version >= expected_version

    def to_storage(self) -> Dict[str, int]:
        return {
            KEY_CACHE_VERSION: self.version,
            KEY_CACHE_EXPIRY: to_epoch_millis(self.expiry),
        }

    @classmethod
    def from_storage(cls, data: Dict) -> "CacheEpoch":
        """
        Build an epoch from persisted keys.

        Missing keys yield version 0 and an expiry at the Unix epoch, i.e. an
        epoch that is always invalid.
        """
        version = data.get(KEY_CACHE_VERSION) or 0
        expiry = data.get(KEY_CACHE_EXPIRY) or 0
        return cls(version=int(version), expiry=from_epoch_millis(int(expiry)))


class PersistedState(BaseModel):
    """Everything the key-value store holds, keyed as in storage."""

    categories: List[str] = Field(default_factory=lambda: list(DEFAULT_CATEGORIES))
    api_key: str = Field(default="", alias=KEY_API_KEY)
    use_ai: bool = Field(default=False, alias=KEY_USE_AI)
    cached_classifications: Dict[str, str] = Field(
        default_factory=dict, alias=KEY_CACHED_CLASSIFICATIONS
    )
    cache_version: int = Field(default=0, alias=KEY_CACHE_VERSION)
    cache_expiry: int = Field(default=0, alias=KEY_CACHE_EXPIRY)

    model_config = {"populate_by_name": True}

    def to_storage(self) -> Dict:
        return self.model_dump(by_alias=True)
