"""
Category store: persistent item id → category map guarded by a cache epoch.

The store keeps a session-local mirror of the persisted map and writes every
change through to the key-value store with a read-modify-write of the
cachedClassifications key.

Epoch policy:
- Records are valid only while now < expiry and stored version >= expected
  version. Otherwise the whole map is cleared and a fresh epoch written.
- TTL defaults to 7 days from the last clear.
- Raising the expected version (settings.cache_version) forces every installed
  copy to clear on its next bootstrap, even inside the TTL.

Backing-store failures never propagate: they are logged and the store behaves
as if no cache were available for that operation.
"""

from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional

import structlog

from inboxzen.config import settings
from inboxzen.models.cache import (
    EPOCH_KEYS,
    KEY_CACHED_CLASSIFICATIONS,
    CacheEpoch,
    ClassificationRecord,
)
from inboxzen.models.category import Category, parse_category
from inboxzen.storage.kv_store import KeyValueStore, StoreError


logger = structlog.get_logger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CategoryStore:
    """
    Versioned, expiring cache of conversation categories.
    """

    def __init__(
        self,
        backend: KeyValueStore,
        ttl: Optional[timedelta] = None,
        expected_version: Optional[int] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.backend = backend
        self.ttl = ttl if ttl is not None else timedelta(days=settings.cache_ttl_days)
        self.expected_version = (
            expected_version if expected_version is not None else settings.cache_version
        )
        self.clock = clock or utc_now

        self._records: Dict[str, ClassificationRecord] = {}
        self._epoch: Optional[CacheEpoch] = None

        self.logger = logger.bind(component="category_store")

    # ------------------------------------------------------------------
    # Epoch
    # ------------------------------------------------------------------

    @property
    def epoch(self) -> Optional[CacheEpoch]:
        """Epoch in effect, None before bootstrap."""
        return self._epoch

    def validate_epoch(self) -> bool:
        """
        Check the stored epoch against the expected version and the clock.

        Clears the store and writes a fresh epoch when it is invalid (or
        unreadable).

        Returns:
            True if the stored epoch was valid, False if the store was cleared
        """
        try:
            data = self.backend.load(EPOCH_KEYS)
        except StoreError as e:
            self.logger.error("cache_epoch_unreadable", error=str(e))
            self.clear()
            return False

        stored = CacheEpoch.from_storage(data)
        now = self.clock()

        if stored.is_valid(now, self.expected_version):
            self._epoch = stored
            return True

        self.logger.info(
            "cache_epoch_invalid",
            expired=now >= stored.expiry,
            version_mismatch=stored.version < self.expected_version,
            stored_version=stored.version,
            expected_version=self.expected_version,
        )
        self.clear()
        return False

    def bootstrap(self) -> bool:
        """
        Validate the epoch, then load the persisted map into the mirror.

        Call once per session before trusting get().

        Returns:
            Result of validate_epoch()
        """
        valid = self.validate_epoch()
        if not valid:
            return False

        try:
            data = self.backend.load(KEY_CACHED_CLASSIFICATIONS)
        except StoreError as e:
            self.logger.error("cache_load_failed", error=str(e))
            self._records = {}
            return valid

        records = {}
        for item_id, raw_category in (data.get(KEY_CACHED_CLASSIFICATIONS) or {}).items():
            category = parse_category(raw_category)
            if category is None:
                self.logger.warning("cache_entry_unknown_category", item_id=item_id, category=raw_category)
                continue
            records[item_id] = ClassificationRecord(item_id=item_id, category=category)

        self._records = records
        self.logger.info("cache_loaded", count=len(records))
        return valid

    def _epoch_expired(self) -> bool:
        return self._epoch is not None and not self._epoch.is_valid(
            self.clock(), self.expected_version
        )

    def _ensure_valid_epoch(self) -> None:
        """Eviction protocol, run before any write."""
        if self._epoch is None:
            self.bootstrap()
        elif self._epoch_expired():
            self.logger.info("cache_epoch_expired_mid_session")
            self.clear()

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------

    def get(self, item_id: str) -> Optional[Category]:
        """Cached category for an item, None if absent."""
        if self._epoch_expired():
            self.logger.info("cache_epoch_expired_mid_session")
            self.clear()
            return None

        record = self._records.get(item_id)
        return record.category if record else None

    def get_record(self, item_id: str) -> Optional[ClassificationRecord]:
        return self._records.get(item_id)

    def set(self, item_id: str, category: Category) -> None:
        """
        Upsert the category of an item.

        Runs the eviction protocol first if the epoch is no longer valid.
        """
        self._ensure_valid_epoch()

        self._records[item_id] = ClassificationRecord(
            item_id=item_id,
            category=category,
            written_at=self.clock(),
        )

        try:
            cache = self._load_persisted_map()
            cache[item_id] = category.value
            self.backend.save({KEY_CACHED_CLASSIFICATIONS: cache})
            self.logger.debug("cache_entry_updated", item_id=item_id, category=category.value)
        except StoreError as e:
            self.logger.warning("cache_entry_update_failed", item_id=item_id, error=str(e))

    def delete(self, item_id: str) -> None:
        """Drop the record of an item (read, or no longer needs a label)."""
        self._records.pop(item_id, None)

        try:
            cache = self._load_persisted_map()
            if item_id not in cache:
                self.logger.debug("cache_entry_not_found", item_id=item_id)
                return
            del cache[item_id]
            self.backend.save({KEY_CACHED_CLASSIFICATIONS: cache})
            self.logger.debug("cache_entry_deleted", item_id=item_id)
        except StoreError as e:
            self.logger.warning("cache_entry_delete_failed", item_id=item_id, error=str(e))

    def clear(self, bump_version: bool = False) -> None:
        """
        Drop all records and issue a fresh epoch.

        Args:
            bump_version: Increment the expected version first, invalidating
                entries written under the previous one everywhere
        """
        if bump_version:
            self.expected_version += 1

        self._records = {}
        self._epoch = CacheEpoch(
            version=self.expected_version,
            expiry=self.clock() + self.ttl,
        )

        record = {KEY_CACHED_CLASSIFICATIONS: {}}
        record.update(self._epoch.to_storage())

        try:
            self.backend.save(record)
            self.logger.info(
                "cache_cleared",
                version=self._epoch.version,
                expiry=self._epoch.expiry.isoformat(),
            )
        except StoreError as e:
            self.logger.error("cache_clear_failed", error=str(e))

    def count(self) -> int:
        return len(self._records)

    def records(self) -> List[ClassificationRecord]:
        return list(self._records.values())

    def __contains__(self, item_id: str) -> bool:
        return item_id in self._records

    def _load_persisted_map(self) -> Dict[str, str]:
        data = self.backend.load(KEY_CACHED_CLASSIFICATIONS)
        return dict(data.get(KEY_CACHED_CLASSIFICATIONS) or {})
