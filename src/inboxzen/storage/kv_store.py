"""
Persistent key-value store interface.

Whole-value, key-scoped access: no partial-field transactions are assumed, so
callers read-modify-write whatever they update.
"""

import copy
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, Optional, Union

import structlog

logger = structlog.get_logger(__name__)

Keys = Optional[Union[str, Iterable[str]]]


class StoreError(Exception):
    """Backing store read or write failed."""


def normalize_keys(keys: Keys) -> Optional[list]:
    """None means all keys; a single key becomes a one-element list."""
    if keys is None:
        return None
    if isinstance(keys, str):
        return [keys]
    return list(keys)


class KeyValueStore(ABC):
    """Get/set by key. Values are JSON-compatible."""

    @abstractmethod
    def load(self, keys: Keys = None) -> Dict[str, Any]:
        """
        Load values.

        Args:
            keys: A key, an iterable of keys, or None for everything

        Returns:
            Mapping of the requested keys that exist to their values

        Raises:
            StoreError: If the store cannot be read
        """
        raise NotImplementedError

    @abstractmethod
    def save(self, record: Dict[str, Any]) -> None:
        """
        Upsert every key of record.

        Raises:
            StoreError: If the store cannot be written
        """
        raise NotImplementedError


class InMemoryKeyValueStore(KeyValueStore):
    """
    Process-local store, used by tests and ephemeral sessions.

    Values are deep-copied on the way in and out, like a real serializing store.
    """

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, Any] = copy.deepcopy(initial) if initial else {}

    def load(self, keys: Keys = None) -> Dict[str, Any]:
        wanted = normalize_keys(keys)
        if wanted is None:
            return copy.deepcopy(self._data)
        return {k: copy.deepcopy(self._data[k]) for k in wanted if k in self._data}

    def save(self, record: Dict[str, Any]) -> None:
        for key, value in record.items():
            self._data[key] = copy.deepcopy(value)
        logger.debug("memory_store_saved", keys=sorted(record))
