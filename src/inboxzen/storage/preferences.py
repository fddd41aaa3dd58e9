"""
User preferences persisted in the key-value store.

Preferences are read once per session into an immutable UserPreferences value
and re-read on explicit reload; nothing here is module-level state.
"""

from dataclasses import dataclass, field
from typing import List, Optional

import structlog

from inboxzen.models.cache import KEY_API_KEY, KEY_CATEGORIES, KEY_USE_AI, PersistedState
from inboxzen.models.category import DEFAULT_CATEGORIES
from inboxzen.storage.kv_store import KeyValueStore, StoreError


logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class UserPreferences:
    """Settings entered through the settings surface."""
    api_key: str = ""
    use_ai: bool = False
    categories: List[str] = field(default_factory=lambda: list(DEFAULT_CATEGORIES))

    @property
    def remote_configured(self) -> bool:
        """Credential present AND explicit opt-in."""
        return self.use_ai and bool(self.api_key.strip())


class PreferencesStore:
    """Read and write UserPreferences."""

    def __init__(self, backend: KeyValueStore):
        self.backend = backend

    def load(self) -> UserPreferences:
        """
        Load preferences; defaults when the store is unreadable.
        """
        try:
            data = self.backend.load([KEY_API_KEY, KEY_USE_AI, KEY_CATEGORIES])
        except StoreError as e:
            logger.error("preferences_load_failed", error=str(e))
            return UserPreferences()

        state = PersistedState.model_validate({k: v for k, v in data.items() if v is not None})
        return UserPreferences(
            api_key=state.api_key or "",
            use_ai=bool(state.use_ai),
            categories=list(state.categories),
        )

    def save(self, api_key: Optional[str] = None, use_ai: Optional[bool] = None) -> UserPreferences:
        """
        Update the given fields and return the resulting preferences.

        Raises:
            StoreError: If the store cannot be written (the settings surface
                reports this to the user)
        """
        update = {}
        if api_key is not None:
            update[KEY_API_KEY] = api_key.strip()
        if use_ai is not None:
            update[KEY_USE_AI] = bool(use_ai)

        if update:
            self.backend.save(update)
            logger.info("preferences_saved", fields=sorted(update), api_key_set=bool(update.get(KEY_API_KEY)))

        return self.load()

    def initialize_defaults(self) -> None:
        """Install-time defaults for the preference keys."""
        defaults = PersistedState()
        try:
            self.backend.save({
                KEY_CATEGORIES: defaults.categories,
                KEY_API_KEY: defaults.api_key,
                KEY_USE_AI: defaults.use_ai,
            })
            logger.info("preferences_defaults_initialized")
        except StoreError as e:
            logger.error("preferences_defaults_failed", error=str(e))
