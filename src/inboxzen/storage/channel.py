"""
Request/response channel between the detection logic and the persistent store.

Each request names an action; the channel answers with a StoreResponse and
never raises. Unknown actions are answered with success=False.
"""

from typing import Callable, Dict, Optional

import structlog

from inboxzen.models.api_models import StoreRequest, StoreResponse
from inboxzen.models.category import parse_category
from inboxzen.storage.category_store import CategoryStore
from inboxzen.storage.kv_store import StoreError
from inboxzen.storage.preferences import PreferencesStore, UserPreferences


logger = structlog.get_logger(__name__)


ACTION_GET_SETTINGS = "getSettings"
ACTION_SAVE_SETTINGS = "saveSettings"
ACTION_UPDATE_CACHE_ENTRY = "updateCacheEntry"
ACTION_DELETE_CACHE_ENTRY = "deleteCacheEntry"
ACTION_CLEAR_CACHE = "clearCache"


class StoreChannel:
    """Dispatches store requests to the category and preference stores."""

    def __init__(
        self,
        categories: CategoryStore,
        preferences: PreferencesStore,
        on_preferences_saved: Optional[Callable[[UserPreferences], None]] = None,
    ):
        self.categories = categories
        self.preferences = preferences
        self.on_preferences_saved = on_preferences_saved

        self._handlers: Dict[str, Callable[[StoreRequest], StoreResponse]] = {
            ACTION_GET_SETTINGS: self._get_settings,
            ACTION_SAVE_SETTINGS: self._save_settings,
            ACTION_UPDATE_CACHE_ENTRY: self._update_cache_entry,
            ACTION_DELETE_CACHE_ENTRY: self._delete_cache_entry,
            ACTION_CLEAR_CACHE: self._clear_cache,
        }

    def handle(self, request: StoreRequest) -> StoreResponse:
        """
        Handle one request.

        Args:
            request: StoreRequest naming the action and its arguments

        Returns:
            StoreResponse (success=False with an error message on failure)
        """
        handler = self._handlers.get(request.action)
        if handler is None:
            logger.info("store_channel_unknown_action", action=request.action)
            return StoreResponse(success=False, error=f"Unknown action: {request.action}")

        try:
            return handler(request)
        except (StoreError, ValueError) as e:
            logger.error("store_channel_action_failed", action=request.action, error=str(e))
            return StoreResponse(success=False, error=str(e))

    def _get_settings(self, request: StoreRequest) -> StoreResponse:
        return StoreResponse(success=True, settings=self.categories.backend.load())

    def _save_settings(self, request: StoreRequest) -> StoreResponse:
        prefs = self.preferences.save(api_key=request.api_key, use_ai=request.use_ai)
        if self.on_preferences_saved is not None:
            self.on_preferences_saved(prefs)
        return StoreResponse(success=True)

    def _update_cache_entry(self, request: StoreRequest) -> StoreResponse:
        if not request.conversation_id:
            raise ValueError("conversationId is required")
        category = parse_category(request.category)
        if category is None:
            raise ValueError(f"Unknown category: {request.category}")

        logger.debug("store_channel_update_cache_entry", item_id=request.conversation_id)
        self.categories.set(request.conversation_id, category)
        return StoreResponse(success=True)

    def _delete_cache_entry(self, request: StoreRequest) -> StoreResponse:
        if not request.conversation_id:
            raise ValueError("conversationId is required")

        logger.debug("store_channel_delete_cache_entry", item_id=request.conversation_id)
        self.categories.delete(request.conversation_id)
        return StoreResponse(success=True)

    def _clear_cache(self, request: StoreRequest) -> StoreResponse:
        self.categories.clear()
        return StoreResponse(success=True)
