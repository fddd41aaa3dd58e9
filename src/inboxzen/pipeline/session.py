"""
Session bootstrap.

A session owns the per-user state that the pipeline, the HTTP service and the
CLI share: the key-value backend, the category store, the user preferences and
the classifier built from them. Nothing here is module-level state; the
environment `settings` object only supplies deployment defaults.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional

import structlog

from inboxzen.classification.classifier import ConversationClassifier
from inboxzen.classification.remote_client import RemoteClassifier, create_remote_classifier
from inboxzen.config import Settings, settings as default_settings
from inboxzen.pipeline.adapters import DocumentAdapter, PresentationAdapter
from inboxzen.pipeline.orchestrator import Pipeline
from inboxzen.storage.category_store import CategoryStore
from inboxzen.storage.channel import StoreChannel
from inboxzen.storage.kv_store import KeyValueStore
from inboxzen.storage.preferences import PreferencesStore, UserPreferences
from inboxzen.tracking.scheduler import Sleeper


logger = structlog.get_logger(__name__)


RemoteFactory = Callable[[UserPreferences], Optional[RemoteClassifier]]


def default_remote_factory(prefs: UserPreferences) -> Optional[RemoteClassifier]:
    return create_remote_classifier(
        api_key=prefs.api_key,
        use_ai=prefs.use_ai,
        categories=prefs.categories,
    )


@dataclass
class SessionContext:
    """Everything one session needs, built once at bootstrap."""
    settings: Settings
    backend: KeyValueStore
    store: CategoryStore
    preferences_store: PreferencesStore
    preferences: UserPreferences
    classifier: ConversationClassifier
    remote_factory: RemoteFactory = default_remote_factory
    retired_remotes: List[RemoteClassifier] = field(default_factory=list)

    def reload(self) -> UserPreferences:
        """Re-read preferences from the store and rebuild the classifier."""
        return self.apply_preferences(self.preferences_store.load())

    def apply_preferences(self, prefs: UserPreferences) -> UserPreferences:
        previous = self.classifier.remote
        self.preferences = prefs
        self.classifier.remote = self.remote_factory(prefs)
        logger.info(
            "session_preferences_applied",
            use_ai=prefs.use_ai,
            remote_enabled=self.classifier.remote_enabled,
        )
        if previous is not None and previous is not self.classifier.remote:
            self.retired_remotes.append(previous)
        return prefs

    def channel(self) -> StoreChannel:
        """Store channel whose saveSettings action refreshes this session."""
        return StoreChannel(
            categories=self.store,
            preferences=self.preferences_store,
            on_preferences_saved=self.apply_preferences,
        )

    async def aclose(self) -> None:
        while self.retired_remotes:
            await self.retired_remotes.pop().aclose()
        if self.classifier.remote is not None:
            await self.classifier.remote.aclose()


def create_backend(config: Optional[Settings] = None) -> KeyValueStore:
    """SQL key-value store at settings.store_url."""
    # Imported here so the in-memory paths never touch SQLAlchemy engines
    from inboxzen.storage.database import SqlKeyValueStore

    config = config or default_settings
    return SqlKeyValueStore(url=config.store_url, echo=config.store_echo_sql)


def open_session(
    backend: Optional[KeyValueStore] = None,
    config: Optional[Settings] = None,
    clock: Optional[Callable[[], datetime]] = None,
    remote_factory: Optional[RemoteFactory] = None,
) -> SessionContext:
    """
    Bootstrap a session: validate the cache epoch, load the cache mirror and
    the user preferences, build the classifier.

    Args:
        backend: Key-value store (default: SQL store at settings.store_url)
        config: Settings to use (default: global settings)
        clock: Injectable clock for the cache epoch
        remote_factory: Builds the remote classifier from preferences

    Returns:
        SessionContext
    """
    config = config or default_settings
    backend = backend if backend is not None else create_backend(config)
    remote_factory = remote_factory or default_remote_factory

    store = CategoryStore(
        backend,
        expected_version=config.cache_version,
        clock=clock,
    )
    store.bootstrap()

    preferences_store = PreferencesStore(backend)
    prefs = preferences_store.load()

    classifier = ConversationClassifier(
        remote=remote_factory(prefs),
        remote_timeout_seconds=config.remote_timeout_seconds,
    )

    logger.info(
        "session_opened",
        cached_count=store.count(),
        remote_enabled=classifier.remote_enabled,
        cache_version=store.expected_version,
    )

    return SessionContext(
        settings=config,
        backend=backend,
        store=store,
        preferences_store=preferences_store,
        preferences=prefs,
        classifier=classifier,
        remote_factory=remote_factory,
    )


def install(backend: KeyValueStore, clock: Optional[Callable[[], datetime]] = None) -> CategoryStore:
    """
    First-install hook: default preferences plus an empty cache with a fresh
    epoch.
    """
    PreferencesStore(backend).initialize_defaults()
    store = CategoryStore(backend, clock=clock)
    store.clear()
    logger.info("installed", cache_version=store.expected_version)
    return store


def build_pipeline(
    session: SessionContext,
    document: DocumentAdapter,
    presentation: PresentationAdapter,
    sleep: Optional[Sleeper] = None,
) -> Pipeline:
    """Pipeline over a document, using the session's store and classifier."""
    config = session.settings
    return Pipeline(
        document=document,
        presentation=presentation,
        classifier=session.classifier,
        store=session.store,
        max_retries=config.snippet_max_retries,
        interval_seconds=config.snippet_check_interval_ms / 1000,
        global_notification_delay_seconds=config.global_notification_delay_ms / 1000,
        sleep=sleep,
    )
