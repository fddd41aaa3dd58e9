"""
Global pytest fixtures and configuration for test suite.

This module provides reusable fixtures for:
- An injectable clock and a no-op sleep (deterministic polling)
- In-memory key-value backend, category store and session
- A fake remote classifier
- Pipeline wired to an in-memory document and label board
- HTTP client bound to a test session
"""

from datetime import datetime, timedelta, timezone
from typing import List
from unittest.mock import AsyncMock, Mock

import pytest
from fastapi.testclient import TestClient

from inboxzen.api.app import app
from inboxzen.api.dependencies import get_session
from inboxzen.classification.classifier import ConversationClassifier
from inboxzen.classification.remote_client import RemoteClassifier
from inboxzen.config import Settings
from inboxzen.pipeline.adapters import InMemoryDocument, LabelBoard
from inboxzen.pipeline.orchestrator import Pipeline
from inboxzen.pipeline.session import install, open_session
from inboxzen.storage.category_store import CategoryStore
from inboxzen.storage.kv_store import InMemoryKeyValueStore

from .fixtures.conversations import CONVERSATIONS


class FixedClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now = self.now + delta


class RecordingSleep:
    """Awaitable sleep that returns immediately and records requested delays."""

    def __init__(self):
        self.calls: List[float] = []
        self.hooks = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        for hook in list(self.hooks):
            hook(len(self.calls))


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def no_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def mock_settings() -> Settings:
    """
    Settings with test configuration.

    Returns:
        Settings instance (in-memory friendly, console logs)
    """
    return Settings(
        store_url="sqlite://",
        log_level="INFO",
        log_json=False,
        cache_version=2,
        snippet_max_retries=10,
        snippet_check_interval_ms=250,
        global_notification_delay_ms=2000,
    )


@pytest.fixture
def backend() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def installed_backend(backend, clock) -> InMemoryKeyValueStore:
    """Backend after the first-install hook ran."""
    install(backend, clock=clock)
    return backend


@pytest.fixture
def store(installed_backend, clock) -> CategoryStore:
    category_store = CategoryStore(installed_backend, expected_version=2, clock=clock)
    category_store.bootstrap()
    return category_store


@pytest.fixture
def fake_remote() -> Mock:
    """Remote classifier answering "Sales" unless told otherwise."""
    remote = Mock(spec=RemoteClassifier)
    remote.provider = "fake"
    remote.classify = AsyncMock(return_value="Sales")
    remote.aclose = AsyncMock()
    return remote


@pytest.fixture
def classifier() -> ConversationClassifier:
    """Local-only classifier."""
    return ConversationClassifier(remote=None)


@pytest.fixture
def document() -> InMemoryDocument:
    return InMemoryDocument()


@pytest.fixture
def board() -> LabelBoard:
    return LabelBoard()


@pytest.fixture
def pipeline(document, board, classifier, store, no_sleep) -> Pipeline:
    return Pipeline(
        document=document,
        presentation=board,
        classifier=classifier,
        store=store,
        max_retries=10,
        interval_seconds=0.25,
        global_notification_delay_seconds=2.0,
        sleep=no_sleep,
    )


@pytest.fixture
def session(installed_backend, mock_settings, clock):
    return open_session(
        backend=installed_backend,
        config=mock_settings,
        clock=clock,
        remote_factory=lambda prefs: None,
    )


@pytest.fixture
def client(session):
    """Test client for the FastAPI app, bound to the test session."""
    app.dependency_overrides[get_session] = lambda: session
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def sample_conversations():
    return CONVERSATIONS
