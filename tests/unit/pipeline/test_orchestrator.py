"""
Unit tests for the pipeline orchestrator.

Polling uses a sleep that returns immediately, so every scenario is
deterministic.
"""

import asyncio
from unittest.mock import AsyncMock, Mock

import pytest

from inboxzen.classification.classifier import ConversationClassifier
from inboxzen.models.cache import KEY_CACHED_CLASSIFICATIONS
from inboxzen.models.category import Category
from inboxzen.models.events import DocumentEvent, EventKind
from inboxzen.pipeline.orchestrator import Pipeline
from inboxzen.storage.category_store import CategoryStore
from inboxzen.tracking.scheduler import PollStatus

from tests.fixtures.conversations import snippet


JOB = snippet("job_offer")
SALES = snippet("sales")
SPAM = snippet("spam")
NETWORKING = snippet("networking")
GREETING = snippet("greeting")


class TestInitialScan:
    """First scan of a session."""

    @pytest.mark.asyncio
    async def test_classifies_unread_items_only(self, pipeline, document, board, store):
        document.add_item("c1", text=JOB, unread=True, emit=False)
        document.add_item("c2", text=SALES, unread=False, emit=False)

        results = await pipeline.on_initial_scan()

        assert [(r.item_id, r.category) for r in results] == [("c1", Category.JOB_OFFERS)]
        assert results[0].model_dump() == {"item_id": "c1", "category": Category.JOB_OFFERS}
        assert board.label("c1") == Category.JOB_OFFERS
        assert board.label("c2") is None
        assert store.get("c1") == Category.JOB_OFFERS
        assert store.get("c2") is None

    @pytest.mark.asyncio
    async def test_read_item_keeps_cached_label(self, pipeline, document, board, store):
        store.set("c2", Category.NETWORKING)
        document.add_item("c2", text=SALES, unread=False, emit=False)

        await pipeline.on_initial_scan()

        assert board.label("c2") == Category.NETWORKING

    @pytest.mark.asyncio
    async def test_unread_item_reclassified_despite_cache(self, pipeline, document, board, store):
        """Cached as Sales from a previous session, now unread with new content."""
        store.set("c1", Category.SALES)
        document.add_item("c1", text=JOB, unread=True, emit=False)

        await pipeline.on_scan()

        assert board.label("c1") == Category.JOB_OFFERS
        assert store.get("c1") == Category.JOB_OFFERS

    @pytest.mark.asyncio
    async def test_commits_fingerprint_for_unread_items(self, pipeline, document):
        document.add_item("c1", text=SPAM, unread=True, emit=False)

        await pipeline.on_initial_scan()

        assert pipeline.tracker.fingerprint("c1") == SPAM

    @pytest.mark.asyncio
    async def test_explicit_item_ids(self, pipeline, document, board):
        document.add_item("c1", text=JOB, unread=True, emit=False)
        document.add_item("c2", text=SPAM, unread=True, emit=False)

        await pipeline.on_initial_scan(["c2", "missing"])

        assert board.labels == {"c2": Category.SPAM}

    @pytest.mark.asyncio
    async def test_failing_item_does_not_stop_scan(self, pipeline, document, board):
        document.add_item("c1", text=JOB, unread=True, emit=False)
        document.add_item("c2", text=SPAM, unread=True, emit=False)
        original = pipeline.classifier.classify

        async def flaky(text, sender="", subject=""):
            if text == JOB:
                raise RuntimeError("renderer crashed")
            return await original(text, sender, subject)

        pipeline.classifier.classify = flaky

        results = await pipeline.on_initial_scan()

        assert [r.item_id for r in results] == ["c2"]
        assert board.label("c2") == Category.SPAM


class TestSubsequentScan:

    @pytest.mark.asyncio
    async def test_read_item_without_cache_loses_label(self, pipeline, document, board, store):
        document.add_item("c1", text=JOB, unread=True, emit=False)
        await pipeline.on_initial_scan()

        document.mark_read("c1", emit=False)
        store.delete("c1")
        await pipeline.on_scan()

        assert board.label("c1") is None
        assert pipeline.label("c1") is None

    @pytest.mark.asyncio
    async def test_remote_used_only_when_inconclusive(self, document, board, store, fake_remote, no_sleep):
        fake_remote.classify.return_value = "Networking"
        pipeline = Pipeline(
            document, board, ConversationClassifier(remote=fake_remote), store, sleep=no_sleep
        )
        document.add_item("c1", text=JOB, unread=True, emit=False)
        document.add_item("c2", text=GREETING, unread=True, emit=False)

        await pipeline.on_scan()

        assert board.labels == {"c1": Category.JOB_OFFERS, "c2": Category.NETWORKING}
        fake_remote.classify.assert_awaited_once()


class TestChangeSignal:
    """Polling after a change signal."""

    @pytest.mark.asyncio
    async def test_new_message_reclassifies(self, pipeline, document, board, store):
        document.add_item("c1", text=JOB, unread=True, emit=False)
        await pipeline.on_initial_scan()

        document.update_text("c1", SPAM, emit=False)
        outcome = await pipeline.on_change_signal("c1")

        assert outcome.status == PollStatus.DISPATCHED
        assert outcome.attempts == 1
        assert board.label("c1") == Category.SPAM
        assert store.get("c1") == Category.SPAM

    @pytest.mark.asyncio
    async def test_stale_snippet_waits_for_rerender(self, pipeline, document, board, no_sleep):
        document.add_item("c1", text=JOB, unread=True, emit=False)
        await pipeline.on_initial_scan()

        def rerender(call_count):
            if call_count == 2:
                document.update_text("c1", SALES, emit=False)

        no_sleep.hooks.append(rerender)
        outcome = await pipeline.on_change_signal("c1")

        assert outcome.attempts == 3
        assert outcome.status == PollStatus.DISPATCHED
        assert board.label("c1") == Category.SALES

    @pytest.mark.asyncio
    async def test_no_rerender_degrades_after_budget(self, pipeline, document, board, no_sleep):
        document.add_item("c1", text=JOB, unread=True, emit=False)
        await pipeline.on_initial_scan()

        outcome = await pipeline.on_change_signal("c1")

        assert outcome.status == PollStatus.DEGRADED
        assert outcome.attempts == 11
        assert len(no_sleep.calls) == 10
        assert board.label("c1") == Category.JOB_OFFERS


class TestReadSignal:
    """Read reversal."""

    @pytest.mark.asyncio
    async def test_drops_cache_fingerprint_and_label(self, pipeline, document, board, store):
        document.add_item("c1", text=JOB, unread=True, emit=False)
        await pipeline.on_initial_scan()

        document.mark_read("c1", emit=False)
        assert pipeline.on_read_signal("c1") is True

        assert store.get("c1") is None
        assert "c1" not in pipeline.tracker
        assert board.label("c1") is None
        assert board.history[-1] == ("evicted", "c1", None)

    @pytest.mark.asyncio
    async def test_reopen_reclassifies_same_text(self, pipeline, document, board):
        """After a read reversal the same snippet is a meaningful change again."""
        document.add_item("c1", text=JOB, unread=True, emit=False)
        await pipeline.on_initial_scan()
        pipeline.on_read_signal("c1")

        document.mark_unread("c1", emit=False)
        outcome = await pipeline.on_change_signal("c1")

        assert outcome.attempts == 1
        assert board.label("c1") == Category.JOB_OFFERS

    def test_unknown_item_is_noop(self, pipeline, board):
        assert pipeline.on_read_signal("nope") is False
        assert board.history == []

    @pytest.mark.asyncio
    async def test_read_during_dispatch_drops_result(self, document, board, store, fake_remote, no_sleep):
        """Marked read while the remote classifier is still answering."""
        started = asyncio.Event()
        release = asyncio.Event()

        async def slow_answer(prompt_text):
            started.set()
            await release.wait()
            return "Sales"

        fake_remote.classify = AsyncMock(side_effect=slow_answer)
        pipeline = Pipeline(
            document,
            board,
            ConversationClassifier(remote=fake_remote, remote_timeout_seconds=5),
            store,
            sleep=no_sleep,
        )
        document.add_item("c1", text=GREETING, unread=True, emit=False)

        task = pipeline.on_change_signal("c1")
        await started.wait()
        document.mark_read("c1", emit=False)
        pipeline.on_read_signal("c1")
        release.set()
        await task

        assert store.get("c1") is None
        assert pipeline.label("c1") is None
        assert board.label("c1") is None
        assert board.history == []

    @pytest.mark.asyncio
    async def test_deletes_persisted_entry_missing_from_mirror(
        self, pipeline, document, store, installed_backend, clock
    ):
        writer = CategoryStore(installed_backend, expected_version=2, clock=clock)
        writer.bootstrap()
        writer.set("c1", Category.SALES)
        document.add_item("c1", text=SALES, unread=False, emit=False)
        assert "c1" not in store

        pipeline.on_read_signal("c1")

        persisted = installed_backend.load(KEY_CACHED_CLASSIFICATIONS)
        assert "c1" not in persisted[KEY_CACHED_CLASSIFICATIONS]


class TestFilters:

    @pytest.mark.asyncio
    async def test_filter_request_is_read_only(self, pipeline, document, store):
        document.add_item("c1", text=JOB, unread=True, emit=False)
        document.add_item("c2", text=SPAM, unread=True, emit=False)
        document.add_item("c3", text=GREETING, unread=False, emit=False)
        await pipeline.on_initial_scan()
        pipeline.classifier.classify = AsyncMock()
        store.set = Mock()

        view = pipeline.on_filter_request(Category.SPAM)

        assert view.visible == ["c2"]
        assert view.hidden == ["c1", "c3"]
        assert pipeline.active_filter == Category.SPAM
        pipeline.classifier.classify.assert_not_called()
        store.set.assert_not_called()

    @pytest.mark.asyncio
    async def test_shortcut_and_clear(self, pipeline, document):
        document.add_item("c1", text=JOB, unread=True, emit=False)
        await pipeline.on_initial_scan()

        view = pipeline.on_shortcut("j")
        assert view.visible == ["c1"]

        cleared = pipeline.clear_filter()
        assert pipeline.active_filter is None
        assert cleared.visible == ["c1"]

    def test_unbound_shortcut(self, pipeline):
        assert pipeline.on_shortcut("z") is None
        assert pipeline.active_filter is None


class TestEventStream:
    """Typed document events."""

    @pytest.mark.asyncio
    async def test_run_consumes_events(self, pipeline, document, board):
        document.add_item("c1", text=JOB, unread=True)
        document.add_item("c2", text=SALES, unread=False)
        document.close()

        await pipeline.run(document.events())

        assert board.labels == {"c1": Category.JOB_OFFERS}

    @pytest.mark.asyncio
    async def test_read_item_added_restores_cached_label(self, pipeline, document, board, store):
        store.set("c2", Category.SALES)
        document.add_item("c2", text=GREETING, unread=False, emit=False)

        await pipeline.handle_event(DocumentEvent(kind=EventKind.ITEM_ADDED, item_id="c2"))

        assert board.label("c2") == Category.SALES

    @pytest.mark.asyncio
    async def test_unread_indicator_events(self, pipeline, document, board, store):
        document.add_item("c1", text=NETWORKING, unread=False, emit=False)

        document.mark_unread("c1", emit=False)
        await pipeline.handle_event(DocumentEvent(kind=EventKind.UNREAD_INDICATOR_APPEARED, item_id="c1"))
        await pipeline.drain()

        assert board.label("c1") == Category.NETWORKING
        assert store.get("c1") == Category.NETWORKING

        document.mark_read("c1", emit=False)
        await pipeline.handle_event(DocumentEvent(kind=EventKind.UNREAD_INDICATOR_REMOVED, item_id="c1"))

        assert board.label("c1") is None
        assert store.get("c1") is None
        assert [action for action, _, _ in board.history] == ["classified", "evicted"]

    @pytest.mark.asyncio
    async def test_item_removed_aborts_poll(self, pipeline, document, board):
        document.add_item("c1", text=JOB, unread=True, emit=False)
        await pipeline.on_initial_scan()

        task = pipeline.on_change_signal("c1")
        document.remove_item("c1", emit=False)
        await pipeline.handle_event(DocumentEvent(kind=EventKind.ITEM_REMOVED, item_id="c1"))
        outcome = await task

        assert outcome.status == PollStatus.ABORTED
        assert pipeline.scheduler.pending() == []

    @pytest.mark.asyncio
    async def test_global_notification_triggers_delayed_scan(self, pipeline, document, board, no_sleep):
        document.add_item("c1", text=SPAM, unread=True, emit=False)

        await pipeline.handle_event(DocumentEvent(kind=EventKind.GLOBAL_NOTIFICATION))
        await pipeline.drain()

        assert no_sleep.calls == [2.0]
        assert board.label("c1") == Category.SPAM


class TestPeriodicScan:

    @pytest.mark.asyncio
    async def test_disabled_by_default(self, pipeline):
        await asyncio.wait_for(pipeline.run_periodic_scan(0), timeout=1)

    @pytest.mark.asyncio
    async def test_scans_every_interval_until_cancelled(self, pipeline, document, board, no_sleep):
        document.add_item("c1", text=SPAM, unread=True, emit=False)

        def cancel_third_wait(call_count):
            if call_count == 3:
                raise asyncio.CancelledError()

        no_sleep.hooks.append(cancel_third_wait)

        with pytest.raises(asyncio.CancelledError):
            await pipeline.run_periodic_scan(60)

        assert no_sleep.calls == [60, 60, 60]
        assert board.label("c1") == Category.SPAM
