"""
Unit tests for the reclassification scheduler state machine.
"""

import asyncio
from typing import Dict, Optional
from unittest.mock import AsyncMock

import pytest

from inboxzen.models.category import Category
from inboxzen.models.item import ItemContent
from inboxzen.tracking.change_tracker import ChangeTracker
from inboxzen.tracking.scheduler import PollState, PollStatus, ReclassificationScheduler

from tests.conftest import RecordingSleep


MAX_RETRIES = 10


class FakeDocument:
    """Item id → snippet text; missing ids have left the document."""

    def __init__(self, texts: Optional[Dict[str, str]] = None):
        self.texts = dict(texts or {})

    def read_content(self, item_id: str) -> Optional[ItemContent]:
        if item_id not in self.texts:
            return None
        return ItemContent(text=self.texts[item_id])


@pytest.fixture
def tracker():
    return ChangeTracker()


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def dispatch(tracker):
    async def classify_and_commit(item_id, content, degraded):
        if content.text:
            tracker.commit(item_id, content.text)
        return Category.SALES

    return AsyncMock(side_effect=classify_and_commit)


def make_scheduler(tracker, doc, dispatch, sleep):
    return ReclassificationScheduler(
        tracker=tracker,
        read_content=doc.read_content,
        dispatch=dispatch,
        max_retries=MAX_RETRIES,
        interval_seconds=0.25,
        sleep=sleep,
    )


class TestPollCycle:
    """Transitions of one poll cycle."""

    @pytest.mark.asyncio
    async def test_new_text_dispatches_immediately(self, tracker, dispatch, sleep):
        scheduler = make_scheduler(tracker, FakeDocument({"c1": "book a demo"}), dispatch, sleep)

        outcome = await scheduler.poll("c1")

        assert outcome.status == PollStatus.DISPATCHED
        assert outcome.attempts == 1
        assert outcome.category == Category.SALES
        assert sleep.calls == []
        dispatch.assert_awaited_once()
        assert dispatch.await_args.args[2] is False

    @pytest.mark.asyncio
    async def test_unchanged_text_terminates_after_max_retries(self, tracker, dispatch, sleep):
        """Exactly MAX_RETRIES + 1 attempts, then a degraded dispatch."""
        tracker.commit("c1", "old snippet")
        scheduler = make_scheduler(tracker, FakeDocument({"c1": "old snippet"}), dispatch, sleep)

        outcome = await scheduler.poll("c1")

        assert outcome.status == PollStatus.DEGRADED
        assert outcome.attempts == MAX_RETRIES + 1
        assert sleep.calls == [0.25] * MAX_RETRIES
        dispatch.assert_awaited_once()
        args = dispatch.await_args.args
        assert args[1].text == "old snippet"
        assert args[2] is True

    @pytest.mark.asyncio
    async def test_empty_text_also_degrades(self, tracker, dispatch, sleep):
        scheduler = make_scheduler(tracker, FakeDocument({"c1": ""}), dispatch, sleep)

        outcome = await scheduler.poll("c1")

        assert outcome.status == PollStatus.DEGRADED
        assert outcome.attempts == MAX_RETRIES + 1

    @pytest.mark.asyncio
    async def test_change_detected_mid_poll(self, tracker, dispatch, sleep):
        """Snippet re-renders after the third wait."""
        tracker.commit("c1", "old snippet")
        doc = FakeDocument({"c1": "old snippet"})

        def rerender(call_count):
            if call_count == 3:
                doc.texts["c1"] = "new snippet"

        sleep.hooks.append(rerender)
        scheduler = make_scheduler(tracker, doc, dispatch, sleep)

        outcome = await scheduler.poll("c1")

        assert outcome.status == PollStatus.DISPATCHED
        assert outcome.attempts == 4
        assert dispatch.await_args.args[1].text == "new snippet"
        assert tracker.fingerprint("c1") == "new snippet"

    @pytest.mark.asyncio
    async def test_item_gone_aborts(self, tracker, dispatch, sleep):
        scheduler = make_scheduler(tracker, FakeDocument(), dispatch, sleep)

        outcome = await scheduler.poll("c1")

        assert outcome.status == PollStatus.ABORTED
        dispatch.assert_not_awaited()
        assert scheduler.state("c1") == PollState.IDLE

    @pytest.mark.asyncio
    async def test_item_leaves_while_polling(self, tracker, dispatch, sleep):
        tracker.commit("c1", "same")
        doc = FakeDocument({"c1": "same"})
        sleep.hooks.append(lambda n: doc.texts.pop("c1", None) if n == 2 else None)
        scheduler = make_scheduler(tracker, doc, dispatch, sleep)

        outcome = await scheduler.poll("c1")

        assert outcome.status == PollStatus.ABORTED
        assert outcome.attempts == 3
        dispatch.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_abort_while_polling(self, tracker, dispatch, sleep):
        tracker.commit("c1", "same")
        scheduler = make_scheduler(tracker, FakeDocument({"c1": "same"}), dispatch, sleep)
        sleep.hooks.append(lambda n: scheduler.abort("c1") if n == 1 else None)

        outcome = await scheduler.poll("c1")

        assert outcome.status == PollStatus.ABORTED
        assert outcome.attempts == 2
        assert scheduler.pending() == []

    @pytest.mark.asyncio
    async def test_dispatch_failure(self, tracker, sleep):
        failing = AsyncMock(side_effect=RuntimeError("boom"))
        scheduler = make_scheduler(tracker, FakeDocument({"c1": "text"}), failing, sleep)

        outcome = await scheduler.poll("c1")

        assert outcome.status == PollStatus.FAILED
        assert scheduler.state("c1") == PollState.IDLE

    @pytest.mark.asyncio
    async def test_state_is_dispatching_during_dispatch(self, tracker, sleep):
        seen = []

        async def observe(item_id, content, degraded):
            seen.append(scheduler.state(item_id))
            return Category.OTHER

        scheduler = make_scheduler(tracker, FakeDocument({"c1": "text"}), observe, sleep)
        await scheduler.poll("c1")

        assert seen == [PollState.DISPATCHING]
        assert scheduler.state("c1") == PollState.IDLE


class TestScheduling:
    """Background tasks and coalescing."""

    @pytest.mark.asyncio
    async def test_schedule_runs_in_background(self, tracker, dispatch, sleep):
        scheduler = make_scheduler(tracker, FakeDocument({"c1": "text"}), dispatch, sleep)

        task = scheduler.schedule("c1")
        assert scheduler.state("c1") == PollState.POLLING

        outcome = await task
        assert outcome.status == PollStatus.DISPATCHED
        assert scheduler.pending() == []

    @pytest.mark.asyncio
    async def test_duplicate_signals_coalesce(self, tracker, dispatch, sleep):
        scheduler = make_scheduler(tracker, FakeDocument({"c1": "text"}), dispatch, sleep)

        first = scheduler.schedule("c1")
        second = scheduler.schedule("c1")

        assert first is second
        await first
        dispatch.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_signal_after_completion_starts_new_cycle(self, tracker, dispatch, sleep):
        doc = FakeDocument({"c1": "first"})
        scheduler = make_scheduler(tracker, doc, dispatch, sleep)

        await scheduler.schedule("c1")
        doc.texts["c1"] = "second"
        outcome = await scheduler.schedule("c1")

        assert outcome.status == PollStatus.DISPATCHED
        assert dispatch.await_count == 2

    @pytest.mark.asyncio
    async def test_items_poll_concurrently(self, tracker, dispatch):
        async def yielding_sleep(seconds):
            await asyncio.sleep(0)

        tracker.commit("c1", "stale")
        doc = FakeDocument({"c1": "stale", "c2": "fresh"})
        scheduler = make_scheduler(tracker, doc, dispatch, yielding_sleep)

        scheduler.schedule("c1")
        scheduler.schedule("c2")
        outcomes = await scheduler.drain()

        statuses = {o.item_id: o.status for o in outcomes}
        assert statuses == {"c1": PollStatus.DEGRADED, "c2": PollStatus.DISPATCHED}

    @pytest.mark.asyncio
    async def test_abort_unknown_item(self, tracker, dispatch, sleep):
        scheduler = make_scheduler(tracker, FakeDocument(), dispatch, sleep)
        assert scheduler.abort("nope") is False
