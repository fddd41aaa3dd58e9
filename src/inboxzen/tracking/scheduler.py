"""
Reclassification scheduler: per-item snippet polling state machine.

States per item:

    IDLE --signal--> POLLING(0)
    POLLING(n) --meaningful change--> DISPATCHING --> IDLE
    POLLING(n) --unchanged, n < max_retries--> wait interval --> POLLING(n+1)
    POLLING(max_retries) --unchanged--> DISPATCHING (degraded) --> IDLE
    any state --item gone from document--> IDLE (aborted)

The external document re-renders asynchronously: a "new message" notification
can precede the snippet update by a few hundred milliseconds, so the first
polls often see the old text. The retry budget bounds staleness for items that
never re-render (e.g. scrolled out of view): dispatch happens within exactly
max_retries + 1 poll attempts.

Signals for an item that is already polling or dispatching are coalesced onto
the running task. Aborting drops the bookkeeping; a dispatch already in flight
is allowed to finish.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional

import structlog

from inboxzen.config import settings
from inboxzen.models.category import Category
from inboxzen.models.item import ItemContent
from inboxzen.tracking.change_tracker import ChangeTracker


logger = structlog.get_logger(__name__)


class PollState(str, Enum):
    """Scheduler state of one item."""
    IDLE = "idle"
    POLLING = "polling"
    DISPATCHING = "dispatching"


class PollStatus(str, Enum):
    """How a poll cycle ended."""
    DISPATCHED = "dispatched"  # Meaningful change detected
    DEGRADED = "degraded"      # Retry budget exhausted, classified visible content
    ABORTED = "aborted"        # Item left the document
    FAILED = "failed"          # Dispatch raised


@dataclass
class PollOutcome:
    item_id: str
    status: PollStatus
    attempts: int
    category: Optional[Category] = None


ContentReader = Callable[[str], Optional[ItemContent]]
Dispatcher = Callable[[str, ItemContent, bool], Awaitable[Optional[Category]]]
Sleeper = Callable[[float], Awaitable[None]]


@dataclass
class _PollEntry:
    state: PollState = PollState.POLLING
    attempt: int = 0
    task: Optional[asyncio.Task] = None
    aborted: bool = False


class ReclassificationScheduler:
    """
    Decides, per item, whether to classify now, poll again, or give up.
    """

    def __init__(
        self,
        tracker: ChangeTracker,
        read_content: ContentReader,
        dispatch: Dispatcher,
        max_retries: Optional[int] = None,
        interval_seconds: Optional[float] = None,
        sleep: Optional[Sleeper] = None,
    ):
        """
        Args:
            tracker: Fingerprints used for the change check
            read_content: Current content of an item, None if it left the document
            dispatch: Classifies and stores an item; called with
                (item_id, content, degraded)
            max_retries: Poll budget after the first attempt
            interval_seconds: Delay between polls
            sleep: Awaitable sleep, injectable for tests
        """
        self.tracker = tracker
        self.read_content = read_content
        self.dispatch = dispatch
        self.max_retries = (
            max_retries if max_retries is not None else settings.snippet_max_retries
        )
        self.interval_seconds = (
            interval_seconds
            if interval_seconds is not None
            else settings.snippet_check_interval_ms / 1000
        )
        self.sleep = sleep or asyncio.sleep

        self._entries: Dict[str, _PollEntry] = {}
        self.logger = logger.bind(component="reclassification_scheduler")

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def state(self, item_id: str) -> PollState:
        entry = self._entries.get(item_id)
        return entry.state if entry else PollState.IDLE

    def attempt(self, item_id: str) -> Optional[int]:
        """Current poll attempt, None when not polling."""
        entry = self._entries.get(item_id)
        return entry.attempt if entry else None

    def pending(self) -> List[str]:
        return list(self._entries)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def schedule(self, item_id: str) -> asyncio.Task:
        """
        IDLE → POLLING(0) in a background task.

        Must be called from a running event loop.

        Returns:
            The task polling this item (an existing one if already active)
        """
        entry = self._entries.get(item_id)
        if entry is not None and entry.task is not None and not entry.task.done():
            self.logger.debug("poll_signal_coalesced", item_id=item_id, state=entry.state.value)
            return entry.task

        entry = _PollEntry()
        self._entries[item_id] = entry
        entry.task = asyncio.create_task(self._run(item_id, entry), name=f"poll:{item_id}")
        return entry.task

    async def poll(self, item_id: str) -> PollOutcome:
        """Run a full poll cycle for an item in the current task."""
        entry = _PollEntry()
        self._entries[item_id] = entry
        return await self._run(item_id, entry)

    def abort(self, item_id: str) -> bool:
        """
        Any state → IDLE. Drops bookkeeping only.

        Returns:
            Whether the item had an active poll
        """
        entry = self._entries.pop(item_id, None)
        if entry is None:
            return False
        entry.aborted = True
        self.logger.debug("poll_aborted", item_id=item_id, state=entry.state.value)
        return True

    async def drain(self) -> List[PollOutcome]:
        """Wait for every active poll to finish."""
        tasks = [e.task for e in list(self._entries.values()) if e.task is not None]
        if not tasks:
            return []
        return list(await asyncio.gather(*tasks))

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    async def _run(self, item_id: str, entry: _PollEntry) -> PollOutcome:
        try:
            return await self._poll_loop(item_id, entry)
        except asyncio.CancelledError:
            self._release(item_id, entry)
            raise
        except Exception as e:
            self.logger.error(
                "poll_dispatch_failed",
                item_id=item_id,
                attempt=entry.attempt,
                error=str(e),
                exc_info=True,
            )
            self._release(item_id, entry)
            return PollOutcome(item_id=item_id, status=PollStatus.FAILED, attempts=entry.attempt + 1)

    async def _poll_loop(self, item_id: str, entry: _PollEntry) -> PollOutcome:
        attempt = 0

        while True:
            entry.state = PollState.POLLING
            entry.attempt = attempt

            if entry.aborted:
                return self._aborted(item_id, attempt)

            content = self.read_content(item_id)
            if content is None:
                self._release(item_id, entry)
                return self._aborted(item_id, attempt)

            if self.tracker.has_meaningful_change(item_id, content.text):
                self.logger.info("snippet_change_detected", item_id=item_id, attempt=attempt)
                return await self._dispatch(item_id, entry, content, attempt, degraded=False)

            if attempt >= self.max_retries:
                self.logger.warning(
                    "snippet_unchanged_after_retries",
                    item_id=item_id,
                    max_retries=self.max_retries,
                    snippet=content.text[:80],
                )
                return await self._dispatch(item_id, entry, content, attempt, degraded=True)

            self.logger.debug(
                "snippet_unchanged_retrying",
                item_id=item_id,
                attempt=attempt + 1,
                max_retries=self.max_retries,
            )
            await self.sleep(self.interval_seconds)
            attempt += 1

    async def _dispatch(
        self,
        item_id: str,
        entry: _PollEntry,
        content: ItemContent,
        attempt: int,
        degraded: bool
    ) -> PollOutcome:
        entry.state = PollState.DISPATCHING
        try:
            category = await self.dispatch(item_id, content, degraded)
        finally:
            self._release(item_id, entry)

        return PollOutcome(
            item_id=item_id,
            status=PollStatus.DEGRADED if degraded else PollStatus.DISPATCHED,
            attempts=attempt + 1,
            category=category,
        )

    def _aborted(self, item_id: str, attempt: int) -> PollOutcome:
        self.logger.info("poll_cycle_aborted", item_id=item_id, attempt=attempt)
        return PollOutcome(item_id=item_id, status=PollStatus.ABORTED, attempts=attempt + 1)

    def _release(self, item_id: str, entry: _PollEntry) -> None:
        """Back to IDLE, unless a newer poll already owns the item."""
        entry.state = PollState.IDLE
        if self._entries.get(item_id) is entry:
            del self._entries[item_id]
