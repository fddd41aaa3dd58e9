"""
Pipeline orchestrator.

Wires document signals and full scans to the change tracker, the
reclassification scheduler, the classifier and the category store, and emits
(item id, category) results to the presentation adapter.

Scan policy:
- Unread items are always reclassified: the cache is not trusted for them,
  they are presumed to carry new content.
- Read items use the cache. A read item cached in a previous session keeps its
  label; a read item without a cache entry gets no label.

Per item, the fingerprint commit happens before classification is dispatched,
which happens before the cache write.
"""

import asyncio
from typing import AsyncIterable, Dict, Iterable, List, Optional, Set

import structlog

from inboxzen.classification.classifier import ConversationClassifier
from inboxzen.config import settings
from inboxzen.models.category import Category
from inboxzen.models.events import DocumentEvent, EventKind
from inboxzen.models.item import ClassifiedItem, ItemContent
from inboxzen.pipeline.adapters import DocumentAdapter, PresentationAdapter
from inboxzen.pipeline.filters import FilterView, apply_filter, shortcut_category
from inboxzen.storage.category_store import CategoryStore
from inboxzen.tracking.change_tracker import ChangeTracker
from inboxzen.tracking.scheduler import ReclassificationScheduler, Sleeper


logger = structlog.get_logger(__name__)


class Pipeline:
    """
    Incremental classification pipeline for one document.
    """

    def __init__(
        self,
        document: DocumentAdapter,
        presentation: PresentationAdapter,
        classifier: ConversationClassifier,
        store: CategoryStore,
        tracker: Optional[ChangeTracker] = None,
        max_retries: Optional[int] = None,
        interval_seconds: Optional[float] = None,
        global_notification_delay_seconds: Optional[float] = None,
        sleep: Optional[Sleeper] = None,
    ):
        self.document = document
        self.presentation = presentation
        self.classifier = classifier
        self.store = store
        self.tracker = tracker or ChangeTracker()
        self.sleep = sleep or asyncio.sleep
        self.global_notification_delay_seconds = (
            global_notification_delay_seconds
            if global_notification_delay_seconds is not None
            else settings.global_notification_delay_ms / 1000
        )

        self.scheduler = ReclassificationScheduler(
            tracker=self.tracker,
            read_content=self.document.read_content,
            dispatch=self._dispatch,
            max_retries=max_retries,
            interval_seconds=interval_seconds,
            sleep=self.sleep,
        )

        self._labels: Dict[str, Category] = {}
        self._read_reversals: Dict[str, int] = {}
        self._background: Set[asyncio.Task] = set()
        self.active_filter: Optional[Category] = None

        self.logger = logger.bind(component="pipeline")

    # ------------------------------------------------------------------
    # Scans
    # ------------------------------------------------------------------

    async def on_initial_scan(self, item_ids: Optional[Iterable[str]] = None) -> List[ClassifiedItem]:
        """
        First scan of a session: classify unread items, restore cached labels
        of read items.
        """
        return await self._scan(item_ids, initial=True)

    async def on_scan(self, item_ids: Optional[Iterable[str]] = None) -> List[ClassifiedItem]:
        """Subsequent or periodic full scan."""
        return await self._scan(item_ids, initial=False)

    async def _scan(self, item_ids: Optional[Iterable[str]], initial: bool) -> List[ClassifiedItem]:
        ids = list(item_ids) if item_ids is not None else self.document.list_item_ids()
        self.logger.info("scan_started", items_count=len(ids), initial=initial)

        results: List[ClassifiedItem] = []
        for item_id in ids:
            try:
                result = await self._scan_item(item_id, initial)
            except Exception as e:
                self.logger.error("scan_item_failed", item_id=item_id, error=str(e), exc_info=True)
                continue
            if result is not None:
                results.append(result)

        self.logger.info(
            "scan_completed",
            items_count=len(ids),
            labelled_count=len(results),
            initial=initial,
        )
        return results

    async def _scan_item(self, item_id: str, initial: bool) -> Optional[ClassifiedItem]:
        unread = self.document.read_unread_flag(item_id)
        if unread is None:
            self.logger.debug("scan_item_missing", item_id=item_id)
            return None

        if unread:
            content = self.document.read_content(item_id)
            if content is None:
                self.logger.debug("scan_item_content_missing", item_id=item_id)
                return None
            category = await self._dispatch(item_id, content, degraded=False)
            return ClassifiedItem(item_id=item_id, category=category)

        return self._restore_cached_label(item_id, initial)

    def _restore_cached_label(self, item_id: str, initial: bool) -> Optional[ClassifiedItem]:
        cached = self.store.get(item_id)
        if cached is None:
            if item_id in self._labels:
                self._remove_label(item_id)
            self.logger.debug("read_item_not_cached", item_id=item_id, initial=initial)
            return None

        self._apply_label(item_id, cached)
        self.logger.debug("read_item_cached_label", item_id=item_id, category=cached.value)
        return ClassifiedItem(item_id=item_id, category=cached)

    # ------------------------------------------------------------------
    # Signals
    # ------------------------------------------------------------------

    def on_change_signal(self, item_id: str) -> asyncio.Task:
        """
        An item may have new content: start (or join) its poll cycle.

        Returns:
            Task resolving to the PollOutcome
        """
        self.logger.debug("change_signal", item_id=item_id)
        return self.scheduler.schedule(item_id)

    def on_read_signal(self, item_id: str) -> bool:
        """
        Read reversal: the unread indicator was removed.

        Drops the item's cache entry, fingerprint and label so a later re-open
        starts clean.

        Returns:
            Whether anything was dropped
        """
        self.scheduler.abort(item_id)
        self._read_reversals[item_id] = self._read_reversals.get(item_id, 0) + 1

        had_label = item_id in self._labels
        had_cache = item_id in self.store
        had_fingerprint = self.tracker.forget(item_id)
        # The persisted map can hold the entry even when the mirror failed to load
        self.store.delete(item_id)

        if not (had_label or had_cache or had_fingerprint):
            return False

        self.logger.info(
            "item_marked_read",
            item_id=item_id,
            had_label=had_label,
            had_cache=had_cache,
        )
        if had_label:
            self._remove_label(item_id)
        return True

    def on_item_removed(self, item_id: str) -> None:
        """Abort transition: drop scheduler bookkeeping only."""
        if self.scheduler.abort(item_id):
            self.logger.debug("item_removed_poll_aborted", item_id=item_id)

    # ------------------------------------------------------------------
    # Filters
    # ------------------------------------------------------------------

    def on_filter_request(self, category: Category) -> FilterView:
        """Show only items labelled with category."""
        self.active_filter = category
        view = apply_filter(self.document.list_item_ids(), self._labels, category)
        self.logger.info(
            "filter_applied",
            category=category.value,
            visible_count=len(view.visible),
            hidden_count=len(view.hidden),
        )
        return view

    def clear_filter(self) -> FilterView:
        self.active_filter = None
        return apply_filter(self.document.list_item_ids(), self._labels, None)

    def on_shortcut(self, key: str) -> Optional[FilterView]:
        """Keyboard shortcut (Ctrl+key) to a category filter."""
        category = shortcut_category(key)
        if category is None:
            return None
        return self.on_filter_request(category)

    def label(self, item_id: str) -> Optional[Category]:
        return self._labels.get(item_id)

    @property
    def labels(self) -> Dict[str, Category]:
        return dict(self._labels)

    # ------------------------------------------------------------------
    # Event stream
    # ------------------------------------------------------------------

    async def handle_event(self, event: DocumentEvent) -> None:
        """Dispatch one document event."""
        kind = event.kind
        item_id = event.item_id

        if kind == EventKind.UNREAD_INDICATOR_APPEARED:
            self.on_change_signal(item_id)

        elif kind in (EventKind.ITEM_ADDED, EventKind.ITEM_CHANGED):
            unread = self.document.read_unread_flag(item_id)
            if unread:
                self.on_change_signal(item_id)
            elif unread is not None:
                self._restore_cached_label(item_id, initial=False)

        elif kind == EventKind.UNREAD_INDICATOR_REMOVED:
            self.on_read_signal(item_id)

        elif kind == EventKind.ITEM_REMOVED:
            self.on_item_removed(item_id)

        elif kind == EventKind.GLOBAL_NOTIFICATION:
            self._spawn(self._delayed_scan(), name="global-notification-scan")

    async def run(self, events: AsyncIterable[DocumentEvent]) -> None:
        """Consume an event stream until it ends, then wait for pending work."""
        async for event in events:
            await self.handle_event(event)
        await self.drain()

    async def run_periodic_scan(self, interval_seconds: Optional[float] = None) -> None:
        """Full scan every interval until cancelled."""
        interval = interval_seconds or settings.full_scan_interval_seconds
        if not interval or interval <= 0:
            return
        while True:
            await self.sleep(interval)
            await self.on_scan()

    async def drain(self) -> None:
        """Wait for in-flight polls and delayed scans."""
        while True:
            background = list(self._background)
            if background:
                await asyncio.gather(*background)
            outcomes = await self.scheduler.drain()
            if not background and not outcomes:
                return

    async def _delayed_scan(self) -> None:
        await self.sleep(self.global_notification_delay_seconds)
        self.logger.info("global_notification_scan")
        await self.on_scan()

    def _spawn(self, coro, name: str) -> asyncio.Task:
        task = asyncio.create_task(coro, name=name)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def _dispatch(self, item_id: str, content: ItemContent, degraded: bool = False) -> Category:
        """
        Commit fingerprint, classify, store, emit.

        A read reversal that lands while the classifier is running wins: the
        result is dropped instead of being cached and labelled.
        """
        if content.text:
            self.tracker.commit(item_id, content.text)

        read_reversals = self._read_reversals.get(item_id, 0)
        category = await self.classifier.classify(content.text, content.sender, content.subject)

        if self._read_reversals.get(item_id, 0) != read_reversals:
            self.logger.info("item_read_during_dispatch", item_id=item_id, category=category.value)
            return category

        self.store.set(item_id, category)
        self._apply_label(item_id, category)

        log = self.logger.warning if degraded else self.logger.info
        log(
            "item_classified",
            item_id=item_id,
            category=category.value,
            degraded=degraded,
        )
        return category

    def _apply_label(self, item_id: str, category: Category) -> None:
        self._labels[item_id] = category
        self.presentation.on_classified(item_id, category)

    def _remove_label(self, item_id: str) -> None:
        self._labels.pop(item_id, None)
        self.presentation.on_evicted(item_id)
