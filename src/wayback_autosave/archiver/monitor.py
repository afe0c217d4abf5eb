"""Navigation monitor: turns page events into archive submissions.

State machine (``NavigationMonitor.state``)::

    IDLE ─signal─▶ (debounce) ─▶ EVALUATING ─new item─▶ DISCOVERING ─▶ QUEUEING ─▶ IDLE
                                     │
                                     └─disabled / not an item / same item / cooldown─▶ IDLE

EVALUATING, in order:

1. disabled → IDLE;
2. canonical identity of the current location is ``None`` → clear the
   last-seen pointer → IDLE (so leaving an item and coming back re-triggers);
3. identity equals the last-seen pointer → IDLE (same page, signal fired again);
4. identity on cooldown → last-seen := identity → IDLE;
5. otherwise last-seen := identity and continue.

DISCOVERING waits, bounded, for the item container and scans it.
QUEUEING enqueues ``{identity} ∪ discovered`` and starts a drain in the
background.

Evaluations are serialized by the context's evaluation permit.  A signal
that fires while one is in flight sets a re-check flag instead of running
concurrently; the re-check is debounced again once the in-flight evaluation
reaches IDLE, so a repeat of the same identity is suppressed by step 3 while
a genuinely new identity is picked up.

Two more triggers run beside navigation:

- clicks on a reveal control inside an item container rescan that container
  after a settle delay (discovered URLs only; last-seen and cooldown are not
  consulted);
- a periodic timer drains the queue to retry failures.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from collections.abc import Callable, Iterable

from bs4 import Tag

from wayback_autosave.archiver.canonical import Canonicalizer
from wayback_autosave.archiver.config import CONTAINER_SELECTOR, REVEAL_SELECTORS
from wayback_autosave.archiver.context import ArchiverContext
from wayback_autosave.archiver.cooldown import CooldownLedger
from wayback_autosave.archiver.discovery import ContentDiscoverer
from wayback_autosave.archiver.dom import HostPage, closest, wait_for_element
from wayback_autosave.archiver.notifications import Notifier, notify
from wayback_autosave.archiver.queue import ArchiveQueue
from wayback_autosave.archiver.scheduling import Debouncer, PeriodicTask, TaskGroupTracker
from wayback_autosave.archiver.submitter import SubmissionWorker
from wayback_autosave.core.logging_config import bind_run_id

logger = logging.getLogger(__name__)


class MonitorState(str, enum.Enum):
    IDLE = "idle"
    EVALUATING = "evaluating"
    DISCOVERING = "discovering"
    QUEUEING = "queueing"


class NavigationMonitor:
    """Drives canonicalization → cooldown check → discovery → queue.

    Args:
        context: Shared pipeline state.
        canonicalizer: Maps locations to identities.
        discoverer: Extracts content URLs from a container.
        queue: The archive queue.
        ledger: Cooldown ledger consulted before processing an identity.
        worker: Drains the queue after new URLs are queued.
        notifier: Receives "Added to archive queue." notices.
        cooldown_window: Cooldown window in seconds.
        debounce_delay: Navigation debounce window in seconds.
        container_wait: Upper bound on waiting for the item container.
        reveal_settle: Delay between a reveal click and the rescan.
        drain_interval: Period of the safety-net drain.
        notice_duration: Display duration of per-URL notices.
        container_selector: Selector of the element wrapping one item.
        reveal_selectors: Selectors of reveal controls.
    """

    def __init__(
        self,
        context: ArchiverContext,
        canonicalizer: Canonicalizer,
        discoverer: ContentDiscoverer,
        queue: ArchiveQueue,
        ledger: CooldownLedger,
        worker: SubmissionWorker,
        notifier: Notifier | None = None,
        *,
        cooldown_window: float = 24 * 3600.0,
        debounce_delay: float = 0.5,
        container_wait: float = 5.0,
        reveal_settle: float = 1.5,
        drain_interval: float = 60.0,
        notice_duration: float = 3.5,
        container_selector: str = CONTAINER_SELECTOR,
        reveal_selectors: Iterable[str] = REVEAL_SELECTORS,
    ) -> None:
        self._context = context
        self._canonicalize = canonicalizer
        self._discoverer = discoverer
        self._queue = queue
        self._ledger = ledger
        self._worker = worker
        self._notifier = notifier
        self._cooldown_window = cooldown_window
        self._container_wait = container_wait
        self._reveal_settle = reveal_settle
        self._notice_duration = notice_duration
        self._container_selector = container_selector
        self._reveal_selector = ", ".join(reveal_selectors)

        self.state = MonitorState.IDLE
        self._page: HostPage | None = None
        self._recheck_pending = False
        self._closed = False
        self._detachers: list[Callable[[], None]] = []
        self._tasks = TaskGroupTracker()
        self._debouncer = Debouncer(debounce_delay, self.evaluate, self._tasks, name="navigation")
        self._periodic = PeriodicTask(drain_interval, self._periodic_drain, name="periodic-drain")

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def page(self) -> HostPage | None:
        return self._page

    @property
    def idle(self) -> bool:
        """True when no evaluation is scheduled and no background work is pending."""
        return not self._debouncer.scheduled and not self._tasks.pending

    def attach(self, page: HostPage, *, start_timers: bool = True) -> None:
        """Start watching *page*.

        Registers the navigation and click listeners and, with
        *start_timers*, starts the periodic drain and schedules an initial
        evaluation of the current location.
        """
        self._page = page
        self._closed = False
        self._detachers.append(page.add_navigation_listener(self.on_navigation))
        self._detachers.append(page.add_click_listener(self.on_click))
        if start_timers:
            self._periodic.start()
            self._debouncer.trigger()
        logger.info("autosave: monitor attached to %s", page.url)

    async def aclose(self) -> None:
        """Stop timers, unregister listeners and cancel outstanding work."""
        for detach in self._detachers:
            detach()
        self._detachers.clear()
        self._closed = True
        self._recheck_pending = False
        self._debouncer.cancel()
        await self._periodic.stop()
        await self._tasks.cancel_all()
        self._page = None

    async def join(self) -> None:
        """Wait for pending debounced evaluations, rescans and drains to finish."""
        while self._debouncer.scheduled or self._tasks.pending:
            if self._tasks.pending:
                await self._tasks.join()
            else:
                await asyncio.sleep(self._debouncer.delay)

    # ------------------------------------------------------------------
    # Event entry points
    # ------------------------------------------------------------------

    def on_navigation(self, url: str | None = None) -> None:  # noqa: ARG002
        """Navigation signal: the location may have changed."""
        self._debouncer.trigger()

    def on_click(self, target: Tag) -> None:
        """Capture-phase click signal."""
        self._tasks.spawn(self.handle_interaction(target), name="interaction")

    # ------------------------------------------------------------------
    # Navigation path
    # ------------------------------------------------------------------

    async def evaluate(self) -> list[str] | None:
        """Evaluate the current location once.

        Returns:
            The queued candidate URLs when a new item was processed,
            otherwise ``None``.
        """
        page = self._page
        if page is None:
            return None

        with self._context.evaluation_permit.hold() as acquired:
            if not acquired:
                self._recheck_pending = True
                return None
            bind_run_id("nav")
            try:
                return await self._evaluate(page)
            except Exception:  # noqa: BLE001
                logger.exception("autosave: error while evaluating %s", page.url)
                return None
            finally:
                self.state = MonitorState.IDLE
                if self._recheck_pending and not self._closed:
                    self._recheck_pending = False
                    self._debouncer.trigger()

    async def _evaluate(self, page: HostPage) -> list[str] | None:
        self.state = MonitorState.EVALUATING
        if not await self._context.is_enabled():
            return None

        identity = self._canonicalize(page.url)
        if identity is None:
            await self._context.clear_last_seen()
            return None

        if identity == await self._context.read_last_seen():
            logger.debug("autosave: %s already handled", identity)
            return None

        if await self._ledger.is_on_cooldown(identity, self._cooldown_window):
            await self._context.mark_seen(identity)
            logger.info("autosave: cool-down active for %s", identity)
            return None

        await self._context.mark_seen(identity)
        logger.info("autosave: new item detected: %s", identity)

        self.state = MonitorState.DISCOVERING
        candidates = [identity]
        container = await wait_for_element(
            self._container_selector, page.document, self._container_wait
        )
        if container is not None:
            for url in self._discoverer.extract_urls(container, page.url):
                if url not in candidates:
                    candidates.append(url)
        logger.info("autosave: found %d URLs to queue", len(candidates))

        self.state = MonitorState.QUEUEING
        await self._enqueue_all(candidates)
        self._start_drain()
        return candidates

    # ------------------------------------------------------------------
    # Interaction path
    # ------------------------------------------------------------------

    async def handle_interaction(self, target: Tag) -> list[str]:
        """Rescan an item container after a reveal control was clicked.

        Returns:
            The URLs discovered after the settle delay (possibly empty).
        """
        try:
            if not await self._context.is_enabled():
                return []
            reveal = closest(target, self._reveal_selector)
            if reveal is None:
                return []
            container = closest(reveal, self._container_selector)
            if container is None:
                return []

            logger.info("autosave: reveal clicked, waiting for content")
            await asyncio.sleep(self._reveal_settle)
            bind_run_id("click")

            base_url = self._page.url if self._page is not None else ""
            urls = list(self._discoverer.extract_urls(container, base_url))
            if urls:
                logger.info("autosave: found %d URLs after reveal", len(urls))
                await self._enqueue_all(urls)
                self._start_drain()
            return urls
        except Exception:  # noqa: BLE001
            logger.exception("autosave: error while handling reveal click")
            return []

    # ------------------------------------------------------------------
    # Shared helpers
    # ------------------------------------------------------------------

    async def _enqueue_all(self, urls: Iterable[str]) -> None:
        for url in urls:
            if await self._queue.enqueue_if_absent(url):
                notify(self._notifier, "Added to archive queue.", self._notice_duration)

    def _start_drain(self) -> None:
        self._tasks.spawn(self._worker.process_queue(), name="drain")

    async def _periodic_drain(self) -> None:
        await self._worker.process_queue()
