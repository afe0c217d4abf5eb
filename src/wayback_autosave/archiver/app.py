"""Assembly of the archiving pipeline and its user-facing commands.

:class:`Archiver` builds every component from :class:`Settings` around one
shared store, attaches the navigation monitor to a host page, and exposes
the two user commands: toggling auto-archiving and saving a URL right away.

Typical usage::

    store = RedisStore.from_url(settings.redis_url, namespace=settings.store_namespace)
    archiver = Archiver(store, settings)
    await archiver.start(page)
    ...
    await archiver.aclose()
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any

import httpx

from wayback_autosave.archiver.canonical import Canonicalizer
from wayback_autosave.archiver.context import ArchiverContext
from wayback_autosave.archiver.cooldown import CooldownLedger
from wayback_autosave.archiver.discovery import ContentDiscoverer
from wayback_autosave.archiver.dom import HostPage
from wayback_autosave.archiver.monitor import NavigationMonitor
from wayback_autosave.archiver.notifications import LogNotifier, Notifier, notify
from wayback_autosave.archiver.queue import ArchiveQueue
from wayback_autosave.archiver.submitter import SaveOutcome, SubmissionWorker
from wayback_autosave.config.settings import Settings, get_settings
from wayback_autosave.storage import KeyValueStore

logger = logging.getLogger(__name__)


class Archiver:
    """The wired pipeline.

    Attributes:
        context: Shared state (enabled flag, last-seen pointer, permits).
        canonicalizer: Location → identity mapping.
        discoverer: Container → content URLs.
        queue: Persistent archive queue.
        ledger: Cooldown ledger.
        worker: Submission worker and queue drainer.
        monitor: Navigation monitor.

    Args:
        store: Shared persistent key-value store.
        settings: Pipeline settings; defaults to :func:`get_settings`.
        notifier: Notification sink; defaults to :class:`LogNotifier`.
        http_client: Optional injected client for save requests.
        clock: Returns the current time in epoch seconds.
    """

    def __init__(
        self,
        store: KeyValueStore,
        settings: Settings | None = None,
        *,
        notifier: Notifier | None = None,
        http_client: httpx.AsyncClient | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.settings = settings or get_settings()
        self.notifier: Notifier = notifier if notifier is not None else LogNotifier()
        s = self.settings

        self.context = ArchiverContext(store, enabled_default=s.enabled_default)
        self.canonicalizer = Canonicalizer(s.canonical_base, s.short_link_hosts)
        self.discoverer = ContentDiscoverer(s.self_hosts)
        self.queue = ArchiveQueue(store, clock=clock)
        self.ledger = CooldownLedger(store, clock=clock)
        self.worker = SubmissionWorker(
            self.context,
            self.queue,
            self.ledger,
            self.notifier,
            http_client=http_client,
            endpoint=s.archive_endpoint,
            method=s.submit_method,
            timeout=s.request_timeout,
            user_agent=s.user_agent,
            summary_duration=s.summary_notice_seconds,
        )
        self.monitor = NavigationMonitor(
            self.context,
            self.canonicalizer,
            self.discoverer,
            self.queue,
            self.ledger,
            self.worker,
            self.notifier,
            cooldown_window=s.cooldown_seconds,
            debounce_delay=s.debounce_seconds,
            container_wait=s.container_wait_seconds,
            reveal_settle=s.reveal_settle_seconds,
            drain_interval=s.drain_interval_seconds,
            notice_duration=s.notice_seconds,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self, page: HostPage, *, start_timers: bool = True) -> None:
        """Load persisted state and start watching *page*."""
        await self.context.initialize()
        self.monitor.attach(page, start_timers=start_timers)
        logger.info("autosave: archiver initialized and ready")

    async def aclose(self) -> None:
        await self.monitor.aclose()

    # ------------------------------------------------------------------
    # User commands
    # ------------------------------------------------------------------

    async def toggle(self) -> bool:
        """Flip auto-archiving on or off and confirm with a notification."""
        enabled = await self.context.toggle_enabled()
        status = "ENABLED" if enabled else "DISABLED"
        notify(self.notifier, f"Wayback auto-archiver is now {status}.", self.settings.notice_seconds)
        logger.info("autosave: toggled, status %s", status)
        return enabled

    async def save_now(self, url: str) -> SaveOutcome | None:
        """Submit *url* immediately with ``POST``, bypassing the queue.

        Only one manual save runs at a time; a second call while one is in
        flight returns ``None`` without issuing a request.  A successful save
        refreshes the URL's cooldown record.
        """
        with self.context.save_permit.hold() as acquired:
            if not acquired:
                return None
            outcome = await self.worker.submit_detailed(url, method="POST")
            if outcome.ok:
                await self.ledger.record_success(url)
        notify(self.notifier, outcome.label, self.settings.notice_seconds)
        return outcome

    async def status(self) -> dict[str, Any]:
        """Snapshot of the persisted state, for display."""
        return {
            "enabled": await self.context.is_enabled(),
            "last_seen": await self.context.read_last_seen(),
            "queue": await self.queue.urls(),
        }
