"""Tests for the assembled archiver and its user commands.

Covers:
- toggle() flips and persists the flag and confirms with a notice
- Persisted flag survives a new Archiver over the same store
- save_now() submits with POST, records a cooldown on success, reports
  the outcome label, and refuses to overlap
- status() snapshot
"""

from __future__ import annotations

import asyncio

import httpx
import pytest
import respx

from wayback_autosave.archiver.app import Archiver
from wayback_autosave.archiver.notifications import RecordingNotifier
from wayback_autosave.storage.memory import MemoryStore

from tests.conftest import ARCHIVE_HOST, FakeClock, make_settings, target_of

URL = "https://news.test/page"


@pytest.mark.asyncio
class TestToggle:
    """Enabling and disabling auto-archiving."""

    async def test_toggle_flips_and_notifies(self, archiver: Archiver, notifier: RecordingNotifier) -> None:
        """Each toggle inverts the flag and announces the new state."""
        assert await archiver.toggle() is False
        assert await archiver.toggle() is True
        assert notifier.messages == [
            "Wayback auto-archiver is now DISABLED.",
            "Wayback auto-archiver is now ENABLED.",
        ]

    async def test_flag_is_persisted(self, store: MemoryStore) -> None:
        """A new archiver over the same store sees the toggled flag."""
        first = Archiver(store, make_settings(), notifier=RecordingNotifier())
        await first.toggle()

        second = Archiver(store, make_settings(), notifier=RecordingNotifier())
        await second.context.initialize()
        assert second.context.enabled is False

    async def test_enabled_default_applies_without_stored_flag(self, store: MemoryStore) -> None:
        """enabled_default decides the flag until one is persisted."""
        archiver = Archiver(store, make_settings(enabled_default=False), notifier=RecordingNotifier())
        assert await archiver.context.is_enabled() is False


@pytest.mark.asyncio
class TestSaveNow:
    """Immediate, queue-bypassing saves."""

    async def test_success_records_cooldown(
        self, archiver: Archiver, notifier: RecordingNotifier, clock: FakeClock
    ) -> None:
        """A successful POST save refreshes the cooldown and reports 'Saved!'."""
        with respx.mock:
            route = respx.route(host=ARCHIVE_HOST).mock(return_value=httpx.Response(200))
            outcome = await archiver.save_now(URL)

        assert outcome is not None and outcome.ok
        assert route.calls.last.request.method == "POST"
        assert target_of(route.calls.last.request) == URL
        assert await archiver.ledger.last_submitted_at(URL) == clock.now
        assert await archiver.queue.urls() == []
        assert notifier.messages == ["Saved!"]

    async def test_failure_reports_status(self, archiver: Archiver, notifier: RecordingNotifier) -> None:
        """A rejected save reports the HTTP status and records nothing."""
        with respx.mock:
            respx.route(host=ARCHIVE_HOST).mock(return_value=httpx.Response(429))
            outcome = await archiver.save_now(URL)

        assert outcome is not None and not outcome.ok
        assert await archiver.ledger.last_submitted_at(URL) == 0.0
        assert notifier.messages == ["HTTP 429"]

    async def test_timeout_reports_timeout(self, archiver: Archiver, notifier: RecordingNotifier) -> None:
        """A timed-out save is reported as such."""
        with respx.mock:
            respx.route(host=ARCHIVE_HOST).mock(side_effect=httpx.ReadTimeout)
            await archiver.save_now(URL)

        assert notifier.messages == ["Timeout"]

    async def test_overlapping_save_is_refused(self, archiver: Archiver) -> None:
        """A second save while one is in flight returns None without a request."""
        release = asyncio.Event()

        async def slow(request: httpx.Request) -> httpx.Response:
            await release.wait()
            return httpx.Response(200)

        with respx.mock:
            route = respx.route(host=ARCHIVE_HOST).mock(side_effect=slow)
            first = asyncio.create_task(archiver.save_now(URL))
            await asyncio.sleep(0.01)
            assert await archiver.save_now("https://news.test/other") is None
            release.set()
            outcome = await first

        assert outcome is not None and outcome.ok
        assert route.call_count == 1
        assert archiver.context.save_permit.held is False


@pytest.mark.asyncio
class TestStatus:
    """Persisted state snapshot."""

    async def test_status_reports_state(self, archiver: Archiver) -> None:
        """status() returns the flag, last-seen pointer and queued URLs."""
        await archiver.queue.enqueue_if_absent(URL)
        await archiver.context.mark_seen("https://old.example.com/comments/abc123")

        assert await archiver.status() == {
            "enabled": True,
            "last_seen": "https://old.example.com/comments/abc123",
            "queue": [URL],
        }
