"""Unit tests for the persistent archive queue.

Covers:
- enqueue_if_absent() idempotence and added_at stamping
- drain_batch() removes successes, keeps failures for the next pass
- URLs enqueued while a drain waits on the network survive the reconcile
- Entries removed concurrently are not resurrected
- Corrupted entries are discarded and counted
- Duplicate URLs within one batch are submitted once
- Successes before an exception are still removed
- A non-list persisted queue reads as empty
"""

from __future__ import annotations

import asyncio

import pytest

from wayback_autosave.archiver.config import KEY_ARCHIVE_QUEUE
from wayback_autosave.archiver.queue import ArchiveQueue, task_url
from wayback_autosave.storage.memory import MemoryStore

from tests.conftest import FakeClock

A = "https://news.test/a"
B = "https://news.test/b"
C = "https://news.test/c"


async def _always(url: str) -> bool:
    return True


async def _never(url: str) -> bool:
    return False


class TestTaskUrl:
    """Raw entry validation."""

    @pytest.mark.parametrize(
        "entry",
        [None, "https://news.test/a", {}, {"url": None}, {"url": ""}, {"url": 5}, ["url"]],
    )
    def test_corrupted_entries(self, entry: object) -> None:
        """Anything but a dict with a non-empty string url is corrupted."""
        assert task_url(entry) is None

    def test_valid_entry(self) -> None:
        """A well-formed entry yields its URL."""
        assert task_url({"url": A, "added_at": 1.0}) == A


@pytest.mark.asyncio
class TestEnqueue:
    """enqueue_if_absent() behaviour."""

    async def test_enqueue_appends_with_timestamp(self, store: MemoryStore, clock: FakeClock) -> None:
        """A new URL is appended with the clock value as added_at."""
        queue = ArchiveQueue(store, clock=clock)
        assert await queue.enqueue_if_absent(A) is True
        assert store.snapshot()[KEY_ARCHIVE_QUEUE] == [{"url": A, "added_at": clock.now}]

    async def test_enqueue_is_idempotent(self, store: MemoryStore, clock: FakeClock) -> None:
        """Enqueueing a queued URL again leaves the queue unchanged."""
        queue = ArchiveQueue(store, clock=clock)
        await queue.enqueue_if_absent(A)
        before = store.snapshot()[KEY_ARCHIVE_QUEUE]
        clock.advance(10)

        assert await queue.enqueue_if_absent(A) is False
        assert store.snapshot()[KEY_ARCHIVE_QUEUE] == before

    async def test_preserves_fifo_order(self, store: MemoryStore) -> None:
        """URLs are kept in insertion order."""
        queue = ArchiveQueue(store)
        for url in (A, B, C):
            await queue.enqueue_if_absent(url)
        assert await queue.urls() == [A, B, C]
        assert await queue.size() == 3

    async def test_non_list_queue_reads_as_empty(self) -> None:
        """A persisted value that is not a list is treated as an empty queue."""
        queue = ArchiveQueue(MemoryStore({KEY_ARCHIVE_QUEUE: {"url": A}}))
        assert await queue.entries() == []
        assert await queue.enqueue_if_absent(A) is True
        assert await queue.urls() == [A]


@pytest.mark.asyncio
class TestDrainBatch:
    """drain_batch() and its reconcile step."""

    async def test_successes_are_removed(self, store: MemoryStore) -> None:
        """Every accepted URL leaves the queue."""
        queue = ArchiveQueue(store)
        await queue.enqueue_if_absent(A)
        await queue.enqueue_if_absent(B)

        result = await queue.drain_batch(_always)

        assert result.succeeded == [A, B]
        assert result.failed == []
        assert result.batch_size == 2
        assert await queue.urls() == []

    async def test_failures_are_retained_and_retried(self, store: MemoryStore) -> None:
        """A failed URL stays queued and is attempted again on the next drain."""
        queue = ArchiveQueue(store)
        await queue.enqueue_if_absent(A)
        await queue.enqueue_if_absent(B)
        attempts: list[str] = []

        async def flaky(url: str) -> bool:
            attempts.append(url)
            return url == A

        first = await queue.drain_batch(flaky)
        assert first.failed == [B]
        assert await queue.urls() == [B]

        second = await queue.drain_batch(_always)
        assert second.succeeded == [B]
        assert attempts == [A, B]
        assert await queue.urls() == []

    async def test_all_failures_leave_queue_untouched(self, store: MemoryStore) -> None:
        """With no success and nothing discarded the stored queue is not rewritten."""
        queue = ArchiveQueue(store)
        await queue.enqueue_if_absent(A)
        before = store.snapshot()[KEY_ARCHIVE_QUEUE]

        result = await queue.drain_batch(_never)

        assert result.failed == [A]
        assert store.snapshot()[KEY_ARCHIVE_QUEUE] == before

    async def test_enqueue_during_drain_survives(self, store: MemoryStore) -> None:
        """A URL added while a submission is in flight is kept after reconcile."""
        queue = ArchiveQueue(store)
        await queue.enqueue_if_absent(A)
        await queue.enqueue_if_absent(B)
        started = asyncio.Event()
        release = asyncio.Event()

        async def slow(url: str) -> bool:
            if url == A:
                started.set()
                await release.wait()
            return True

        drain = asyncio.create_task(queue.drain_batch(slow))
        await started.wait()
        assert await queue.enqueue_if_absent(C) is True
        release.set()
        result = await drain

        assert result.succeeded == [A, B]
        assert await queue.urls() == [C]

    async def test_concurrent_removal_is_not_resurrected(self, store: MemoryStore) -> None:
        """An entry removed by someone else mid-drain stays removed."""
        queue = ArchiveQueue(store)
        await queue.enqueue_if_absent(A)
        await queue.enqueue_if_absent(B)

        async def submit(url: str) -> bool:
            if url == A:
                entries = await queue.entries()
                await store.set(KEY_ARCHIVE_QUEUE, [e for e in entries if e["url"] != B])
                return True
            return False

        result = await queue.drain_batch(submit)

        assert result.failed == [B]
        assert await queue.urls() == []

    async def test_corrupted_entries_are_discarded(self) -> None:
        """Entries without a usable url are counted and dropped, never submitted."""
        store = MemoryStore({
            KEY_ARCHIVE_QUEUE: [
                {"url": A, "added_at": 1.0},
                {"added_at": 2.0},
                {"url": None},
                "garbage",
                {"url": B, "added_at": 3.0},
            ]
        })
        queue = ArchiveQueue(store)
        submitted: list[str] = []

        async def record(url: str) -> bool:
            submitted.append(url)
            return False

        result = await queue.drain_batch(record)

        assert submitted == [A, B]
        assert result.discarded == 3
        assert result.handled == 5
        assert store.snapshot()[KEY_ARCHIVE_QUEUE] == [
            {"url": A, "added_at": 1.0},
            {"url": B, "added_at": 3.0},
        ]

    async def test_duplicates_in_batch_are_submitted_once(self) -> None:
        """Two entries with the same URL cause a single submission."""
        store = MemoryStore({
            KEY_ARCHIVE_QUEUE: [{"url": A, "added_at": 1.0}, {"url": A, "added_at": 2.0}]
        })
        queue = ArchiveQueue(store)
        submitted: list[str] = []

        async def record(url: str) -> bool:
            submitted.append(url)
            return True

        await queue.drain_batch(record)

        assert submitted == [A]
        assert await queue.urls() == []

    async def test_on_success_hook_is_awaited_per_success(self, store: MemoryStore) -> None:
        """The success hook sees each accepted URL and nothing else."""
        queue = ArchiveQueue(store)
        for url in (A, B, C):
            await queue.enqueue_if_absent(url)
        hooked: list[str] = []

        async def only_b_fails(url: str) -> bool:
            return url != B

        async def hook(url: str) -> None:
            hooked.append(url)

        await queue.drain_batch(only_b_fails, on_success=hook)

        assert hooked == [A, C]

    async def test_exception_still_reconciles_earlier_successes(self, store: MemoryStore) -> None:
        """Successes before a raising submission are removed; the error propagates."""
        queue = ArchiveQueue(store)
        await queue.enqueue_if_absent(A)
        await queue.enqueue_if_absent(B)

        async def explode_on_b(url: str) -> bool:
            if url == B:
                raise RuntimeError("boom")
            return True

        with pytest.raises(RuntimeError):
            await queue.drain_batch(explode_on_b)

        assert await queue.urls() == [B]

    async def test_empty_queue(self, store: MemoryStore) -> None:
        """Draining an empty queue does nothing."""
        result = await ArchiveQueue(store).drain_batch(_always)
        assert result.batch_size == 0
        assert result.handled == 0
        assert KEY_ARCHIVE_QUEUE not in store.snapshot()
