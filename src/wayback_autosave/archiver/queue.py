"""Persistent archive queue.

The queue is a single store value: a JSON list of ``{"url", "added_at"}``
objects in FIFO order.  It is read and written whole; there is no atomic
append, so two concurrent :meth:`ArchiveQueue.enqueue_if_absent` calls can
in principle both append the same URL.  Deduplication is advisory.

**Drain algorithm** (:meth:`ArchiveQueue.drain_batch`):

1. Snapshot the queue.  The snapshot is the batch.
2. Walk the batch in order, one submission at a time.  Entries without a
   non-empty string ``url`` are discarded and logged.
3. After the batch, re-read the queue, drop every URL that succeeded in this
   batch plus every corrupted entry, and write the result back.

Step 3 recomputes from a fresh read instead of writing back "whatever is
left of the snapshot": URLs enqueued while step 2 was waiting on the network
survive, and entries another drain already removed are not resurrected.
Failed URLs are never touched and are retried by the next drain.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from wayback_autosave.archiver.config import KEY_ARCHIVE_QUEUE
from wayback_autosave.storage import KeyValueStore

logger = logging.getLogger(__name__)

SubmitFn = Callable[[str], Awaitable[bool]]
SuccessHook = Callable[[str], Awaitable[None]]


@dataclass
class QueueTask:
    """One pending submission.

    Attributes:
        url: Target URL to archive.
        added_at: Epoch seconds at which the task was enqueued.
    """

    url: str
    added_at: float

    def to_dict(self) -> dict[str, Any]:
        return {"url": self.url, "added_at": self.added_at}


@dataclass
class DrainResult:
    """Outcome of one pass over the queue.

    Attributes:
        batch_size: Number of entries in the snapshot.
        succeeded: URLs the archive accepted, in submission order.
        failed: URLs that failed and remain queued.
        discarded: Number of corrupted entries dropped.
    """

    batch_size: int = 0
    succeeded: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    discarded: int = 0

    @property
    def handled(self) -> int:
        return len(self.succeeded) + len(self.failed) + self.discarded


def task_url(entry: Any) -> str | None:
    """Return the URL of a raw queue entry, or ``None`` if it is corrupted."""
    if isinstance(entry, dict):
        url = entry.get("url")
        if isinstance(url, str) and url:
            return url
    return None


class ArchiveQueue:
    """Ordered, persisted collection of pending submissions.

    Args:
        store: The shared key-value store.
        clock: Returns the current time in epoch seconds.
    """

    def __init__(
        self,
        store: KeyValueStore,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._clock = clock

    async def entries(self) -> list[Any]:
        """Return the raw persisted entries (possibly including corrupted ones)."""
        raw = await self._store.get(KEY_ARCHIVE_QUEUE, [])
        if not isinstance(raw, list):
            logger.warning("queue: persisted queue is %s, not a list; treating as empty", type(raw).__name__)
            return []
        return raw

    async def urls(self) -> list[str]:
        """Return the URLs of all valid entries in queue order."""
        return [url for url in map(task_url, await self.entries()) if url is not None]

    async def size(self) -> int:
        return len(await self.entries())

    async def enqueue_if_absent(self, url: str) -> bool:
        """Append *url* unless an entry with the same URL is already queued.

        Returns:
            ``True`` if a task was appended, ``False`` if it was already present.
        """
        entries = await self.entries()
        if any(task_url(entry) == url for entry in entries):
            return False
        entries.append(QueueTask(url=url, added_at=self._clock()).to_dict())
        await self._store.set(KEY_ARCHIVE_QUEUE, entries)
        logger.debug("queue: enqueued %s (size=%d)", url, len(entries))
        return True

    async def drain_batch(
        self,
        submit: SubmitFn,
        on_success: SuccessHook | None = None,
    ) -> DrainResult:
        """Attempt every currently queued task once.

        Args:
            submit: Coroutine returning ``True`` when the archive accepted the URL.
            on_success: Awaited with each accepted URL right after its submission.

        Returns:
            A :class:`DrainResult` describing the pass.
        """
        batch = await self.entries()
        result = DrainResult(batch_size=len(batch))
        attempted: set[str] = set()

        try:
            for entry in batch:
                url = task_url(entry)
                if url is None:
                    logger.warning("queue: discarding corrupted entry %r", entry)
                    result.discarded += 1
                    continue
                if url in attempted:
                    continue
                attempted.add(url)

                if await submit(url):
                    result.succeeded.append(url)
                    if on_success is not None:
                        await on_success(url)
                else:
                    result.failed.append(url)
        finally:
            if result.succeeded or result.discarded:
                await self._reconcile(set(result.succeeded))

        return result

    async def _reconcile(self, succeeded: set[str]) -> None:
        current = await self.entries()
        remaining: list[Any] = []
        for entry in current:
            url = task_url(entry)
            if url is not None and url not in succeeded:
                remaining.append(entry)
        await self._store.set(KEY_ARCHIVE_QUEUE, remaining)
        logger.debug(
            "queue: reconciled %d -> %d entries", len(current), len(remaining)
        )
