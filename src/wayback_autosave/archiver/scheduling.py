"""Single-threaded scheduling primitives for the pipeline's event handlers.

Everything runs on one asyncio event loop, so the only hazards are
interleavings at ``await`` points.  These small tools make the intended
interleavings explicit:

- :class:`Permit` — a non-blocking mutual-exclusion flag.  A second caller
  does not wait for the holder; it is told the section is busy and returns.
- :class:`TaskGroupTracker` — owns fire-and-forget tasks and lets callers
  wait for them.
- :class:`Debouncer` — cancel-and-reschedule coalescing of bursts of
  trigger signals into one deferred call.
- :class:`PeriodicTask` — runs a coroutine at a fixed interval until stopped.

:class:`Debouncer` and :class:`PeriodicTask` log and contain exceptions
raised by the coroutines they run; a failure in one invocation never stops
later ones.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterator
from contextlib import contextmanager
from typing import Any

logger = logging.getLogger(__name__)

AsyncCallback = Callable[[], Awaitable[None]]


class Permit:
    """Non-blocking permit guarding one serialized section.

    Usage::

        with permit.hold() as acquired:
            if not acquired:
                return
            ...  # may await freely; released on exit, even on exception

    Args:
        name: Label used in log messages.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._held = False

    @property
    def held(self) -> bool:
        return self._held

    def try_acquire(self) -> bool:
        if self._held:
            return False
        self._held = True
        return True

    def release(self) -> None:
        self._held = False

    @contextmanager
    def hold(self) -> Iterator[bool]:
        """Try to take the permit for the duration of the ``with`` block.

        Yields:
            ``True`` if this caller holds the permit, ``False`` if another
            caller already held it (nothing is released on exit then).
        """
        acquired = self.try_acquire()
        if not acquired:
            logger.debug("scheduling: permit %s busy", self.name)
        try:
            yield acquired
        finally:
            if acquired:
                self.release()


class TaskGroupTracker:
    """Keeps strong references to fire-and-forget tasks until they finish."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[Any]] = set()

    def spawn(self, coro: Awaitable[Any], name: str | None = None) -> asyncio.Task[Any]:
        task = asyncio.ensure_future(coro)
        if name:
            task.set_name(name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def join(self) -> None:
        """Wait until every tracked task, including ones spawned meanwhile, is done."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def cancel_all(self) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)


async def _run_contained(callback: AsyncCallback, label: str) -> None:
    try:
        await callback()
    except asyncio.CancelledError:
        raise
    except Exception:  # noqa: BLE001
        logger.exception("scheduling: %s raised", label)


class Debouncer:
    """Coalesce bursts of :meth:`trigger` calls into one deferred callback.

    Each trigger cancels the pending timer and starts a new one; the callback
    runs *delay* seconds after the last trigger of a burst.

    Args:
        delay: Quiet period in seconds.
        callback: Coroutine function invoked once per burst.
        tracker: Tracker that owns the spawned callback tasks.
        name: Label used in log messages.
    """

    def __init__(
        self,
        delay: float,
        callback: AsyncCallback,
        tracker: TaskGroupTracker,
        name: str = "debounce",
    ) -> None:
        self._delay = delay
        self._callback = callback
        self._tracker = tracker
        self._name = name
        self._handle: asyncio.TimerHandle | None = None

    @property
    def delay(self) -> float:
        return self._delay

    @property
    def scheduled(self) -> bool:
        return self._handle is not None

    def trigger(self) -> None:
        self.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self._delay, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        self._tracker.spawn(_run_contained(self._callback, self._name), name=self._name)


class PeriodicTask:
    """Invoke a coroutine function every *interval* seconds.

    The first run happens one interval after :meth:`start`.  Runs never
    overlap: the next sleep starts after the previous run returned.

    Args:
        interval: Seconds between runs.
        callback: Coroutine function to invoke.
        name: Label used in log messages.
    """

    def __init__(self, interval: float, callback: AsyncCallback, name: str = "periodic") -> None:
        self._interval = interval
        self._callback = callback
        self._name = name
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._loop(), name=self._name)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            await _run_contained(self._callback, self._name)
