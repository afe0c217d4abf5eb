"""Per-URL record of the last confirmed successful submission.

Each record is one store key, ``ts_<url>`` → epoch seconds.  Records are
written only after the archive confirmed a save and are never evicted; the
key space is bounded by the distinct items and content URLs ever visited.
"""

from __future__ import annotations

import time
from collections.abc import Callable

from wayback_autosave.archiver.config import COOLDOWN_KEY_PREFIX
from wayback_autosave.storage import KeyValueStore


class CooldownLedger:
    """Answers "was this URL archived recently?".

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

    @staticmethod
    def key_for(url: str) -> str:
        return f"{COOLDOWN_KEY_PREFIX}{url}"

    async def last_submitted_at(self, url: str) -> float:
        """Timestamp of the last successful submission, ``0.0`` when unknown."""
        value = await self._store.get(self.key_for(url), 0)
        try:
            return float(value)
        except (TypeError, ValueError):
            return 0.0

    async def is_on_cooldown(self, url: str, window: float) -> bool:
        """Return ``True`` iff *url* succeeded less than *window* seconds ago."""
        return self._clock() - await self.last_submitted_at(url) < window

    async def record_success(self, url: str, now: float | None = None) -> None:
        """Overwrite the record for *url* with *now* (default: the clock)."""
        await self._store.set(self.key_for(url), self._clock() if now is None else now)
