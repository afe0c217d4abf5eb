"""In-process key-value store.

Backs the pipeline in tests and in one-shot CLI runs that do not need state
to outlive the process.  Every call yields to the event loop once so that
code exercised against it sees the same interleaving points it would see
against a networked backend.
"""

from __future__ import annotations

import asyncio
import copy
from typing import Any


class MemoryStore:
    """Dict-backed implementation of :class:`~wayback_autosave.storage.KeyValueStore`.

    Values are deep-copied on the way in and on the way out, so a caller
    mutating a list it read (e.g. the archive queue) does not change the
    stored value until it explicitly writes it back.

    Args:
        initial: Optional mapping used to pre-populate the store.
    """

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = copy.deepcopy(initial) if initial else {}

    async def get(self, key: str, default: Any = None) -> Any:
        await asyncio.sleep(0)
        if key not in self._data:
            return default
        return copy.deepcopy(self._data[key])

    async def set(self, key: str, value: Any) -> None:
        await asyncio.sleep(0)
        self._data[key] = copy.deepcopy(value)

    def snapshot(self) -> dict[str, Any]:
        """Return a deep copy of every stored key (synchronous; for inspection)."""
        return copy.deepcopy(self._data)

    async def aclose(self) -> None:
        """Nothing to release; present for interface parity with ``RedisStore``."""
