"""Process-wide pipeline state.

:class:`ArchiverContext` is the one place that touches the enabled flag and
the last-seen pointer, and it owns the in-memory permits that serialize the
re-entrant parts of the pipeline.

Lifecycle:

1. Built once per process with the shared store.
2. :meth:`ArchiverContext.initialize` loads the persisted flag and pointer.
3. Afterwards the values are only changed through the named operations
   below.  Reads used for decisions go back to the store first; the cached
   attributes are for display and logging only.
"""

from __future__ import annotations

import logging

from wayback_autosave.archiver.config import KEY_ENABLED, KEY_LAST_PROCESSED
from wayback_autosave.archiver.scheduling import Permit
from wayback_autosave.storage import KeyValueStore

logger = logging.getLogger(__name__)


class ArchiverContext:
    """Shared state handle passed to every pipeline component.

    Attributes:
        store: The shared key-value store.
        evaluation_permit: Serializes navigation evaluations.
        drain_permit: Serializes queue drains.
        save_permit: Serializes manual "save now" requests.

    Args:
        store: The shared key-value store.
        enabled_default: Enabled flag assumed when none is persisted.
    """

    def __init__(self, store: KeyValueStore, enabled_default: bool = True) -> None:
        self.store = store
        self.enabled_default = enabled_default
        self.evaluation_permit = Permit("evaluation")
        self.drain_permit = Permit("drain")
        self.save_permit = Permit("save_now")
        self.enabled: bool = enabled_default
        self.last_seen: str = ""
        self.initialized = False

    async def initialize(self) -> None:
        """Load the persisted enabled flag and last-seen pointer."""
        self.enabled = bool(await self.store.get(KEY_ENABLED, self.enabled_default))
        self.last_seen = await self.read_last_seen()
        self.initialized = True
        logger.info("autosave: state loaded (enabled=%s)", self.enabled)

    # -- enabled flag ----------------------------------------------------

    async def is_enabled(self) -> bool:
        """Re-read the enabled flag from the store."""
        self.enabled = bool(await self.store.get(KEY_ENABLED, self.enabled_default))
        return self.enabled

    async def set_enabled(self, enabled: bool) -> None:
        await self.store.set(KEY_ENABLED, enabled)
        self.enabled = enabled

    async def toggle_enabled(self) -> bool:
        """Flip and persist the enabled flag; return the new value."""
        new_value = not await self.is_enabled()
        await self.set_enabled(new_value)
        return new_value

    # -- last-seen pointer -----------------------------------------------

    async def read_last_seen(self) -> str:
        value = await self.store.get(KEY_LAST_PROCESSED, "")
        self.last_seen = value if isinstance(value, str) else ""
        return self.last_seen

    async def mark_seen(self, identity: str) -> None:
        await self.store.set(KEY_LAST_PROCESSED, identity)
        self.last_seen = identity

    async def clear_last_seen(self) -> None:
        await self.store.set(KEY_LAST_PROCESSED, "")
        self.last_seen = ""
