"""Persistent key-value store backends.

The archiving pipeline treats its store as an asynchronous, eventually
consistent ``get``/``set`` map with no transactions.  Two backends implement
the :class:`KeyValueStore` protocol:

- ``memory``      — :class:`~wayback_autosave.storage.memory.MemoryStore`,
  a process-local dict used by tests and one-shot runs.
- ``redis_store`` — :class:`~wayback_autosave.storage.redis_store.RedisStore`,
  JSON values in Redis under a namespace prefix.

Values must be JSON-serialisable (bools, numbers, strings, lists, dicts).
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class KeyValueStore(Protocol):
    """Asynchronous persistent map used as the pipeline's sole source of truth."""

    async def get(self, key: str, default: Any = None) -> Any:
        """Return the value stored under *key*, or *default* when absent."""
        ...

    async def set(self, key: str, value: Any) -> None:
        """Persist *value* under *key*, replacing any previous value."""
        ...


__all__ = ["KeyValueStore"]
