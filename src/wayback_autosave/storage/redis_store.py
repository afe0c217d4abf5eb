"""Redis-backed key-value store.

Stores every value as a JSON document under ``<namespace><key>``.  There are
no transactions and no ``WATCH``: the pipeline's read-modify-write sequences
are serialized in memory by
:class:`~wayback_autosave.archiver.context.ArchiverContext` permits, and the
queue reconciliation in
:meth:`~wayback_autosave.archiver.queue.ArchiveQueue.drain_batch` tolerates
the remaining enqueue-during-drain race.

Typical usage::

    store = RedisStore.from_url(settings.redis_url, namespace=settings.store_namespace)
    try:
        enabled = await store.get("_enabled", True)
    finally:
        await store.aclose()
"""

from __future__ import annotations

import json
import logging
from typing import Any

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from wayback_autosave.core.exceptions import StorageError

logger = logging.getLogger(__name__)


class RedisStore:
    """Implementation of :class:`~wayback_autosave.storage.KeyValueStore` over Redis.

    Args:
        redis_client: An ``redis.asyncio.Redis`` client.  Must be created with
            ``decode_responses=True`` or return ``bytes``; both are handled.
        namespace: Prefix applied to every key.
    """

    def __init__(self, redis_client: aioredis.Redis, namespace: str = "") -> None:
        self._redis = redis_client
        self._namespace = namespace

    @classmethod
    def from_url(cls, url: str, namespace: str = "") -> "RedisStore":
        """Build a store from a Redis connection URL."""
        return cls(aioredis.from_url(url, decode_responses=True), namespace=namespace)

    def _key(self, key: str) -> str:
        return f"{self._namespace}{key}"

    async def get(self, key: str, default: Any = None) -> Any:
        full_key = self._key(key)
        try:
            raw = await self._redis.get(full_key)
        except RedisError as exc:
            raise StorageError(f"store: read failed for {full_key}: {exc}", key=key) from exc

        if raw is None:
            return default
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        try:
            return json.loads(raw)
        except ValueError as exc:
            raise StorageError(
                f"store: value under {full_key} is not valid JSON", key=key
            ) from exc

    async def set(self, key: str, value: Any) -> None:
        full_key = self._key(key)
        try:
            payload = json.dumps(value)
        except (TypeError, ValueError) as exc:
            raise StorageError(
                f"store: value for {full_key} is not JSON-serialisable: {exc}", key=key
            ) from exc
        try:
            await self._redis.set(full_key, payload)
        except RedisError as exc:
            raise StorageError(f"store: write failed for {full_key}: {exc}", key=key) from exc

    async def aclose(self) -> None:
        """Close the underlying connection pool."""
        try:
            await self._redis.aclose()
        except RedisError as exc:
            logger.warning("store: error closing redis connection: %s", exc)
