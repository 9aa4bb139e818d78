"""
Redis Sync Storage

Stores the queue, the conflict list and the drain metadata as three
JSON strings under a shared key prefix. Each save overwrites one key,
which Redis applies atomically.

Keys:
    {prefix}:queue      list of Actions in drain order
    {prefix}:conflicts  list of Conflicts in detection order
    {prefix}:meta       sync_state / last_sync_time

Author: Khalil Bannouri
Version: 1.0.0
"""

import json
import logging
from datetime import datetime
from typing import Any, Optional

from redis.asyncio import Redis
from redis.exceptions import RedisError

from offline_sync.core.errors import PersistenceError
from offline_sync.schemas import Action, Conflict, SyncState
from offline_sync.services.storage.base import (
    BaseSyncStorage,
    PersistedState,
    decode_document,
    encode_actions,
    encode_conflicts,
    encode_meta,
)

logger = logging.getLogger(__name__)


class RedisSyncStorage(BaseSyncStorage):
    """
    Redis backend.

    Args:
        redis_url: Connection URL (ignored when `client` is given)
        prefix: Key namespace
        client: Pre-built redis.asyncio client
    """

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379/0",
        prefix: str = "offline_sync",
        client: Optional[Redis] = None,
    ):
        self.prefix = prefix
        self._client = client or Redis.from_url(redis_url, decode_responses=True)

    @property
    def provider_name(self) -> str:
        return "redis"

    def _key(self, name: str) -> str:
        return f"{self.prefix}:{name}"

    async def _set(self, name: str, value: Any) -> None:
        try:
            await self._client.set(self._key(name), json.dumps(value))
        except RedisError as e:
            logger.error(f"Redis write failed for {self._key(name)}: {e}")
            raise PersistenceError(str(e), backend=self.provider_name) from e

    async def load(self) -> PersistedState:
        try:
            raw_queue, raw_conflicts, raw_meta = await self._client.mget(
                self._key("queue"), self._key("conflicts"), self._key("meta")
            )
        except RedisError as e:
            logger.error(f"Redis read failed: {e}")
            raise PersistenceError(str(e), backend=self.provider_name) from e

        try:
            document = {
                "queue": json.loads(raw_queue) if raw_queue else [],
                "conflicts": json.loads(raw_conflicts) if raw_conflicts else [],
                "meta": json.loads(raw_meta) if raw_meta else {},
            }
            return decode_document(document)
        except ValueError as e:
            raise PersistenceError(f"Corrupt queue data: {e}", backend=self.provider_name) from e

    async def save_queue(self, actions: list[Action]) -> None:
        await self._set("queue", encode_actions(actions))

    async def save_conflicts(self, conflicts: list[Conflict]) -> None:
        await self._set("conflicts", encode_conflicts(conflicts))

    async def save_sync_meta(
        self,
        sync_state: SyncState,
        last_sync_time: Optional[datetime],
    ) -> None:
        await self._set("meta", encode_meta(sync_state, last_sync_time))

    async def health_check(self) -> bool:
        try:
            return bool(await self._client.ping())
        except RedisError as e:
            logger.error(f"Redis health check failed: {e}")
            return False

    async def close(self) -> None:
        await self._client.aclose()
