"""
SQL Sync Storage

Database backend built on the SQLAlchemy async engine. Each save
replaces the table contents inside one transaction, so a crash never
leaves a partially written queue behind.

Author: Khalil Bannouri
Version: 1.0.0
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import delete, select, text
from sqlalchemy.exc import SQLAlchemyError

from offline_sync.core.errors import PersistenceError
from offline_sync.database import Database
from offline_sync.models import ConflictRecord, QueuedActionRecord, SyncMetaRecord
from offline_sync.models import _as_utc
from offline_sync.schemas import Action, Conflict, SyncState
from offline_sync.services.storage.base import BaseSyncStorage, PersistedState

logger = logging.getLogger(__name__)


class SqlSyncStorage(BaseSyncStorage):
    """
    SQLAlchemy backend.

    Args:
        database_url: Async URL, e.g. sqlite+aiosqlite:///data/offline_queue.db
        database: Existing Database to reuse instead of creating one
    """

    def __init__(self, database_url: Optional[str] = None, database: Optional[Database] = None):
        if database is None and database_url is None:
            raise ValueError("database_url or database is required")
        self._db = database or Database(database_url)

    @property
    def provider_name(self) -> str:
        return "database"

    async def load(self) -> PersistedState:
        try:
            await self._db.init_db()
            async with self._db.session_maker() as session:
                actions = (
                    await session.execute(
                        select(QueuedActionRecord).order_by(QueuedActionRecord.position)
                    )
                ).scalars().all()
                conflicts = (
                    await session.execute(
                        select(ConflictRecord).order_by(ConflictRecord.position)
                    )
                ).scalars().all()
                meta = await session.get(SyncMetaRecord, 1)
        except SQLAlchemyError as e:
            logger.error(f"Error loading queue: {e}")
            raise PersistenceError(str(e), backend=self.provider_name) from e

        return PersistedState(
            actions=[record.to_action() for record in actions],
            conflicts=[record.to_conflict() for record in conflicts],
            sync_state=meta.sync_state if meta else SyncState.IDLE,
            last_sync_time=_as_utc(meta.last_sync_time) if meta else None,
        )

    async def save_queue(self, actions: list[Action]) -> None:
        try:
            await self._db.init_db()
            async with self._db.session_maker() as session:
                async with session.begin():
                    await session.execute(delete(QueuedActionRecord))
                    session.add_all(
                        QueuedActionRecord.from_action(action, position)
                        for position, action in enumerate(actions)
                    )
        except SQLAlchemyError as e:
            logger.error(f"Error saving queue: {e}")
            raise PersistenceError(str(e), backend=self.provider_name) from e

    async def save_conflicts(self, conflicts: list[Conflict]) -> None:
        try:
            await self._db.init_db()
            async with self._db.session_maker() as session:
                async with session.begin():
                    await session.execute(delete(ConflictRecord))
                    session.add_all(
                        ConflictRecord.from_conflict(conflict, position)
                        for position, conflict in enumerate(conflicts)
                    )
        except SQLAlchemyError as e:
            logger.error(f"Error saving conflicts: {e}")
            raise PersistenceError(str(e), backend=self.provider_name) from e

    async def save_sync_meta(
        self,
        sync_state: SyncState,
        last_sync_time: Optional[datetime],
    ) -> None:
        try:
            await self._db.init_db()
            async with self._db.session_maker() as session:
                async with session.begin():
                    await session.merge(
                        SyncMetaRecord(id=1, sync_state=sync_state, last_sync_time=last_sync_time)
                    )
        except SQLAlchemyError as e:
            logger.error(f"Error saving sync state: {e}")
            raise PersistenceError(str(e), backend=self.provider_name) from e

    async def health_check(self) -> bool:
        try:
            async with self._db.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            logger.error(f"Database health check failed: {e}")
            return False

    async def close(self) -> None:
        await self._db.dispose()
