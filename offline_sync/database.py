"""
Database Connection Module
Handles the SQL store for the database storage backend using the
SQLAlchemy async engine (SQLite via aiosqlite by default).
"""

import logging
from pathlib import Path

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase

logger = logging.getLogger(__name__)


# Base class for all our models
class Base(DeclarativeBase):
    pass


class Database:
    """
    Async engine plus session factory for one database URL.

    Each storage instance owns its Database so several engines (and tests)
    can point at different files.
    """

    def __init__(self, url: str, echo: bool = False):
        self.url = url
        self._ensure_sqlite_directory(url)
        self.engine = create_async_engine(url, echo=echo)
        self.session_maker = async_sessionmaker(
            bind=self.engine,
            class_=AsyncSession,
            expire_on_commit=False,  # Objects remain accessible after commit
        )
        self._initialized = False

    @staticmethod
    def _ensure_sqlite_directory(url: str) -> None:
        parsed = make_url(url)
        if parsed.get_backend_name() != "sqlite" or not parsed.database:
            return
        if parsed.database == ":memory:":
            return
        Path(parsed.database).parent.mkdir(parents=True, exist_ok=True)

    async def init_db(self) -> None:
        """
        Create all tables in database.
        Called once before the first read or write.
        """
        if self._initialized:
            return
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        self._initialized = True
        logger.info("Database tables created successfully")

    async def dispose(self) -> None:
        await self.engine.dispose()
