"""Async SQLAlchemy engine holding the persisted GlassFlix state."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from sqlalchemy import MetaData, event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

logger = logging.getLogger(__name__)

SQLITE_BUSY_TIMEOUT_SECONDS = 30


class Base(DeclarativeBase):
    """Declarative base shared by the ORM tables."""

    metadata = MetaData()


def _enable_sqlite_wal(dbapi_connection: Any, _connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA synchronous=NORMAL")
    finally:
        cursor.close()


class Database:
    """Own the async engine and hand out sessions.

    SQLite files get their parent directory created up front, a generous busy
    timeout and WAL journaling, since the background collection writer and
    request handlers hold separate connections to the same file.
    """

    def __init__(self, database_url: str):
        url = make_url(database_url)
        engine_options: dict[str, Any] = {"future": True}
        is_sqlite = url.get_backend_name() == "sqlite"
        if is_sqlite:
            engine_options["connect_args"] = {"timeout": SQLITE_BUSY_TIMEOUT_SECONDS}
            if url.database and url.database != ":memory:":
                Path(url.database).expanduser().parent.mkdir(parents=True, exist_ok=True)

        self._engine: AsyncEngine = create_async_engine(url, **engine_options)
        if is_sqlite:
            event.listen(self._engine.sync_engine, "connect", _enable_sqlite_wal)
        self.session_factory: async_sessionmaker[AsyncSession] = async_sessionmaker(
            self._engine, expire_on_commit=False
        )

    async def create_all(self) -> None:
        """Create the blob table if it does not exist yet."""

        from . import db_models  # noqa: F401

        async with self._engine.begin() as connection:
            await connection.run_sync(Base.metadata.create_all)
        logger.info("Database ready at %s", self._engine.url.render_as_string(hide_password=True))

    async def dispose(self) -> None:
        await self._engine.dispose()
