"""Key-value blob storage on top of the async database session factory."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .db_models import BlobRecord

logger = logging.getLogger(__name__)

GUEST_COLLECTION_KEY = "glassflix_collection"
USERS_KEY = "glassflix_users"
CURRENT_USER_KEY = "glassflix_current_user"
LANGUAGE_KEY = "glassflix_language"


class BlobStore:
    """Store JSON documents keyed by name, one row per key."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def get(self, key: str, default: Any = None) -> Any:
        async with self._session_factory() as session:
            stmt = select(BlobRecord.payload).where(BlobRecord.key == key)
            result = await session.execute(stmt)
            row = result.first()
        if row is None or row[0] is None:
            return default
        return row[0]

    async def put(self, key: str, payload: Any) -> None:
        async with self._session_factory() as session:
            record = await session.get(BlobRecord, key)
            if record is None:
                session.add(BlobRecord(key=key, payload=payload))
            else:
                record.payload = payload
                record.updated_at = datetime.utcnow()
            await session.commit()
        logger.debug("Stored blob %s", key)

    async def delete(self, key: str) -> None:
        async with self._session_factory() as session:
            await session.execute(delete(BlobRecord).where(BlobRecord.key == key))
            await session.commit()
