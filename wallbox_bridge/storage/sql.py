"""
Key/value storage in a SQL database through SQLAlchemy's asyncio extension.
"""

from loguru import logger
from sqlalchemy import select

from wallbox_bridge.database import create_engine, create_session_factory, init_db, close_db
from wallbox_bridge.models.schema import KeyValueEntry
from wallbox_bridge.storage.base import KeyValueStorageBase


class SqlKeyValueStorage(KeyValueStorageBase):
    """Stores entries in the ``key_value_entries`` table; tables are created on first use."""

    def __init__(self, uri: str):
        super().__init__(uri)
        self.engine = create_engine(uri)
        self.session_factory = create_session_factory(self.engine)
        self._initialized = False

    async def _ensure_tables(self):
        if not self._initialized:
            await init_db(self.engine)
            self._initialized = True

    async def get(self, key: str):
        await self._ensure_tables()
        async with self.session_factory() as session:
            entry = await session.get(KeyValueEntry, key)
            return entry.value if entry else None

    async def set(self, key: str, value) -> None:
        await self._ensure_tables()
        async with self.session_factory() as session:
            try:
                entry = await session.get(KeyValueEntry, key)
                if entry is None:
                    session.add(KeyValueEntry(key=key, value=value))
                else:
                    entry.value = value
                await session.commit()
            except Exception as e:
                logger.error(f"Failed to store key {key}: {e}")
                await session.rollback()
                raise

    async def delete(self, key: str) -> None:
        await self._ensure_tables()
        async with self.session_factory() as session:
            try:
                entry = await session.get(KeyValueEntry, key)
                if entry is not None:
                    await session.delete(entry)
                    await session.commit()
            except Exception as e:
                logger.error(f"Failed to delete key {key}: {e}")
                await session.rollback()
                raise

    async def list(self, prefix: str = None) -> list:
        await self._ensure_tables()
        async with self.session_factory() as session:
            query = select(KeyValueEntry).order_by(KeyValueEntry.key)
            if prefix is not None:
                query = query.where(KeyValueEntry.key.startswith(prefix, autoescape=True))
            result = await session.execute(query)
            return [(entry.key, entry.value) for entry in result.scalars().all()]

    async def close(self) -> None:
        await close_db(self.engine)
