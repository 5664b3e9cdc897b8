"""SQLite key-value store built on SQLModel."""

import asyncio
import logging

from movietracker.core.database import (
    KeyValueEntry,
    create_db_and_tables,
    get_session,
    make_engine,
)
from movietracker.stores.base import KeyValueStore

logger = logging.getLogger(__name__)


class SQLiteStore(KeyValueStore):
    """Persists each key as one row; blocking calls run in a worker thread."""

    def __init__(self, database_url: str, echo: bool = False):
        self.engine = make_engine(database_url, echo=echo)
        create_db_and_tables(self.engine)

    @property
    def name(self) -> str:
        return "sqlite"

    def _get_sync(self, key: str) -> str | None:
        with get_session(self.engine) as session:
            entry = session.get(KeyValueEntry, key)
            return entry.value if entry else None

    def _set_sync(self, key: str, value: str) -> None:
        with get_session(self.engine) as session:
            entry = session.get(KeyValueEntry, key)
            if entry is None:
                entry = KeyValueEntry(key=key, value=value)
            else:
                entry.value = value
            session.add(entry)
            session.commit()

    def _remove_sync(self, key: str) -> None:
        with get_session(self.engine) as session:
            entry = session.get(KeyValueEntry, key)
            if entry is not None:
                session.delete(entry)
                session.commit()

    async def get_item(self, key: str) -> str | None:
        return await asyncio.to_thread(self._get_sync, key)

    async def set_item(self, key: str, value: str) -> None:
        await asyncio.to_thread(self._set_sync, key, value)

    async def remove_item(self, key: str) -> None:
        await asyncio.to_thread(self._remove_sync, key)

    async def aclose(self) -> None:
        logger.debug("Disposing SQLite engine %s", self.engine.url)
        await asyncio.to_thread(self.engine.dispose)
