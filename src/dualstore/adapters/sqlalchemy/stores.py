"""Store handles over SQLAlchemy async engines."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import create_async_engine

from dualstore.domain.errors import UnknownEntityError
from dualstore.domain.replication import StorePair

from .accessors import SqlAlchemyEntityAccessor
from .mappings import ENTITY_TABLES, metadata
from .session import SqlAlchemyStoreSession, SqlAlchemyStoreTransaction

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Mapping

    from sqlalchemy import Table
    from sqlalchemy.ext.asyncio import AsyncEngine

    from dualstore.config import DatabaseConfig

log = logging.getLogger(__name__)

PRIMARY_STORE_NAME = "primary"
SECONDARY_STORE_NAME = "secondary"


class SqlAlchemyStoreHandle:
    """A named engine plus the accessors registered for it."""

    def __init__(
        self,
        name: str,
        engine: AsyncEngine,
        *,
        tables: Mapping[str, Table] = ENTITY_TABLES,
    ) -> None:
        self._name = name
        self.engine = engine
        self._accessors = {
            entity_name: SqlAlchemyEntityAccessor(entity_name, table)
            for entity_name, table in tables.items()
        }

    @property
    def name(self) -> str:
        return self._name

    @property
    def entity_names(self) -> frozenset[str]:
        return frozenset(self._accessors)

    def accessor_for(self, entity_name: str) -> SqlAlchemyEntityAccessor:
        try:
            return self._accessors[entity_name]
        except KeyError:
            raise UnknownEntityError(entity_name, self.name) from None

    async def begin(self) -> SqlAlchemyStoreTransaction:
        connection = await self.engine.connect()
        try:
            transaction = await connection.begin()
        except BaseException:
            await connection.close()
            raise
        return SqlAlchemyStoreTransaction(self.name, connection, transaction)

    @asynccontextmanager
    async def session(self) -> AsyncIterator[SqlAlchemyStoreSession]:
        async with self.engine.connect() as connection:
            yield SqlAlchemyStoreSession(self.name, connection)

    async def create_all(self) -> None:
        """Create missing tables; existing tables are left untouched."""

        async with self.engine.begin() as connection:
            await connection.run_sync(metadata.create_all)
        log.info("Ensured schema on %s", self.name)

    async def ping(self) -> bool:
        async with self.engine.connect() as connection:
            await connection.execute(text("SELECT 1"))
        return True

    async def dispose(self) -> None:
        await self.engine.dispose()


def _enable_sqlite_foreign_keys(dbapi_connection: Any, connection_record: Any) -> None:
    _ = connection_record
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_store_engine(uri: str, *, echo: bool = False) -> AsyncEngine:
    engine = create_async_engine(uri, echo=echo)
    if engine.dialect.name == "sqlite":
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def build_store_handle(name: str, uri: str, *, echo: bool = False) -> SqlAlchemyStoreHandle:
    return SqlAlchemyStoreHandle(name, create_store_engine(uri, echo=echo))


def build_store_pair(config: DatabaseConfig) -> StorePair:
    """Wire both stores from configuration; call once at process start."""

    if config.primary_uri == config.secondary_uri:
        log.warning("Primary and Secondary point at the same database: %s", config.primary_uri)
    return StorePair(
        primary=build_store_handle(PRIMARY_STORE_NAME, config.primary_uri, echo=config.echo),
        secondary=build_store_handle(SECONDARY_STORE_NAME, config.secondary_uri, echo=config.echo),
    )


async def dispose_store_pair(stores: StorePair) -> None:
    for handle in (stores.primary, stores.secondary):
        if isinstance(handle, SqlAlchemyStoreHandle):
            await handle.dispose()
