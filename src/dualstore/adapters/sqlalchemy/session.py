"""Store sessions backed by SQLAlchemy async connections."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncConnection, AsyncTransaction

    from dualstore.domain.ports import StoreSession


class SessionClosedError(RuntimeError):
    """Raised when a finished transaction is used again."""


class SqlAlchemyStoreSession:
    """Read-only access to one store over a pooled connection."""

    def __init__(self, store_name: str, connection: AsyncConnection) -> None:
        self._store_name = store_name
        self.connection = connection

    @property
    def store_name(self) -> str:
        return self._store_name


class SqlAlchemyStoreTransaction(SqlAlchemyStoreSession):
    """An open transaction; the connection returns to the pool once it ends."""

    def __init__(
        self,
        store_name: str,
        connection: AsyncConnection,
        transaction: AsyncTransaction,
    ) -> None:
        super().__init__(store_name, connection)
        self._transaction = transaction
        self._closed = False

    @property
    def is_active(self) -> bool:
        return not self._closed and self._transaction.is_active

    async def commit(self) -> None:
        if self._closed:
            raise SessionClosedError(f"Transaction on {self.store_name} already finished")
        try:
            await self._transaction.commit()
        finally:
            await self._close()

    async def rollback(self) -> None:
        if self._closed:
            return
        try:
            if self._transaction.is_active:
                await self._transaction.rollback()
        finally:
            await self._close()

    async def _close(self) -> None:
        self._closed = True
        await self.connection.close()


def connection_of(session: StoreSession) -> AsyncConnection:
    if not isinstance(session, SqlAlchemyStoreSession):
        raise TypeError(f"Expected a SQLAlchemy store session, got {type(session).__name__}")
    if isinstance(session, SqlAlchemyStoreTransaction) and not session.is_active:
        raise SessionClosedError(f"Transaction on {session.store_name} already finished")
    return session.connection
