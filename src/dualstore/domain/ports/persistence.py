"""Ports implemented by store adapters."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, TypeAlias, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from contextlib import AbstractAsyncContextManager

    from dualstore.domain.records import EntityRecord, RecordId

Where: TypeAlias = "Mapping[str, Any]"


@runtime_checkable
class StoreSession(Protocol):
    """Opaque handle passed to accessors; either read-only or transactional."""

    @property
    def store_name(self) -> str: ...


@runtime_checkable
class StoreTransaction(StoreSession, Protocol):
    """A session with an open transaction on one store."""

    @property
    def is_active(self) -> bool: ...

    async def commit(self) -> None: ...

    async def rollback(self) -> None: ...


@runtime_checkable
class EntityAccessor(Protocol):
    """Table-shaped data access for one entity on one store.

    ``where`` filters compare scalars with ``=``, sequences with ``IN`` and
    ``None`` with ``IS NULL``. Keys that are not columns are ignored on writes.
    """

    @property
    def entity_name(self) -> str: ...

    async def create(self, session: StoreSession, data: Mapping[str, Any]) -> EntityRecord: ...

    async def bulk_create(
        self, session: StoreSession, items: Sequence[Mapping[str, Any]]
    ) -> list[EntityRecord]:
        """Insert ``items`` and return the stored records in input order."""
        ...

    async def update(
        self, session: StoreSession, data: Mapping[str, Any], *, where: Where
    ) -> int: ...

    async def delete(self, session: StoreSession, *, where: Where) -> int: ...

    async def find_all(
        self,
        session: StoreSession,
        *,
        where: Where | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[EntityRecord]: ...

    async def find_by_id(self, session: StoreSession, record_id: RecordId) -> EntityRecord | None: ...

    async def find_one(self, session: StoreSession, *, where: Where) -> EntityRecord | None: ...

    async def count(self, session: StoreSession, *, where: Where | None = None) -> int: ...


@runtime_checkable
class StoreHandle(Protocol):
    """A named connection to one physical store plus its entity registry."""

    @property
    def name(self) -> str: ...

    @property
    def entity_names(self) -> frozenset[str]: ...

    def accessor_for(self, entity_name: str) -> EntityAccessor: ...

    async def begin(self) -> StoreTransaction: ...

    def session(self) -> AbstractAsyncContextManager[StoreSession]: ...
