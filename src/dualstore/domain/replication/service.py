"""Generic CRUD fanned out to one or both stores under paired transactions."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from dualstore.domain.errors import NotFoundError, ReplicationError
from dualstore.domain.records import ID_FIELD, with_identity, without_identity

from .plan import BulkWriteResult, partition_by_identity
from .transaction import ReplicationTransaction

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Mapping, Sequence
    from contextlib import AbstractAsyncContextManager

    from dualstore.domain.ports import EntityAccessor, StoreSession, Where
    from dualstore.domain.records import DesiredItem, EntityRecord, RecordId

    from .stores import AccessorPair, StorePair

log = logging.getLogger(__name__)


def tag_error(exc: BaseException, entity_name: str, operation: str) -> ReplicationError:
    """Return ``exc`` as a :class:`ReplicationError` carrying entity/operation context."""

    if isinstance(exc, ReplicationError):
        return exc.tag(entity_name, operation)
    error = ReplicationError(str(exc) or type(exc).__name__)
    return error.tag(entity_name, operation)


@asynccontextmanager
async def replicated_write(
    stores: StorePair,
    *,
    entity_name: str,
    operation: str,
    dual_mode: bool,
) -> AsyncIterator[ReplicationTransaction]:
    """Open a transaction pair; on any error roll back and re-raise with context.

    The body is responsible for calling ``commit()``.
    """

    try:
        tx = await ReplicationTransaction.begin(stores, dual_mode=dual_mode)
    except Exception as exc:
        error = tag_error(exc, entity_name, operation)
        if error is exc:
            raise
        raise error from exc

    async with tx:
        try:
            yield tx
        except Exception as exc:
            log.error("Error during %s of %s: %s", operation, entity_name, exc)
            await tx.rollback()
            error = tag_error(exc, entity_name, operation)
            if error is exc:
                raise
            raise error from exc


@dataclass(slots=True)
class ReplicatedEntityService:
    """Create/update/delete/read for one entity across Primary and Secondary."""

    entity_name: str
    stores: StorePair
    _accessors: AccessorPair = field(init=False)

    def __post_init__(self) -> None:
        self._accessors = self.stores.accessors(self.entity_name)

    @property
    def accessors(self) -> AccessorPair:
        return self._accessors

    # Writes -------------------------------------------------------------------

    async def create(self, data: Mapping[str, Any], *, dual_mode: bool = True) -> EntityRecord:
        async with self._write("create", dual_mode) as tx:
            record = await self.create_in(tx, data)
            await tx.commit()
        log.info("%s %s created in %s", self.entity_name, record[ID_FIELD], _targets(tx))
        return record

    async def update(
        self,
        record_id: RecordId,
        data: Mapping[str, Any],
        *,
        dual_mode: bool = True,
    ) -> EntityRecord:
        async with self._write("update", dual_mode) as tx:
            record = await self.update_in(tx, record_id, data)
            await tx.commit()
        log.info("%s %s updated in %s", self.entity_name, record_id, _targets(tx))
        return record

    async def delete(self, record_id: RecordId, *, dual_mode: bool = True) -> bool:
        async with self._write("delete", dual_mode) as tx:
            await self.delete_in(tx, record_id)
            await tx.commit()
        log.info("%s %s deleted from %s", self.entity_name, record_id, _targets(tx))
        return True

    async def bulk_create(
        self,
        items: Sequence[Mapping[str, Any]],
        *,
        dual_mode: bool = True,
    ) -> list[EntityRecord]:
        async with self._write("bulk create", dual_mode) as tx:
            records = await self._insert_mirrored(tx, [without_identity(item) for item in items])
            await tx.commit()
        log.info("Bulk created %d %s(s) in %s", len(records), self.entity_name, _targets(tx))
        return records

    async def bulk_create_or_update(
        self,
        items: Sequence[Mapping[str, Any]],
        *,
        dual_mode: bool = True,
    ) -> BulkWriteResult:
        to_create, to_update = partition_by_identity(items)
        log.info(
            "Bulk operation on %s: %d to create, %d to update",
            self.entity_name,
            len(to_create),
            len(to_update),
        )
        result = BulkWriteResult()
        async with self._write("bulk create/update", dual_mode) as tx:
            if to_create:
                result.created = await self._insert_mirrored(tx, [item.row() for item in to_create])
            for item in to_update:
                updated = await self._update_mirrored(tx, item)
                if updated is not None:
                    result.updated.append(updated)
            await tx.commit()
        return result

    # Writes inside a caller-owned transaction pair --------------------------

    async def create_in(self, tx: ReplicationTransaction, data: Mapping[str, Any]) -> EntityRecord:
        """Insert into Primary, then mirror the row into Secondary with the same id."""

        values = without_identity(data)
        record = await self._accessors.primary.create(tx.primary, values)
        record_id = record[ID_FIELD]
        log.debug("Created %s in %s with ID %s", self.entity_name, tx.primary.store_name, record_id)
        if tx.secondary is not None:
            # Stores do not share auto-increment counters; force the Primary id.
            await self._accessors.secondary.create(tx.secondary, with_identity(values, record_id))
            log.debug("Mirrored %s %s into %s", self.entity_name, record_id, tx.secondary.store_name)
        return record

    async def update_in(
        self,
        tx: ReplicationTransaction,
        record_id: RecordId,
        data: Mapping[str, Any],
    ) -> EntityRecord:
        values = without_identity(data)
        where = {ID_FIELD: record_id}
        affected = await self._accessors.primary.update(tx.primary, values, where=where)
        if tx.secondary is not None:
            affected += await self._accessors.secondary.update(tx.secondary, values, where=where)
        if affected == 0:
            raise NotFoundError(self.entity_name, record_id, stores=_targets(tx))
        record = await self._accessors.primary.find_by_id(tx.primary, record_id)
        if record is None and tx.secondary is not None:
            log.warning(
                "%s %s exists in %s only; returning that copy",
                self.entity_name,
                record_id,
                tx.secondary.store_name,
            )
            record = await self._accessors.secondary.find_by_id(tx.secondary, record_id)
        if record is None:
            raise NotFoundError(self.entity_name, record_id, stores=_targets(tx))
        return record

    async def delete_in(self, tx: ReplicationTransaction, record_id: RecordId) -> None:
        where = {ID_FIELD: record_id}
        deleted = await self._accessors.primary.delete(tx.primary, where=where)
        if tx.secondary is not None:
            deleted += await self._accessors.secondary.delete(tx.secondary, where=where)
        if deleted == 0:
            raise NotFoundError(self.entity_name, record_id, stores=_targets(tx))

    # Reads --------------------------------------------------------------------

    async def find_all(
        self,
        *,
        where: Where | None = None,
        limit: int | None = None,
        offset: int | None = None,
        dual_mode: bool = True,
    ) -> list[EntityRecord]:
        async with self._read("find", dual_mode) as (accessor, session):
            records = await accessor.find_all(session, where=where, limit=limit, offset=offset)
        log.debug("Found %d %s(s) in %s", len(records), self.entity_name, session.store_name)
        return records

    async def find_and_count_all(
        self,
        *,
        where: Where | None = None,
        limit: int | None = None,
        offset: int | None = None,
        dual_mode: bool = True,
    ) -> tuple[int, list[EntityRecord]]:
        """Return the total matching ``where`` and one page of records."""

        async with self._read("find", dual_mode) as (accessor, session):
            total = await accessor.count(session, where=where)
            rows = await accessor.find_all(session, where=where, limit=limit, offset=offset)
        return total, rows

    async def find_by_id(self, record_id: RecordId, *, dual_mode: bool = True) -> EntityRecord | None:
        async with self._read("find", dual_mode) as (accessor, session):
            record = await accessor.find_by_id(session, record_id)
        if record is None:
            log.debug("%s with ID %s not found in %s", self.entity_name, record_id, session.store_name)
        return record

    async def find_one(self, *, where: Where, dual_mode: bool = True) -> EntityRecord | None:
        async with self._read("find", dual_mode) as (accessor, session):
            return await accessor.find_one(session, where=where)

    async def count(self, *, where: Where | None = None, dual_mode: bool = True) -> int:
        async with self._read("count", dual_mode) as (accessor, session):
            return await accessor.count(session, where=where)

    # Internals ----------------------------------------------------------------

    def _write(
        self, operation: str, dual_mode: bool
    ) -> AbstractAsyncContextManager[ReplicationTransaction]:
        return replicated_write(
            self.stores,
            entity_name=self.entity_name,
            operation=operation,
            dual_mode=dual_mode,
        )

    @asynccontextmanager
    async def _read(
        self, operation: str, dual_mode: bool
    ) -> AsyncIterator[tuple[EntityAccessor, StoreSession]]:
        handle = self.stores.reader(dual_mode=dual_mode)
        accessor = self._accessors.primary if dual_mode else self._accessors.secondary
        try:
            async with handle.session() as session:
                yield accessor, session
        except Exception as exc:
            error = tag_error(exc, self.entity_name, operation)
            if error is exc:
                raise
            raise error from exc

    async def _insert_mirrored(
        self,
        tx: ReplicationTransaction,
        rows: list[EntityRecord],
    ) -> list[EntityRecord]:
        if not rows:
            return []
        created = await self._accessors.primary.bulk_create(tx.primary, rows)
        if tx.secondary is not None:
            mirrored = [
                with_identity(row, record[ID_FIELD])
                for row, record in zip(rows, created, strict=True)
            ]
            await self._accessors.secondary.bulk_create(tx.secondary, mirrored)
        return created

    async def _update_mirrored(
        self,
        tx: ReplicationTransaction,
        item: DesiredItem,
    ) -> EntityRecord | None:
        if item.id is None:
            return None
        values = item.row()
        where = {ID_FIELD: item.id}
        await self._accessors.primary.update(tx.primary, values, where=where)
        if tx.secondary is not None:
            await self._accessors.secondary.update(tx.secondary, values, where=where)
        return await self._accessors.primary.find_by_id(tx.primary, item.id)


def _targets(tx: ReplicationTransaction) -> str:
    if tx.secondary is None:
        return tx.primary.store_name
    return f"{tx.primary.store_name} and {tx.secondary.store_name}"
