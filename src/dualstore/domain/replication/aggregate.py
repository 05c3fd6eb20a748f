"""Write and read whole parent/child aggregates under one transaction pair."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from dualstore.domain.errors import NotFoundError
from dualstore.domain.records import ID_FIELD, DesiredItem

from .plan import ReconciliationSummary
from .service import ReplicatedEntityService, replicated_write, tag_error
from .tree import NestedTreeSynchronizer

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from dualstore.domain.errors import UnresolvedMappingError
    from dualstore.domain.records import EntityRecord, RecordId

    from .stores import StorePair
    from .transaction import ReplicationTransaction
    from .tree import AggregateDefinition, ChildLevel, TreeSyncResult

log = logging.getLogger(__name__)


@dataclass(slots=True)
class AggregateWriteResult:
    """The written aggregate as stored in Primary, plus per-entity totals."""

    record: EntityRecord
    totals: dict[str, ReconciliationSummary] = field(
        default_factory=dict["str", "ReconciliationSummary"]
    )
    unresolved: list[UnresolvedMappingError] = field(
        default_factory=list["UnresolvedMappingError"]
    )

    def absorb(self, subtree: TreeSyncResult) -> None:
        for entity_name, summary in subtree.totals.items():
            self.totals[entity_name] = self.totals.get(entity_name, ReconciliationSummary()) + summary
        self.unresolved.extend(subtree.unresolved)

    def as_dict(self) -> dict[str, Any]:
        return {
            "record": self.record,
            "summary": {name: summary.as_dict() for name, summary in self.totals.items()},
            "unresolved": [str(error) for error in self.unresolved],
        }


class ReplicatedAggregateService:
    """Root record plus nested collections, replicated as one unit.

    At the root, only collections present in the payload are reconciled so a
    partial update leaves the others untouched. Below the root an absent
    collection means "no children".
    """

    def __init__(self, definition: AggregateDefinition, stores: StorePair) -> None:
        self.definition = definition
        self.stores = stores
        self.roots = ReplicatedEntityService(definition.entity_name, stores)
        self.tree = NestedTreeSynchronizer(stores)

    @property
    def entity_name(self) -> str:
        return self.definition.entity_name

    async def create(
        self,
        payload: Mapping[str, Any],
        *,
        dual_mode: bool = True,
    ) -> AggregateWriteResult:
        item = self._desired(payload)
        async with replicated_write(
            self.stores, entity_name=self.entity_name, operation="create", dual_mode=dual_mode
        ) as tx:
            root = await self.roots.create_in(tx, item.fields)
            result = await self._sync_present(tx, root, item)
            await tx.commit()
        log.info("Created %s %s with nested records", self.entity_name, root[ID_FIELD])
        return result

    async def update(
        self,
        record_id: RecordId,
        payload: Mapping[str, Any],
        *,
        dual_mode: bool = True,
    ) -> AggregateWriteResult:
        item = self._desired(payload)
        async with replicated_write(
            self.stores, entity_name=self.entity_name, operation="update", dual_mode=dual_mode
        ) as tx:
            root = await self.roots.update_in(tx, record_id, item.fields)
            if self._present_levels(item):
                await self._require_root(tx, record_id)
            result = await self._sync_present(tx, root, item)
            await tx.commit()
        log.info("Updated %s %s with nested records", self.entity_name, record_id)
        return result

    async def sync_collection(
        self,
        record_id: RecordId,
        collection: str,
        items: Sequence[Mapping[str, Any]] | None,
        *,
        dual_mode: bool = True,
    ) -> TreeSyncResult:
        """Reconcile a single nested collection of an existing root."""

        level = self.definition.level(collection)
        async with replicated_write(
            self.stores, entity_name=level.entity_name, operation="sync", dual_mode=dual_mode
        ) as tx:
            await self._require_root(tx, record_id)
            result = await self.tree.sync(tx, level, record_id, items)
            await tx.commit()
        return result

    async def delete(self, record_id: RecordId, *, dual_mode: bool = True) -> dict[str, int]:
        """Delete the root and every descendant, deepest level first."""

        async with replicated_write(
            self.stores, entity_name=self.entity_name, operation="delete", dual_mode=dual_mode
        ) as tx:
            await self._require_root(tx, record_id, anywhere=True)
            removed = await self.tree.cascade_delete(tx, self.definition.children, [record_id])
            await self.roots.delete_in(tx, record_id)
            await tx.commit()
        removed[self.entity_name] = 1
        log.info("Deleted %s %s and descendants: %s", self.entity_name, record_id, removed)
        return removed

    async def get(self, record_id: RecordId, *, dual_mode: bool = True) -> EntityRecord | None:
        handle = self.stores.reader(dual_mode=dual_mode)
        accessor = self.roots.accessors.primary if dual_mode else self.roots.accessors.secondary
        try:
            async with handle.session() as session:
                root = await accessor.find_by_id(session, record_id)
                if root is None:
                    return None
                return await self.tree.load(
                    session, self.definition.children, root, dual_mode=dual_mode
                )
        except Exception as exc:
            error = tag_error(exc, self.entity_name, "find")
            if error is exc:
                raise
            raise error from exc

    def _desired(self, payload: Mapping[str, Any]) -> DesiredItem:
        return DesiredItem.from_mapping(payload, child_keys=self.definition.child_keys)

    async def _sync_present(
        self,
        tx: ReplicationTransaction,
        root: EntityRecord,
        item: DesiredItem,
    ) -> AggregateWriteResult:
        result = AggregateWriteResult(record=dict(root))
        for level in self._present_levels(item):
            subtree = await self.tree.sync(
                tx, level, root[ID_FIELD], item.children.get(level.collection)
            )
            result.record[level.collection] = subtree.records
            result.absorb(subtree)
        return result

    def _present_levels(self, item: DesiredItem) -> list[ChildLevel]:
        return [level for level in self.definition.children if level.collection in item.children]

    async def _require_root(
        self,
        tx: ReplicationTransaction,
        record_id: RecordId,
        *,
        anywhere: bool = False,
    ) -> None:
        """Nested writes diff against Primary, so they need the root there.

        Deletes accept a root held by either store, like the flat ``delete_in``.
        """

        accessors = self.roots.accessors
        if await accessors.primary.find_by_id(tx.primary, record_id) is not None:
            return
        stores = tx.primary.store_name
        if anywhere and tx.secondary is not None:
            if await accessors.secondary.find_by_id(tx.secondary, record_id) is not None:
                return
            stores = f"{stores} and {tx.secondary.store_name}"
        raise NotFoundError(self.entity_name, record_id, stores=stores)
