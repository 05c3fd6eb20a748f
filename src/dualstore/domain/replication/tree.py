"""Recursive reconciliation across multi-level parent/child hierarchies.

One generic synchronizer walks a tree of :class:`ChildLevel` descriptors instead
of hand-written code per depth. Per level it reconciles the children of one
parent, maps each desired item to the record the stores produced for it, and
recurses with the resolved id as the next foreign-key value. Rows removed at a
level lose their descendants first, deepest level first, so foreign keys are
never left dangling in either store.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from functools import partial
from typing import TYPE_CHECKING, Any

from dualstore.domain.errors import UnresolvedMappingError
from dualstore.domain.records import ID_FIELD, DesiredItem, ids_of

from .plan import ReconciliationResult, ReconciliationSummary
from .reconcile import reconcile_children
from .stores import StoreRole

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from dualstore.domain.ports import EntityAccessor, StoreSession, StoreTransaction
    from dualstore.domain.records import EntityRecord, RecordId

    from .stores import StorePair
    from .transaction import ReplicationTransaction

log = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class ChildLevel:
    """Descriptor for one nested collection.

    ``collection`` is the payload key holding the items, ``foreign_key`` the
    column linking each item to its parent, and ``inherit`` names ancestor keys
    that are stamped onto the rows as well (for tables that also reference a
    grandparent). ``fixed`` pins extra columns to constant values: they are
    stamped on every written row and narrow every lookup, so two levels can
    share one table without claiming each other's rows.
    """

    entity_name: str
    foreign_key: str
    collection: str
    children: tuple[ChildLevel, ...] = ()
    inherit: tuple[str, ...] = ()
    fixed: Mapping[str, Any] = field(default_factory=dict[str, Any])

    @property
    def child_keys(self) -> tuple[str, ...]:
        return tuple(child.collection for child in self.children)

    def scope(self, parent_ids: RecordId | list[RecordId]) -> dict[str, Any]:
        return {self.foreign_key: parent_ids, **self.fixed}


@dataclass(slots=True, frozen=True)
class AggregateDefinition:
    """A root entity and the child levels it owns."""

    entity_name: str
    children: tuple[ChildLevel, ...] = ()

    @property
    def child_keys(self) -> tuple[str, ...]:
        return tuple(child.collection for child in self.children)

    def level(self, collection: str) -> ChildLevel:
        for child in self.children:
            if child.collection == collection:
                return child
        raise KeyError(f"{self.entity_name} has no child collection {collection!r}")


@dataclass(slots=True)
class TreeSyncResult:
    """Outcome of synchronizing one level and everything below it."""

    entity_name: str
    records: list[EntityRecord] = field(default_factory=list["EntityRecord"])
    reconciliation: ReconciliationResult = field(default_factory=ReconciliationResult)
    totals: dict[str, ReconciliationSummary] = field(
        default_factory=dict["str", "ReconciliationSummary"]
    )
    unresolved: list[UnresolvedMappingError] = field(
        default_factory=list["UnresolvedMappingError"]
    )

    def absorb(self, other: TreeSyncResult) -> None:
        for entity_name, summary in other.totals.items():
            self.totals[entity_name] = self.totals.get(entity_name, ReconciliationSummary()) + summary
        self.unresolved.extend(other.unresolved)


def map_resolved_records(
    items: Sequence[DesiredItem],
    result: ReconciliationResult,
) -> list[EntityRecord | None]:
    """Pair every desired item with the record it produced, in input order.

    Items with an id match by id, and each updated record is claimed once so a
    repeated id resolves to ``None``. Items without an id take the next created
    record, which relies on ``bulk_create`` returning records in input order.
    """

    by_id = {record[ID_FIELD]: record for record in result.updated}
    created = iter(result.created)
    resolved: list[EntityRecord | None] = []
    for item in items:
        if item.id is not None:
            resolved.append(by_id.pop(item.id, None))
        else:
            resolved.append(next(created, None))
    return resolved


class NestedTreeSynchronizer:
    """Apply child reconciliation recursively within one transaction pair."""

    def __init__(self, stores: StorePair) -> None:
        self.stores = stores

    async def sync(
        self,
        tx: ReplicationTransaction,
        level: ChildLevel,
        parent_id: RecordId,
        desired: Sequence[Mapping[str, Any] | DesiredItem] | None,
        *,
        ancestors: Mapping[str, RecordId] | None = None,
    ) -> TreeSyncResult:
        """Reconcile ``level`` under ``parent_id`` and recurse into nested levels.

        ``None`` or an empty list removes every existing child and its subtree.
        """

        lineage = {**(ancestors or {}), level.foreign_key: parent_id}
        items = [DesiredItem.from_mapping(item, child_keys=level.child_keys) for item in desired or ()]
        reconciliation = await reconcile_children(
            tx,
            self.stores.accessors(level.entity_name),
            foreign_key=level.foreign_key,
            parent_id=parent_id,
            desired=items,
            stamp=_inherited(level, lineage),
            filters=level.fixed,
            before_delete=partial(self._cascade_children, tx, level),
        )
        result = TreeSyncResult(
            entity_name=level.entity_name,
            reconciliation=reconciliation,
            totals={level.entity_name: reconciliation.summary},
        )

        for index, (item, record) in enumerate(
            zip(items, map_resolved_records(items, reconciliation), strict=True)
        ):
            if record is None:
                error = UnresolvedMappingError(
                    level.entity_name,
                    index=index,
                    declared_id=item.id,
                    parent_id=parent_id,
                )
                log.warning("Skipping subtree: %s", error)
                result.unresolved.append(error)
                continue

            node = dict(record)
            for child in level.children:
                subtree = await self.sync(
                    tx,
                    child,
                    record[ID_FIELD],
                    item.children.get(child.collection),
                    ancestors=lineage,
                )
                node[child.collection] = subtree.records
                result.absorb(subtree)
            result.records.append(node)

        return result

    async def cascade_delete(
        self,
        tx: ReplicationTransaction,
        levels: Sequence[ChildLevel],
        parent_ids: Sequence[RecordId],
    ) -> dict[str, int]:
        """Delete every descendant of ``parent_ids`` across ``levels``, deepest first.

        Returns the number of rows removed per entity, taking the larger of the
        two store counts. The parents themselves are left for the caller.
        """

        removed: dict[str, int] = {}
        targets: list[tuple[StoreRole, StoreTransaction]] = [(StoreRole.PRIMARY, tx.primary)]
        if tx.secondary is not None:
            targets.append((StoreRole.SECONDARY, tx.secondary))
        for role, session in targets:
            counts: defaultdict[str, int] = defaultdict(int)
            for level in levels:
                await self._cascade_level(session, role, level, list(parent_ids), counts)
            for entity_name, count in counts.items():
                removed[entity_name] = max(removed.get(entity_name, 0), count)
        return removed

    async def load(
        self,
        session: StoreSession,
        levels: Sequence[ChildLevel],
        record: EntityRecord,
        *,
        dual_mode: bool = True,
    ) -> EntityRecord:
        """Attach every nested collection under ``record`` as read from one store."""

        node = dict(record)
        for level in levels:
            accessor = self._reader_accessor(level.entity_name, dual_mode=dual_mode)
            rows = await accessor.find_all(session, where=level.scope(record[ID_FIELD]))
            node[level.collection] = [
                await self.load(session, level.children, row, dual_mode=dual_mode) for row in rows
            ]
        return node

    async def _cascade_children(
        self,
        tx: ReplicationTransaction,
        level: ChildLevel,
        doomed_ids: list[RecordId],
    ) -> None:
        if level.children:
            await self.cascade_delete(tx, level.children, doomed_ids)

    async def _cascade_level(
        self,
        session: StoreTransaction,
        role: StoreRole,
        level: ChildLevel,
        parent_ids: list[RecordId],
        removed: defaultdict[str, int],
    ) -> None:
        # Each store walks its own rows so drifted ids never reach the other one.
        if not parent_ids:
            return
        accessor = self.stores.accessor_for(level.entity_name, role)
        where = level.scope(parent_ids)
        if level.children:
            child_ids = ids_of(await accessor.find_all(session, where=where))
            for child in level.children:
                await self._cascade_level(session, role, child, child_ids, removed)

        deleted = await accessor.delete(session, where=where)
        removed[level.entity_name] += deleted
        if deleted:
            log.info(
                "Cascade deleted %d %s row(s) under %s in %s",
                deleted,
                level.entity_name,
                level.foreign_key,
                session.store_name,
            )

    def _reader_accessor(self, entity_name: str, *, dual_mode: bool) -> EntityAccessor:
        accessors = self.stores.accessors(entity_name)
        return accessors.primary if dual_mode else accessors.secondary


def _inherited(level: ChildLevel, lineage: Mapping[str, RecordId]) -> dict[str, RecordId]:
    missing = [key for key in level.inherit if key not in lineage]
    if missing:
        raise KeyError(f"{level.entity_name} inherits unknown ancestor keys: {', '.join(missing)}")
    return {key: lineage[key] for key in level.inherit}
