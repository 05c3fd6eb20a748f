"""Diff-based synchronization of one parent's children across both stores."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, TypeAlias

from dualstore.domain.records import ID_FIELD, ids_of, with_identity

from .plan import ReconciliationPlan, ReconciliationResult

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Mapping, Sequence

    from dualstore.domain.records import DesiredItem, EntityRecord, RecordId

    from .stores import AccessorPair
    from .transaction import ReplicationTransaction

    BeforeDelete: TypeAlias = Callable[[list[RecordId]], Awaitable[None]]

log = logging.getLogger(__name__)


async def reconcile_children(
    tx: ReplicationTransaction,
    accessors: AccessorPair,
    *,
    foreign_key: str,
    parent_id: RecordId,
    desired: Sequence[DesiredItem | Mapping[str, Any]],
    stamp: Mapping[str, Any] | None = None,
    filters: Mapping[str, Any] | None = None,
    before_delete: BeforeDelete | None = None,
) -> ReconciliationResult:
    """Make the children of ``parent_id`` match ``desired`` in every store of ``tx``.

    Primary is the source of truth for the diff. Deletes run first so a client
    can drop and re-add an equivalent row in one call without tripping unique
    constraints. ``stamp`` adds extra columns (ancestor keys) to every written
    row; ``filters`` are constant column values that narrow the existing
    children and are stamped on written rows too; ``before_delete`` runs with
    the doomed ids before they are removed. Never commits or rolls back.
    """

    scope = {foreign_key: parent_id, **(filters or {})}
    existing = await accessors.primary.find_all(tx.primary, where=scope)
    plan = ReconciliationPlan.build(ids_of(existing), desired)
    log.info(
        "Sync %s for %s=%s: create=%d update=%d delete=%d",
        accessors.entity_name,
        foreign_key,
        parent_id,
        len(plan.to_create),
        len(plan.to_update),
        len(plan.to_delete),
    )
    for item in plan.unmatched:
        log.warning(
            "Ignoring %s id %s: not a child of %s=%s or listed twice",
            accessors.entity_name,
            item.id,
            foreign_key,
            parent_id,
        )

    row_stamp = {**(stamp or {}), **scope}
    result = ReconciliationResult(unmatched=list(plan.unmatched))

    if plan.to_delete:
        if before_delete is not None:
            await before_delete(plan.to_delete)
        where = {ID_FIELD: plan.to_delete, **scope}
        deleted = await accessors.primary.delete(tx.primary, where=where)
        log.debug("Deleted %d %s row(s) from %s", deleted, accessors.entity_name, tx.primary.store_name)
        if tx.secondary is not None:
            deleted = await accessors.secondary.delete(tx.secondary, where=where)
            log.debug(
                "Deleted %d %s row(s) from %s", deleted, accessors.entity_name, tx.secondary.store_name
            )
        result.deleted = list(plan.to_delete)

    if plan.to_create:
        rows = [item.row(**row_stamp) for item in plan.to_create]
        result.created = await accessors.primary.bulk_create(tx.primary, rows)
        if tx.secondary is not None:
            mirrored = [
                with_identity(row, record[ID_FIELD])
                for row, record in zip(rows, result.created, strict=True)
            ]
            await accessors.secondary.bulk_create(tx.secondary, mirrored)

    for item in plan.to_update:
        updated = await _update_child(tx, accessors, item, row_stamp=row_stamp, scope=scope)
        if updated is not None:
            result.updated.append(updated)

    return result


async def _update_child(
    tx: ReplicationTransaction,
    accessors: AccessorPair,
    item: DesiredItem,
    *,
    row_stamp: Mapping[str, Any],
    scope: Mapping[str, Any],
) -> EntityRecord | None:
    where = {ID_FIELD: item.id, **scope}
    values = item.row(**row_stamp)
    await accessors.primary.update(tx.primary, values, where=where)
    if tx.secondary is not None:
        await accessors.secondary.update(tx.secondary, values, where=where)
    if item.id is None:
        return None
    return await accessors.primary.find_by_id(tx.primary, item.id)
