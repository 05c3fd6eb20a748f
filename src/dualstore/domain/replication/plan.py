"""Diff types for child reconciliation.

The plan is computed from the existing child ids of one parent and the desired
item list. Identity presence alone decides create vs. update; absence from the
desired list decides delete.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from dualstore.domain.records import DesiredItem

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from dualstore.domain.records import EntityRecord, RecordId


def partition_by_identity(
    items: Iterable[DesiredItem | Mapping[str, Any]],
) -> tuple[list[DesiredItem], list[DesiredItem]]:
    """Split items into ``(to_create, to_update)`` by identity presence."""

    to_create: list[DesiredItem] = []
    to_update: list[DesiredItem] = []
    for raw in items:
        item = DesiredItem.from_mapping(raw)
        (to_create if item.is_new else to_update).append(item)
    return to_create, to_update


@dataclass(slots=True)
class ReconciliationPlan:
    """Disjoint create/update/delete sets for one foreign-key value.

    ``ids(to_update) | to_delete == existing_ids`` always holds. Items that
    declare an id which is not an existing child, or repeat an id already
    claimed earlier in the list, land in ``unmatched`` and are not written.
    """

    to_create: list[DesiredItem] = field(default_factory=list["DesiredItem"])
    to_update: list[DesiredItem] = field(default_factory=list["DesiredItem"])
    to_delete: list[RecordId] = field(default_factory=list["RecordId"])
    unmatched: list[DesiredItem] = field(default_factory=list["DesiredItem"])

    @classmethod
    def build(
        cls,
        existing_ids: Iterable[RecordId],
        desired: Iterable[DesiredItem | Mapping[str, Any]],
    ) -> ReconciliationPlan:
        existing = list(dict.fromkeys(existing_ids))
        existing_set = set(existing)
        plan = cls()
        claimed: set[RecordId] = set()
        for raw in desired:
            item = DesiredItem.from_mapping(raw)
            if item.id is None:
                plan.to_create.append(item)
            elif item.id in existing_set and item.id not in claimed:
                plan.to_update.append(item)
                claimed.add(item.id)
            else:
                plan.unmatched.append(item)
        plan.to_delete = [record_id for record_id in existing if record_id not in claimed]
        return plan

    @property
    def keep_ids(self) -> list[RecordId]:
        return [item.id for item in self.to_update if item.id is not None]

    @property
    def is_noop(self) -> bool:
        return not (self.to_create or self.to_update or self.to_delete)


@dataclass(slots=True, frozen=True)
class ReconciliationSummary:
    total_created: int = 0
    total_updated: int = 0
    total_deleted: int = 0

    def __add__(self, other: ReconciliationSummary) -> ReconciliationSummary:
        return ReconciliationSummary(
            total_created=self.total_created + other.total_created,
            total_updated=self.total_updated + other.total_updated,
            total_deleted=self.total_deleted + other.total_deleted,
        )

    def as_dict(self) -> dict[str, int]:
        return {
            "totalCreated": self.total_created,
            "totalUpdated": self.total_updated,
            "totalDeleted": self.total_deleted,
        }


@dataclass(slots=True)
class ReconciliationResult:
    """Outcome of one reconciliation call; records are Primary-side copies."""

    created: list[EntityRecord] = field(default_factory=list["EntityRecord"])
    updated: list[EntityRecord] = field(default_factory=list["EntityRecord"])
    deleted: list[RecordId] = field(default_factory=list["RecordId"])
    unmatched: list[DesiredItem] = field(default_factory=list["DesiredItem"])

    @property
    def summary(self) -> ReconciliationSummary:
        return ReconciliationSummary(
            total_created=len(self.created),
            total_updated=len(self.updated),
            total_deleted=len(self.deleted),
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "created": self.created,
            "updated": self.updated,
            "deleted": self.deleted,
            "summary": self.summary.as_dict(),
        }


@dataclass(slots=True)
class BulkWriteResult:
    """Outcome of a flat create-or-update batch."""

    created: list[EntityRecord] = field(default_factory=list["EntityRecord"])
    updated: list[EntityRecord] = field(default_factory=list["EntityRecord"])

    @property
    def total(self) -> int:
        return len(self.created) + len(self.updated)
