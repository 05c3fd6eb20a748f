"""Out-of-band detection and repair of divergence between the two stores.

Primary is authoritative. Checks read both stores outside any transaction;
repairs only ever write to Secondary.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from dualstore.config import DEFAULT_SYNC_CHECK_ENTITIES
from dualstore.domain.errors import NotFoundError
from dualstore.domain.records import ID_FIELD, ids_of, without_identity

from .service import tag_error

if TYPE_CHECKING:
    from collections.abc import Iterable

    from dualstore.domain.ports import StoreTransaction
    from dualstore.domain.records import EntityRecord, RecordId

    from .stores import AccessorPair, StorePair

log = logging.getLogger(__name__)


@dataclass(slots=True)
class SyncReport:
    """Row counts and id-set differences for one entity."""

    entity_name: str
    primary_count: int
    secondary_count: int
    only_in_primary: list[EntityRecord] = field(default_factory=list["EntityRecord"])
    only_in_secondary: list[EntityRecord] = field(default_factory=list["EntityRecord"])

    @property
    def is_sync(self) -> bool:
        return (
            self.primary_count == self.secondary_count
            and not self.only_in_primary
            and not self.only_in_secondary
        )

    @property
    def missing_in_secondary(self) -> list[RecordId]:
        return ids_of(self.only_in_primary)

    @property
    def missing_in_primary(self) -> list[RecordId]:
        return ids_of(self.only_in_secondary)

    def as_dict(self) -> dict[str, Any]:
        return {
            "entity": self.entity_name,
            "isSync": self.is_sync,
            "primaryCount": self.primary_count,
            "secondaryCount": self.secondary_count,
            "onlyInPrimary": self.missing_in_secondary,
            "onlyInSecondary": self.missing_in_primary,
        }


@dataclass(slots=True)
class RepairSummary:
    entity_name: str
    synced: int = 0
    failed: int = 0
    failures: dict[RecordId, str] = field(default_factory=dict["RecordId", "str"])

    def as_dict(self) -> dict[str, Any]:
        return {"entity": self.entity_name, "synced": self.synced, "failed": self.failed}


class DriftDetector:
    """Compare and repair entity tables between Primary and Secondary."""

    def __init__(self, stores: StorePair) -> None:
        self.stores = stores

    async def check_sync(self, entity_name: str) -> SyncReport:
        accessors = self.stores.accessors(entity_name)
        try:
            async with self.stores.primary.session() as session:
                primary_rows = await accessors.primary.find_all(session)
            async with self.stores.secondary.session() as session:
                secondary_rows = await accessors.secondary.find_all(session)
        except Exception as exc:
            error = tag_error(exc, entity_name, "check")
            if error is exc:
                raise
            raise error from exc

        primary_ids = set(ids_of(primary_rows))
        secondary_ids = set(ids_of(secondary_rows))
        report = SyncReport(
            entity_name=entity_name,
            primary_count=len(primary_rows),
            secondary_count=len(secondary_rows),
            only_in_primary=[row for row in primary_rows if row[ID_FIELD] not in secondary_ids],
            only_in_secondary=[row for row in secondary_rows if row[ID_FIELD] not in primary_ids],
        )
        if report.is_sync:
            log.info("%s in sync (%d rows)", entity_name, report.primary_count)
        else:
            log.warning(
                "%s out of sync: %s=%d %s=%d, %d only in %s, %d only in %s",
                entity_name,
                self.stores.primary.name,
                report.primary_count,
                self.stores.secondary.name,
                report.secondary_count,
                len(report.only_in_primary),
                self.stores.primary.name,
                len(report.only_in_secondary),
                self.stores.secondary.name,
            )
        return report

    async def check_all_sync(
        self,
        entity_names: Iterable[str] = DEFAULT_SYNC_CHECK_ENTITIES,
    ) -> list[SyncReport]:
        return [await self.check_sync(entity_name) for entity_name in entity_names]

    async def repair_record(self, entity_name: str, record_id: RecordId) -> EntityRecord:
        """Copy the Primary version of one record over Secondary."""

        accessors = self.stores.accessors(entity_name)
        async with self.stores.primary.session() as session:
            source = await accessors.primary.find_by_id(session, record_id)
        if source is None:
            raise NotFoundError(entity_name, record_id, stores=self.stores.primary.name)

        tx = await self.stores.secondary.begin()
        try:
            await _overwrite(accessors, tx, source)
            await tx.commit()
        except Exception as exc:
            if tx.is_active:
                await tx.rollback()
            error = tag_error(exc, entity_name, "repair")
            if error is exc:
                raise
            raise error from exc
        log.info("Repaired %s %s in %s", entity_name, record_id, self.stores.secondary.name)
        return source

    async def repair_all(self, entity_name: str) -> RepairSummary:
        """Repair every Primary row of ``entity_name``, continuing past failures."""

        accessors = self.stores.accessors(entity_name)
        async with self.stores.primary.session() as session:
            rows = await accessors.primary.find_all(session)

        summary = RepairSummary(entity_name=entity_name)
        for row in rows:
            record_id = row[ID_FIELD]
            try:
                await self.repair_record(entity_name, record_id)
            except Exception as exc:  # noqa: BLE001
                summary.failed += 1
                summary.failures[record_id] = str(exc)
                log.warning("Failed to repair %s %s: %s", entity_name, record_id, exc)
            else:
                summary.synced += 1
        log.info(
            "Repair of %s finished: %d synced, %d failed",
            entity_name,
            summary.synced,
            summary.failed,
        )
        return summary


async def _overwrite(
    accessors: AccessorPair, tx: StoreTransaction, source: EntityRecord
) -> None:
    record_id = source[ID_FIELD]
    existing = await accessors.secondary.find_by_id(tx, record_id)
    if existing is None:
        await accessors.secondary.create(tx, source)
    else:
        await accessors.secondary.update(tx, without_identity(source), where={ID_FIELD: record_id})
