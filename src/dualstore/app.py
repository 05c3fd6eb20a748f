"""Application orchestration entry points."""

from __future__ import annotations

from contextlib import asynccontextmanager
from logging import getLogger
from typing import TYPE_CHECKING, Any

from dualstore.adapters.sqlalchemy import (
    SqlAlchemyStoreHandle,
    build_store_pair,
    dispose_store_pair,
)
from dualstore.config import get_database_config, get_replication_config
from dualstore.domain.replication import DriftDetector
from dualstore.erp import aggregate_service

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterable, Mapping

    from dualstore.config import DatabaseConfig
    from dualstore.domain.records import EntityRecord, RecordId
    from dualstore.domain.replication import (
        AggregateWriteResult,
        RepairSummary,
        StorePair,
        SyncReport,
    )

log = getLogger(__name__)


@asynccontextmanager
async def open_stores(config: DatabaseConfig | None = None) -> AsyncIterator[StorePair]:
    """Build both store handles for the duration of the block."""

    stores = build_store_pair(config or get_database_config())
    try:
        yield stores
    finally:
        await dispose_store_pair(stores)


async def initialise_schema(stores: StorePair) -> None:
    for handle in (stores.primary, stores.secondary):
        if not isinstance(handle, SqlAlchemyStoreHandle):
            raise TypeError(f"Cannot create schema on {type(handle).__name__}")
        await handle.create_all()


async def ping_stores(stores: StorePair) -> dict[str, bool]:
    results: dict[str, bool] = {}
    for handle in (stores.primary, stores.secondary):
        try:
            if not isinstance(handle, SqlAlchemyStoreHandle):
                raise TypeError(f"Cannot ping {type(handle).__name__}")
            results[handle.name] = await handle.ping()
        except Exception as exc:  # noqa: BLE001
            log.error("Connection to %s failed: %s", handle.name, exc)
            results[handle.name] = False
        else:
            log.info("Connection to %s established", handle.name)
    return results


async def run_sync_check(
    stores: StorePair,
    entity_names: Iterable[str] | None = None,
) -> list[SyncReport]:
    entities = tuple(entity_names or get_replication_config().sync_check_entities)
    log.info("Checking %d entities for drift: %s", len(entities), ", ".join(entities))
    return await DriftDetector(stores).check_all_sync(entities)


async def run_repair(
    stores: StorePair,
    entity_name: str,
    *,
    record_id: RecordId | None = None,
) -> RepairSummary | EntityRecord:
    """Repair one record when ``record_id`` is given, else the whole entity."""

    detector = DriftDetector(stores)
    if record_id is not None:
        return await detector.repair_record(entity_name, record_id)
    return await detector.repair_all(entity_name)


async def apply_aggregate(
    stores: StorePair,
    aggregate_name: str,
    payload: Mapping[str, Any],
    *,
    record_id: RecordId | None = None,
    dual_mode: bool | None = None,
) -> AggregateWriteResult:
    """Create (no ``record_id``) or update a nested aggregate from a payload."""

    service = aggregate_service(aggregate_name, stores)
    effective_dual_mode = get_replication_config().dual_mode if dual_mode is None else dual_mode
    log.info(
        "Applying %s payload: id=%s, dual_mode=%s",
        aggregate_name,
        record_id,
        effective_dual_mode,
    )
    if record_id is None:
        return await service.create(payload, dual_mode=effective_dual_mode)
    return await service.update(record_id, payload, dual_mode=effective_dual_mode)
