"""Dual-store replication: paired transactions, reconciliation and drift repair."""

from __future__ import annotations

from .aggregate import AggregateWriteResult, ReplicatedAggregateService
from .drift import DriftDetector, RepairSummary, SyncReport
from .plan import (
    BulkWriteResult,
    ReconciliationPlan,
    ReconciliationResult,
    ReconciliationSummary,
    partition_by_identity,
)
from .reconcile import reconcile_children
from .service import ReplicatedEntityService, replicated_write
from .stores import AccessorPair, StorePair, StoreRole
from .transaction import ReplicationTransaction
from .tree import (
    AggregateDefinition,
    ChildLevel,
    NestedTreeSynchronizer,
    TreeSyncResult,
    map_resolved_records,
)

__all__ = [
    "AccessorPair",
    "AggregateDefinition",
    "AggregateWriteResult",
    "BulkWriteResult",
    "ChildLevel",
    "DriftDetector",
    "NestedTreeSynchronizer",
    "ReconciliationPlan",
    "ReconciliationResult",
    "ReconciliationSummary",
    "RepairSummary",
    "ReplicatedAggregateService",
    "ReplicatedEntityService",
    "ReplicationTransaction",
    "StorePair",
    "StoreRole",
    "SyncReport",
    "TreeSyncResult",
    "map_resolved_records",
    "partition_by_identity",
    "reconcile_children",
    "replicated_write",
]
