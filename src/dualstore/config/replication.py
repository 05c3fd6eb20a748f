"""Replication defaults for write services and drift tooling."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Final

from .env import env_flag, env_list

DEFAULT_SYNC_CHECK_ENTITIES: Final[tuple[str, ...]] = (
    "Category",
    "SubCategory",
    "Company",
    "Product",
    "Customer",
)


@dataclass(frozen=True, slots=True)
class ReplicationConfig:
    dual_mode: bool = True
    sync_check_entities: tuple[str, ...] = field(default=DEFAULT_SYNC_CHECK_ENTITIES)


def get_replication_config() -> ReplicationConfig:
    entities = env_list("DUALSTORE_SYNC_ENTITIES")
    return ReplicationConfig(
        dual_mode=env_flag("DUALSTORE_DUAL_MODE", default=True),
        sync_check_entities=entities or DEFAULT_SYNC_CHECK_ENTITIES,
    )
