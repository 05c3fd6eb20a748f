"""Lookup of store-bound accessors by entity name."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

from dualstore.domain.errors import UnknownEntityError

if TYPE_CHECKING:
    from dualstore.domain.ports import EntityAccessor, StoreHandle


class StoreRole(StrEnum):
    PRIMARY = "primary"
    SECONDARY = "secondary"


@dataclass(slots=True, frozen=True)
class AccessorPair:
    """The two accessors of one entity, sharing an identical table shape."""

    entity_name: str
    primary: EntityAccessor
    secondary: EntityAccessor


@dataclass(slots=True, frozen=True)
class StorePair:
    """Primary and Secondary store handles, injected into every service."""

    primary: StoreHandle
    secondary: StoreHandle

    def __post_init__(self) -> None:
        if self.primary.entity_names != self.secondary.entity_names:
            missing = sorted(self.primary.entity_names ^ self.secondary.entity_names)
            raise ValueError(f"Store registries differ for entities: {', '.join(missing)}")

    def handle(self, role: StoreRole) -> StoreHandle:
        return self.primary if role is StoreRole.PRIMARY else self.secondary

    def reader(self, *, dual_mode: bool) -> StoreHandle:
        """Store used by single-store reads: Primary in dual mode, else Secondary."""

        return self.primary if dual_mode else self.secondary

    def accessor_for(self, entity_name: str, role: StoreRole) -> EntityAccessor:
        handle = self.handle(role)
        if entity_name not in handle.entity_names:
            raise UnknownEntityError(entity_name, handle.name)
        return handle.accessor_for(entity_name)

    def accessors(self, entity_name: str) -> AccessorPair:
        return AccessorPair(
            entity_name=entity_name,
            primary=self.accessor_for(entity_name, StoreRole.PRIMARY),
            secondary=self.accessor_for(entity_name, StoreRole.SECONDARY),
        )
