"""Error taxonomy for replicated writes."""

from __future__ import annotations

from typing import TYPE_CHECKING, Self

if TYPE_CHECKING:
    from dualstore.domain.records import RecordId


class ReplicationError(RuntimeError):
    """Base error, tagged with the entity and operation it interrupted."""

    def __init__(
        self,
        message: str,
        *,
        entity_name: str | None = None,
        operation: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.entity_name = entity_name
        self.operation = operation

    def tag(self, entity_name: str, operation: str) -> Self:
        """Attach context unless a deeper layer already did."""

        if self.entity_name is None:
            self.entity_name = entity_name
        if self.operation is None:
            self.operation = operation
        return self

    def __str__(self) -> str:
        if self.operation and self.entity_name:
            return f"Failed to {self.operation} {self.entity_name}: {self.message}"
        return self.message


class UnknownEntityError(ReplicationError, LookupError):
    """Raised when an entity name has no registered accessor."""

    def __init__(self, entity_name: str, store_name: str | None = None) -> None:
        where = f" in store {store_name!r}" if store_name else ""
        super().__init__(f"Unknown entity {entity_name!r}{where}")
        self.unknown_entity = entity_name


class NotFoundError(ReplicationError):
    """An update or delete affected zero rows in every targeted store."""

    def __init__(self, entity_name: str, record_id: RecordId, *, stores: str = "any store") -> None:
        super().__init__(
            f"{entity_name} with ID {record_id} not found in {stores}",
            entity_name=entity_name,
        )
        self.record_id = record_id


class ValidationError(ReplicationError):
    """A store rejected a write (uniqueness, foreign key, type constraint)."""

    def __init__(
        self,
        message: str,
        *,
        store_name: str,
        detail: str | None = None,
        entity_name: str | None = None,
    ) -> None:
        super().__init__(message, entity_name=entity_name)
        self.store_name = store_name
        self.detail = detail


class PartialReplicationFailureError(ReplicationError):
    """Primary committed but Secondary did not; the stores now diverge."""

    def __init__(self, message: str, *, committed: str, failed: str) -> None:
        super().__init__(message)
        self.committed = committed
        self.failed = failed


class UnresolvedMappingError(ReplicationError):
    """A nested item could not be matched to a resolved record.

    Recorded and logged by the tree synchronizer rather than raised.
    """

    def __init__(
        self,
        entity_name: str,
        *,
        index: int,
        declared_id: RecordId | None,
        parent_id: RecordId,
    ) -> None:
        what = f"id {declared_id}" if declared_id is not None else "new item"
        super().__init__(
            f"{entity_name} at index {index} ({what}) under parent {parent_id} was not resolved",
            entity_name=entity_name,
            operation="sync",
        )
        self.index = index
        self.declared_id = declared_id
        self.parent_id = parent_id

    def __str__(self) -> str:
        return self.message
