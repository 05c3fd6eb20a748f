"""Record shapes shared by the replication core.

Stores exchange plain field mappings. Client-submitted items additionally carry
nested child collections and an optional identity; :class:`DesiredItem` makes
that identity explicit so "has an id" is never inferred from loose key checks.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, TypeAlias

if TYPE_CHECKING:
    from collections.abc import Iterable

RecordId: TypeAlias = int
EntityRecord: TypeAlias = dict[str, Any]

ID_FIELD = "id"


def identity_of(item: Mapping[str, Any]) -> RecordId | None:
    """Return the identity carried by ``item`` or ``None`` for a new record.

    ``None``, ``0`` and blank strings all mean "not persisted yet"; numeric
    strings coming from form-encoded payloads are accepted.
    """

    value = item.get(ID_FIELD)
    if value is None or value == "" or value == 0:
        return None
    if isinstance(value, bool):
        raise TypeError(f"Invalid record id: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip()) or None
    raise TypeError(f"Invalid record id: {value!r}")


def without_identity(item: Mapping[str, Any]) -> EntityRecord:
    return {key: value for key, value in item.items() if key != ID_FIELD}


def with_identity(item: Mapping[str, Any], record_id: RecordId) -> EntityRecord:
    return {**item, ID_FIELD: record_id}


def ids_of(records: Iterable[Mapping[str, Any]]) -> list[RecordId]:
    return [record[ID_FIELD] for record in records]


@dataclass(slots=True, frozen=True)
class DesiredItem:
    """One client-submitted item: identity, row fields and nested collections."""

    id: RecordId | None
    fields: EntityRecord = field(default_factory=dict)
    children: dict[str, list[Any]] = field(default_factory=dict)

    @property
    def is_new(self) -> bool:
        return self.id is None

    @classmethod
    def from_mapping(
        cls,
        item: Mapping[str, Any] | DesiredItem,
        *,
        child_keys: Iterable[str] = (),
    ) -> DesiredItem:
        if isinstance(item, DesiredItem):
            return item
        if not isinstance(item, Mapping):
            raise TypeError(f"Expected a mapping, got {type(item).__name__}")
        keys = set(child_keys)
        children: dict[str, list[Any]] = {}
        fields: EntityRecord = {}
        for key, value in item.items():
            if key == ID_FIELD:
                continue
            if key in keys:
                children[key] = list(value) if value is not None else []
            else:
                fields[key] = value
        return cls(id=identity_of(item), fields=fields, children=children)

    def row(self, **stamp: Any) -> EntityRecord:
        """Row values for the store: fields plus ``stamp``, without identity."""

        return {**self.fields, **stamp}
