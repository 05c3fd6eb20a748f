"""Pydantic validation of JSON payload files before they reach the core."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, TypeAdapter

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

    from dualstore.domain.replication import AggregateDefinition, ChildLevel


class PayloadError(ValueError):
    """Raised when a payload file cannot be read or fails validation."""


class RecordPayload(BaseModel):
    """One record: optional integer identity plus arbitrary column values."""

    model_config = ConfigDict(extra="allow")

    id: int | None = None


_ITEMS = TypeAdapter(list[dict[str, Any]] | None)


def validate_record(data: Any, levels: Sequence[ChildLevel]) -> dict[str, Any]:
    record = RecordPayload.model_validate(data).model_dump()
    for level in levels:
        if level.collection not in record:
            continue
        items = _ITEMS.validate_python(record[level.collection]) or []
        record[level.collection] = [validate_record(item, level.children) for item in items]
    return record


def load_payload(path: Path, definition: AggregateDefinition) -> dict[str, Any]:
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
        return validate_record(raw, definition.children)
    except (OSError, ValueError) as exc:
        # pydantic.ValidationError and json.JSONDecodeError are both ValueErrors
        raise PayloadError(f"Invalid payload in {path}: {exc}") from exc
