"""Table-backed entity accessors using SQLAlchemy Core."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import Date, delete, func, insert, select, update
from sqlalchemy.exc import DataError, IntegrityError

from dualstore.domain.errors import ValidationError
from dualstore.domain.records import ID_FIELD

from .mappings import UTCDateTime, utcnow
from .session import connection_of

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from sqlalchemy import ColumnElement, Executable, Result, Table

    from dualstore.domain.ports import StoreSession, Where
    from dualstore.domain.records import EntityRecord, RecordId


class SqlAlchemyEntityAccessor:
    """CRUD for one entity table; every call runs on the given session's connection."""

    def __init__(self, entity_name: str, table: Table) -> None:
        self._entity_name = entity_name
        self.table = table
        self._id_column = table.c[ID_FIELD]

    @property
    def entity_name(self) -> str:
        return self._entity_name

    async def create(self, session: StoreSession, data: Mapping[str, Any]) -> EntityRecord:
        values = self._values(data)
        result = await self._execute(session, insert(self.table).values(values))
        record_id = values.get(ID_FIELD) or result.inserted_primary_key[0]
        record = await self.find_by_id(session, record_id)
        if record is None:  # pragma: no cover - the insert above would have raised
            raise LookupError(f"{self.entity_name} {record_id} vanished after insert")
        return record

    async def bulk_create(
        self, session: StoreSession, items: Sequence[Mapping[str, Any]]
    ) -> list[EntityRecord]:
        # One statement per row keeps generated ids aligned with input order.
        return [await self.create(session, item) for item in items]

    async def update(self, session: StoreSession, data: Mapping[str, Any], *, where: Where) -> int:
        values = self._values(data)
        values.pop(ID_FIELD, None)
        if "updated_at" in self.table.c and "updated_at" not in values:
            values["updated_at"] = utcnow()
        statement = update(self.table).where(*self._criteria(where)).values(values)
        result = await self._execute(session, statement)
        return result.rowcount

    async def delete(self, session: StoreSession, *, where: Where) -> int:
        if not where:
            raise ValueError(f"Refusing to delete every {self.entity_name} row without a filter")
        result = await self._execute(session, delete(self.table).where(*self._criteria(where)))
        return result.rowcount

    async def find_all(
        self,
        session: StoreSession,
        *,
        where: Where | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[EntityRecord]:
        statement = (
            select(self.table).where(*self._criteria(where or {})).order_by(self._id_column)
        )
        if limit is not None:
            statement = statement.limit(limit)
        if offset is not None:
            statement = statement.offset(offset)
        result = await self._execute(session, statement)
        return [dict(row) for row in result.mappings()]

    async def find_by_id(self, session: StoreSession, record_id: RecordId) -> EntityRecord | None:
        return await self.find_one(session, where={ID_FIELD: record_id})

    async def find_one(self, session: StoreSession, *, where: Where) -> EntityRecord | None:
        rows = await self.find_all(session, where=where, limit=1)
        return rows[0] if rows else None

    async def count(self, session: StoreSession, *, where: Where | None = None) -> int:
        statement = select(func.count()).select_from(self.table).where(*self._criteria(where or {}))
        result = await self._execute(session, statement)
        return int(result.scalar_one())

    def _values(self, data: Mapping[str, Any]) -> dict[str, Any]:
        values: dict[str, Any] = {}
        for key, value in data.items():
            if key not in self.table.c:
                continue
            if key == ID_FIELD and value is None:
                continue
            values[key] = self._coerce(key, value)
        return values

    def _coerce(self, key: str, value: Any) -> Any:
        if not isinstance(value, str):
            return value
        column_type = self.table.c[key].type
        if isinstance(column_type, UTCDateTime):
            return datetime.fromisoformat(value)
        if isinstance(column_type, Date):
            return datetime.fromisoformat(value).date()
        return value

    def _criteria(self, where: Where) -> list[ColumnElement[bool]]:
        criteria: list[ColumnElement[bool]] = []
        for key, value in where.items():
            if key not in self.table.c:
                raise KeyError(f"{self.entity_name} has no column {key!r}")
            column = self.table.c[key]
            if value is None:
                criteria.append(column.is_(None))
            elif isinstance(value, (list, tuple, set, frozenset)):
                criteria.append(column.in_(list(value)))
            else:
                criteria.append(column == value)
        return criteria

    async def _execute(self, session: StoreSession, statement: Executable) -> Result[Any]:
        connection = connection_of(session)
        try:
            return await connection.execute(statement)
        except (IntegrityError, DataError) as exc:
            raise ValidationError(
                f"{session.store_name} rejected the write",
                store_name=session.store_name,
                detail=str(exc.orig),
                entity_name=self.entity_name,
            ) from exc
