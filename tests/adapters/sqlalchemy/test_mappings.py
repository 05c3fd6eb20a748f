from __future__ import annotations

from datetime import UTC, datetime, timedelta, timezone
from typing import TYPE_CHECKING

import pytest
from sqlalchemy.dialects import sqlite

from dualstore.adapters.sqlalchemy import ENTITY_TABLES, UTCDateTime, metadata
from dualstore.erp import AGGREGATES

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from dualstore.domain.replication import ChildLevel


def _levels(levels: Iterable[ChildLevel]) -> Iterator[ChildLevel]:
    for level in levels:
        yield level
        yield from _levels(level.children)


def test_every_table_is_registered_as_an_entity() -> None:
    assert set(ENTITY_TABLES.values()) == set(metadata.tables.values())
    assert len(ENTITY_TABLES) == 29


@pytest.mark.parametrize("name", sorted(AGGREGATES))
def test_aggregate_levels_point_at_real_foreign_keys(name: str) -> None:
    definition = AGGREGATES[name]
    assert definition.entity_name in ENTITY_TABLES
    for level in _levels(definition.children):
        table = ENTITY_TABLES[level.entity_name]
        assert level.foreign_key in table.c, level.entity_name
        assert table.c[level.foreign_key].foreign_keys, level.entity_name
        for inherited in level.inherit:
            assert inherited in table.c
        for column in level.fixed:
            assert table.c[column].nullable, level.entity_name


def test_parent_links_are_indexed() -> None:
    table = ENTITY_TABLES["ClausePoint"]

    assert table.c.id_clause.index is True
    assert table.c.id_clause.nullable is False
    assert metadata.naming_convention["fk"].startswith("fk_%(table_name)s")


def test_every_table_carries_audit_columns() -> None:
    for entity_name, table in ENTITY_TABLES.items():
        assert {"id", "is_active", "created_at", "updated_at"} <= set(table.c.keys()), entity_name


def test_utc_datetime_normalises_bound_values() -> None:
    column_type = UTCDateTime()
    dialect = sqlite.dialect()
    jakarta = timezone(timedelta(hours=7))

    naive = column_type.process_bind_param(datetime(2024, 1, 1, 12), dialect)
    aware = column_type.process_bind_param(datetime(2024, 1, 1, 19, tzinfo=jakarta), dialect)

    assert naive == datetime(2024, 1, 1, 12, tzinfo=UTC)
    assert aware == naive
    assert aware is not None
    assert aware.tzinfo is UTC
    assert column_type.process_bind_param(None, dialect) is None


def test_utc_datetime_marks_loaded_values_as_utc() -> None:
    column_type = UTCDateTime()

    loaded = column_type.process_result_value(datetime(2024, 1, 1, 12), sqlite.dialect())

    assert loaded == datetime(2024, 1, 1, 12, tzinfo=UTC)
