from __future__ import annotations

from typing import TYPE_CHECKING

import pytest_asyncio

from dualstore.adapters.sqlalchemy import build_store_pair, dispose_store_pair
from dualstore.app import initialise_schema
from tests.helpers.stores import sqlite_config

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from pathlib import Path

    from dualstore.domain.replication import StorePair


@pytest_asyncio.fixture
async def store_pair(tmp_path: Path) -> AsyncIterator[StorePair]:
    stores = build_store_pair(sqlite_config(tmp_path))
    await initialise_schema(stores)
    try:
        yield stores
    finally:
        await dispose_store_pair(stores)
