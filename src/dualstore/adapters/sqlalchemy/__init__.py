"""SQLAlchemy adapter package for dualstore."""

from __future__ import annotations

from .accessors import SqlAlchemyEntityAccessor
from .mappings import ENTITY_TABLES, UTCDateTime, metadata
from .session import SessionClosedError, SqlAlchemyStoreSession, SqlAlchemyStoreTransaction
from .stores import (
    PRIMARY_STORE_NAME,
    SECONDARY_STORE_NAME,
    SqlAlchemyStoreHandle,
    build_store_handle,
    build_store_pair,
    create_store_engine,
    dispose_store_pair,
)

__all__ = [
    "ENTITY_TABLES",
    "PRIMARY_STORE_NAME",
    "SECONDARY_STORE_NAME",
    "SessionClosedError",
    "SqlAlchemyEntityAccessor",
    "SqlAlchemyStoreHandle",
    "SqlAlchemyStoreSession",
    "SqlAlchemyStoreTransaction",
    "UTCDateTime",
    "build_store_handle",
    "build_store_pair",
    "create_store_engine",
    "dispose_store_pair",
    "metadata",
]
