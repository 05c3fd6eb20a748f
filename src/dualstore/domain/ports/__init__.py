"""Ports the replication core depends on."""

from __future__ import annotations

from .persistence import EntityAccessor, StoreHandle, StoreSession, StoreTransaction, Where

__all__ = [
    "EntityAccessor",
    "StoreHandle",
    "StoreSession",
    "StoreTransaction",
    "Where",
]
