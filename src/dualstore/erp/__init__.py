"""ERP aggregate definitions replicated across both stores."""

from __future__ import annotations

from .aggregates import (
    AGGREGATES,
    CATEGORY,
    CLAUSE,
    CONTRACT,
    MASTER_PRODUCT,
    QUOTATION,
    SERVICE_PRICING,
    aggregate_service,
)

__all__ = [
    "AGGREGATES",
    "CATEGORY",
    "CLAUSE",
    "CONTRACT",
    "MASTER_PRODUCT",
    "QUOTATION",
    "SERVICE_PRICING",
    "aggregate_service",
]
