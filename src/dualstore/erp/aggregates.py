"""Nested ERP aggregates and their child levels."""

from __future__ import annotations

from typing import TYPE_CHECKING, Final

from dualstore.domain.replication import (
    AggregateDefinition,
    ChildLevel,
    ReplicatedAggregateService,
)

if TYPE_CHECKING:
    from collections.abc import Mapping

    from dualstore.domain.replication import StorePair

# Master data ------------------------------------------------------------------

# Flow processes are reconciled per category.
CATEGORY: Final = AggregateDefinition(
    "Category",
    children=(
        ChildLevel("FlowProcess", foreign_key="id_category", collection="flow_processes"),
    ),
)

CLAUSE: Final = AggregateDefinition(
    "Clause",
    children=(ChildLevel("ClausePoint", foreign_key="id_clause", collection="points"),),
)

MASTER_PRODUCT: Final = AggregateDefinition(
    "MasterProduct",
    children=(ChildLevel("MasterProductField", foreign_key="id_product", collection="fields"),),
)

SERVICE_PRICING: Final = AggregateDefinition(
    "ServicePricing",
    children=(
        ChildLevel(
            "ServicePricingVariant",
            foreign_key="id_service_pricing",
            collection="variants",
        ),
    ),
)

# Quotation ---------------------------------------------------------------------

QUOTATION_CATEGORIES: Final = ChildLevel(
    "QuotationCategory",
    foreign_key="id_quotation",
    collection="categories",
    children=(
        ChildLevel("QuotationService", foreign_key="id_quotation_category", collection="services"),
        ChildLevel(
            "QuotationProduct",
            foreign_key="id_quotation_category",
            collection="products",
            children=(
                ChildLevel(
                    "QuotationProductField",
                    foreign_key="id_quotation_product",
                    collection="fields",
                ),
            ),
        ),
    ),
)

# Payment services reference both their list and the payment that owns it.
QUOTATION_PAYMENTS: Final = ChildLevel(
    "QuotationPayment",
    foreign_key="id_quotation",
    collection="payments",
    children=(
        ChildLevel(
            "QuotationPaymentList",
            foreign_key="id_quotation_payment",
            collection="payment_list",
            children=(
                ChildLevel(
                    "QuotationPaymentService",
                    foreign_key="id_quotation_payment_list",
                    collection="services",
                    inherit=("id_quotation_payment",),
                ),
            ),
        ),
    ),
)

QUOTATION: Final = AggregateDefinition(
    "Quotation",
    children=(QUOTATION_CATEGORIES, QUOTATION_PAYMENTS),
)

# Contract ----------------------------------------------------------------------

# Clause logs hang off either a clause or one of its points, never both; the
# fixed NULL keeps each level from claiming the other's rows.
CONTRACT_PAYMENTS: Final = ChildLevel(
    "ContractPayment",
    foreign_key="id_contract",
    collection="payments",
    children=(
        ChildLevel(
            "ContractPaymentList",
            foreign_key="id_contract_payment",
            collection="payment_list",
            children=(
                ChildLevel(
                    "ContractPaymentService",
                    foreign_key="id_contract_payment_list",
                    collection="services",
                    inherit=("id_contract_payment",),
                ),
            ),
        ),
    ),
)

CONTRACT_CLAUSES: Final = ChildLevel(
    "ContractClause",
    foreign_key="id_contract",
    collection="clauses",
    children=(
        ChildLevel(
            "ContractClausePoint",
            foreign_key="id_contract_clause",
            collection="points",
            children=(
                ChildLevel(
                    "ContractClauseLog",
                    foreign_key="id_contract_clause_point",
                    collection="logs",
                    fixed={"id_contract_clause": None},
                ),
            ),
        ),
        ChildLevel(
            "ContractClauseLog",
            foreign_key="id_contract_clause",
            collection="logs",
            fixed={"id_contract_clause_point": None},
        ),
    ),
)

CONTRACT: Final = AggregateDefinition(
    "Contract",
    children=(
        ChildLevel("ContractService", foreign_key="id_contract", collection="services"),
        ChildLevel(
            "ContractVerificationProgress",
            foreign_key="id_contract",
            collection="verification_progress",
        ),
        CONTRACT_CLAUSES,
        CONTRACT_PAYMENTS,
    ),
)

AGGREGATES: Final[Mapping[str, AggregateDefinition]] = {
    definition.entity_name: definition
    for definition in (CATEGORY, CLAUSE, MASTER_PRODUCT, SERVICE_PRICING, QUOTATION, CONTRACT)
}


def aggregate_service(name: str, stores: StorePair) -> ReplicatedAggregateService:
    """Return the service for the aggregate rooted at entity ``name``."""

    try:
        definition = AGGREGATES[name]
    except KeyError:
        known = ", ".join(sorted(AGGREGATES))
        raise KeyError(f"Unknown aggregate {name!r}; expected one of: {known}") from None
    return ReplicatedAggregateService(definition, stores)
