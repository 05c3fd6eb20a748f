"""SQLAlchemy table metadata for the ERP entities.

Both stores are created from the same metadata so their table shapes match.
Only parent/child links carry foreign-key constraints; business references
(company, customer, division, users) are plain integer columns.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Final

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Dialect,
    Float,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    TypeDecorator,
)

if TYPE_CHECKING:
    from collections.abc import Mapping


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


def utcnow() -> datetime:
    return datetime.now(UTC)


metadata = MetaData(
    naming_convention={
        "ix": "ix_%(column_0_label)s",
        "uq": "uq_%(table_name)s_%(column_0_label)s",
        "ck": "ck_%(table_name)s_%(constraint_name)s",
        "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
        "pk": "pk_%(table_name)s",
    }
)


def _id() -> Column[int]:
    return Column("id", Integer, primary_key=True, autoincrement=True)


def _parent(name: str, target: str, *, nullable: bool = False) -> Column[int]:
    return Column(name, Integer, ForeignKey(f"{target}.id"), nullable=nullable, index=True)


def _audit() -> tuple[Column[bool], Column[datetime], Column[datetime]]:
    return (
        Column("is_active", Boolean, nullable=False, default=True),
        Column("created_at", UTCDateTime(), nullable=False, default=utcnow),
        Column("updated_at", UTCDateTime(), nullable=False, default=utcnow, onupdate=utcnow),
    )


# Master data ------------------------------------------------------------------

category_table = Table(
    "category",
    metadata,
    _id(),
    Column("category_name", String(255), nullable=False),
    *_audit(),
)

sub_category_table = Table(
    "sub_category",
    metadata,
    _id(),
    _parent("id_category", "category"),
    Column("sub_category_name", String(255), nullable=False),
    *_audit(),
)

flow_process_table = Table(
    "flow_process",
    metadata,
    _id(),
    _parent("id_category", "category"),
    Column("project_name_indo", String(255)),
    Column("project_name_mandarin", String(255)),
    Column("document_description", Text),
    Column("process", JSON),
    *_audit(),
)

company_table = Table(
    "company",
    metadata,
    _id(),
    Column("company_name", String(255), nullable=False),
    Column("initial_company", String(32)),
    Column("address", Text),
    Column("contact", String(255)),
    Column("email", String(255)),
    Column("tax", Boolean, default=False),
    Column("director_name", String(255)),
    Column("main_note", Text),
    *_audit(),
)

customer_table = Table(
    "customer",
    metadata,
    _id(),
    Column("company_name", String(255), nullable=False),
    Column("address", Text),
    Column("contact", String(255)),
    Column("email", String(255)),
    Column("pic_name", String(255)),
    Column("pic_position", String(255)),
    Column("director_name", String(255)),
    Column("director_position", String(255)),
    *_audit(),
)

product_table = Table(
    "product",
    metadata,
    _id(),
    Column("product_name_indo", String(255), nullable=False),
    Column("product_name_mandarin", String(255)),
    Column("qty", Integer),
    Column("total_color", Integer),
    Column("id_category", Integer),
    Column("id_sub_category", Integer),
    *_audit(),
)

clause_table = Table(
    "master_clause",
    metadata,
    _id(),
    Column("description_indo", Text),
    Column("description_mandarin", Text),
    *_audit(),
)

clause_point_table = Table(
    "master_clause_point",
    metadata,
    _id(),
    _parent("id_clause", "master_clause"),
    Column("description_indo", Text),
    Column("description_mandarin", Text),
    *_audit(),
)

master_product_table = Table(
    "master_product",
    metadata,
    _id(),
    Column("id_category", Integer),
    *_audit(),
)

master_product_field_table = Table(
    "master_product_field",
    metadata,
    _id(),
    _parent("id_product", "master_product"),
    Column("field_name", String(255)),
    *_audit(),
)

service_pricing_table = Table(
    "service_pricing",
    metadata,
    _id(),
    Column("id_category", Integer),
    Column("id_division", Integer),
    Column("product_name_indo", String(255)),
    Column("product_name_mandarin", String(255)),
    Column("note_indo", Text),
    Column("note_mandarin", Text),
    Column("required_document", Text),
    Column("processing_time", Integer),
    Column("status", String(32)),
    *_audit(),
)

service_pricing_variant_table = Table(
    "service_pricing_variant",
    metadata,
    _id(),
    _parent("id_service_pricing", "service_pricing"),
    Column("price_idr", Float),
    Column("price_rmb", Float),
    Column("information_indo", Text),
    Column("information_mandarin", Text),
    *_audit(),
)

# Quotation ---------------------------------------------------------------------

quotation_table = Table(
    "quotation",
    metadata,
    _id(),
    Column("id_company", Integer),
    Column("id_customer", Integer),
    Column("date", UTCDateTime()),
    Column("quotation_no", String(64)),
    Column("quotation_title_indo", String(255)),
    Column("quotation_title_mandarin", String(255)),
    Column("status", String(32)),
    *_audit(),
)

quotation_category_table = Table(
    "quotation_category",
    metadata,
    _id(),
    _parent("id_quotation", "quotation"),
    Column("id_category", Integer),
    Column("foot_note", Text),
    *_audit(),
)

quotation_service_table = Table(
    "quotation_service",
    metadata,
    _id(),
    _parent("id_quotation_category", "quotation_category"),
    Column("id_service_pricing", Integer),
    Column("product_name_indo", String(255)),
    Column("product_name_mandarin", String(255)),
    Column("price_idr", Float),
    Column("price_rmb", Float),
    Column("qty", Float),
    Column("total_price_idr", Float),
    Column("total_price_rmb", Float),
    *_audit(),
)

quotation_product_table = Table(
    "quotation_product",
    metadata,
    _id(),
    _parent("id_quotation_category", "quotation_category"),
    Column("index", Float),
    *_audit(),
)

quotation_product_field_table = Table(
    "quotation_product_field",
    metadata,
    _id(),
    _parent("id_quotation_product", "quotation_product"),
    Column("field_name_indo", String(255)),
    Column("field_name_mandarin", String(255)),
    Column("field_type", String(64)),
    Column("field_value", JSON),
    Column("value_indo", String(255)),
    Column("value_mandarin", String(255)),
    *_audit(),
)

quotation_payment_table = Table(
    "quotation_payment",
    metadata,
    _id(),
    _parent("id_quotation", "quotation"),
    Column("payment_time_indo", String(255)),
    Column("payment_time_mandarin", String(255)),
    Column("total_payment_idr", Float),
    Column("total_payment_rmb", Float),
    Column("currency_type", String(16)),
    Column("payment_to", Integer),
    *_audit(),
)

quotation_payment_list_table = Table(
    "quotation_payment_list",
    metadata,
    _id(),
    _parent("id_quotation_payment", "quotation_payment"),
    Column("service_name_indo", String(255)),
    Column("service_name_mandarin", String(255)),
    Column("price_idr", Float),
    Column("price_rmb", Float),
    Column("payment_type", String(64)),
    *_audit(),
)

quotation_payment_service_table = Table(
    "quotation_payment_service",
    metadata,
    _id(),
    _parent("id_quotation_payment", "quotation_payment"),
    _parent("id_quotation_payment_list", "quotation_payment_list"),
    Column("id_quotation_service", Integer),
    *_audit(),
)

# Contract ----------------------------------------------------------------------

contract_table = Table(
    "contract",
    metadata,
    _id(),
    Column("id_quotation", Integer),
    Column("id_company", Integer),
    Column("id_customer", Integer),
    Column("date", UTCDateTime()),
    Column("contract_no", String(64)),
    Column("contract_title_indo", String(255)),
    Column("contract_title_mandarin", String(255)),
    Column("contract_type", String(64)),
    Column("note", Text),
    Column("status", String(32)),
    Column("contract_to", Integer),
    *_audit(),
)

contract_service_table = Table(
    "contract_service",
    metadata,
    _id(),
    _parent("id_contract", "contract"),
    Column("id_quotation_service", Integer),
    *_audit(),
)

contract_verification_progress_table = Table(
    "contract_verification_progress",
    metadata,
    _id(),
    _parent("id_contract", "contract"),
    Column("id_user", Integer),
    Column("status", String(32)),
    Column("note", Text),
    *_audit(),
)

contract_clause_table = Table(
    "contract_clause",
    metadata,
    _id(),
    _parent("id_contract", "contract"),
    Column("description_indo", Text),
    Column("description_mandarin", Text),
    *_audit(),
)

contract_clause_point_table = Table(
    "contract_clause_point",
    metadata,
    _id(),
    _parent("id_contract_clause", "contract_clause"),
    Column("description_indo", Text),
    Column("description_mandarin", Text),
    *_audit(),
)

contract_clause_log_table = Table(
    "contract_clause_log",
    metadata,
    _id(),
    _parent("id_contract_clause", "contract_clause", nullable=True),
    _parent("id_contract_clause_point", "contract_clause_point", nullable=True),
    Column("description_indo_before", Text),
    Column("description_mandarin_before", Text),
    Column("description_indo_after", Text),
    Column("description_mandarin_after", Text),
    *_audit(),
)

contract_payment_table = Table(
    "contract_payment",
    metadata,
    _id(),
    _parent("id_contract", "contract"),
    Column("payment_time_indo", String(255)),
    Column("payment_time_mandarin", String(255)),
    Column("total_payment_idr", Float),
    Column("total_payment_rmb", Float),
    Column("currency_type", String(16)),
    Column("payment_to", Integer),
    Column("is_open", Boolean, default=False),
    *_audit(),
)

contract_payment_list_table = Table(
    "contract_payment_list",
    metadata,
    _id(),
    _parent("id_contract_payment", "contract_payment"),
    Column("service_name_indo", String(255)),
    Column("service_name_mandarin", String(255)),
    Column("price_idr", Float),
    Column("price_rmb", Float),
    Column("payment_type", String(64)),
    *_audit(),
)

contract_payment_service_table = Table(
    "contract_payment_service",
    metadata,
    _id(),
    _parent("id_contract_payment", "contract_payment"),
    _parent("id_contract_payment_list", "contract_payment_list"),
    Column("id_quotation_service", Integer),
    *_audit(),
)


ENTITY_TABLES: Final[Mapping[str, Table]] = {
    "Category": category_table,
    "SubCategory": sub_category_table,
    "FlowProcess": flow_process_table,
    "Company": company_table,
    "Customer": customer_table,
    "Product": product_table,
    "Clause": clause_table,
    "ClausePoint": clause_point_table,
    "MasterProduct": master_product_table,
    "MasterProductField": master_product_field_table,
    "ServicePricing": service_pricing_table,
    "ServicePricingVariant": service_pricing_variant_table,
    "Quotation": quotation_table,
    "QuotationCategory": quotation_category_table,
    "QuotationService": quotation_service_table,
    "QuotationProduct": quotation_product_table,
    "QuotationProductField": quotation_product_field_table,
    "QuotationPayment": quotation_payment_table,
    "QuotationPaymentList": quotation_payment_list_table,
    "QuotationPaymentService": quotation_payment_service_table,
    "Contract": contract_table,
    "ContractService": contract_service_table,
    "ContractVerificationProgress": contract_verification_progress_table,
    "ContractClause": contract_clause_table,
    "ContractClausePoint": contract_clause_point_table,
    "ContractClauseLog": contract_clause_log_table,
    "ContractPayment": contract_payment_table,
    "ContractPaymentList": contract_payment_list_table,
    "ContractPaymentService": contract_payment_service_table,
}
