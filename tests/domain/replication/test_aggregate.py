from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from dualstore.domain.errors import NotFoundError
from dualstore.domain.replication import StoreRole
from dualstore.erp import CONTRACT, QUOTATION, aggregate_service
from tests.helpers.stores import both_stores, insert_into

if TYPE_CHECKING:
    from typing import Any

    from dualstore.domain.replication import StorePair


def quotation_payload() -> dict[str, Any]:
    return {
        "quotation_no": "Q-2024-001",
        "status": "draft",
        "date": "2024-05-01T09:30:00+00:00",
        "categories": [
            {
                "id_category": 1,
                "foot_note": "visa",
                "services": [{"product_name_indo": "KITAS", "qty": 1, "price_idr": 5.0}],
                "products": [
                    {
                        "index": 1,
                        "fields": [{"field_name_indo": "colour", "field_value": {"rgb": [1, 2]}}],
                    }
                ],
            }
        ],
        "payments": [
            {
                "payment_to": 1,
                "payment_list": [{"payment_type": "dp", "services": [{"id_quotation_service": 1}]}],
            }
        ],
    }


@pytest.mark.asyncio
async def test_create_writes_the_whole_tree_to_both_stores(store_pair: StorePair) -> None:
    service = aggregate_service("Quotation", store_pair)

    result = await service.create(quotation_payload())

    record = result.record
    assert record["quotation_no"] == "Q-2024-001"
    assert record["date"].year == 2024
    category = record["categories"][0]
    assert category["services"][0]["product_name_indo"] == "KITAS"
    assert category["products"][0]["fields"][0]["field_value"] == {"rgb": [1, 2]}
    payment_service = record["payments"][0]["payment_list"][0]["services"][0]
    assert payment_service["id_quotation_payment"] == record["payments"][0]["id"]
    assert result.unresolved == []
    for entity_name in (
        "Quotation",
        "QuotationCategory",
        "QuotationService",
        "QuotationProduct",
        "QuotationProductField",
        "QuotationPayment",
        "QuotationPaymentList",
        "QuotationPaymentService",
    ):
        primary, secondary = await both_stores(store_pair, entity_name)
        assert len(primary) == 1, entity_name
        assert [row["id"] for row in primary] == [row["id"] for row in secondary]


@pytest.mark.asyncio
async def test_get_reads_the_nested_tree(store_pair: StorePair) -> None:
    service = aggregate_service("Quotation", store_pair)
    created = await service.create(quotation_payload())
    quotation_id = created.record["id"]

    primary_copy = await service.get(quotation_id)
    secondary_copy = await service.get(quotation_id, dual_mode=False)

    assert primary_copy is not None
    assert secondary_copy is not None
    assert primary_copy["categories"][0]["products"][0]["fields"][0]["field_name_indo"] == "colour"
    assert set(primary_copy) >= set(QUOTATION.child_keys)
    assert len(secondary_copy["payments"][0]["payment_list"][0]["services"]) == 1
    assert await service.get(404) is None


@pytest.mark.asyncio
async def test_update_only_reconciles_collections_present_at_root(store_pair: StorePair) -> None:
    service = aggregate_service("Quotation", store_pair)
    created = await service.create(quotation_payload())
    quotation_id = created.record["id"]

    result = await service.update(quotation_id, {"status": "sent", "payments": []})

    assert result.record["status"] == "sent"
    assert "categories" not in result.record
    assert result.totals["QuotationPayment"].total_deleted == 1
    assert len((await both_stores(store_pair, "QuotationCategory"))[0]) == 1
    for entity_name in ("QuotationPayment", "QuotationPaymentList", "QuotationPaymentService"):
        assert await both_stores(store_pair, entity_name) == ([], [])


@pytest.mark.asyncio
async def test_update_of_missing_root_raises_not_found(store_pair: StorePair) -> None:
    service = aggregate_service("Quotation", store_pair)

    with pytest.raises(NotFoundError):
        await service.update(12, {"status": "sent", "categories": []})


@pytest.mark.asyncio
async def test_sync_collection_reconciles_one_collection(store_pair: StorePair) -> None:
    service = aggregate_service("Clause", store_pair)
    created = await service.create(
        {"description_indo": "pasal", "points": [{"description_indo": "a"}]}
    )
    clause_id = created.record["id"]
    point_id = created.record["points"][0]["id"]

    result = await service.sync_collection(
        clause_id,
        "points",
        [{"id": point_id, "description_indo": "a2"}, {"description_indo": "b"}],
    )

    assert [record["description_indo"] for record in result.records] == ["a2", "b"]
    primary, secondary = await both_stores(store_pair, "ClausePoint")
    assert [row["description_indo"] for row in primary] == ["a2", "b"]
    assert [row["id"] for row in primary] == [row["id"] for row in secondary]
    with pytest.raises(NotFoundError):
        await service.sync_collection(999, "points", [])


@pytest.mark.asyncio
async def test_contract_clause_logs_attach_to_clause_or_point(store_pair: StorePair) -> None:
    service = aggregate_service("Contract", store_pair)

    created = await service.create(
        {
            "contract_no": "C-1",
            "services": [{"id_quotation_service": 3}],
            "verification_progress": [{"status": "pending"}],
            "clauses": [
                {
                    "description_indo": "clause",
                    "logs": [{"description_indo_after": "clause edit"}],
                    "points": [
                        {
                            "description_indo": "point",
                            "logs": [{"description_indo_after": "point edit"}],
                        }
                    ],
                }
            ],
        }
    )

    clause = created.record["clauses"][0]
    clause_log = clause["logs"][0]
    point_log = clause["points"][0]["logs"][0]
    assert clause_log["id_contract_clause"] == clause["id"]
    assert clause_log["id_contract_clause_point"] is None
    assert point_log["id_contract_clause_point"] == clause["points"][0]["id"]
    assert point_log["id_contract_clause"] is None

    # Re-sending the clause untouched must keep both logs.
    await service.update(created.record["id"], {"clauses": [_resend(clause)]})
    primary, secondary = await both_stores(store_pair, "ContractClauseLog")
    assert sorted(row["description_indo_after"] for row in primary) == ["clause edit", "point edit"]
    assert len(secondary) == 2


@pytest.mark.asyncio
async def test_delete_removes_root_and_all_descendants(store_pair: StorePair) -> None:
    service = aggregate_service("Contract", store_pair)
    created = await service.create(
        {
            "contract_no": "C-2",
            "services": [{}],
            "clauses": [{"points": [{"logs": [{}]}], "logs": [{}]}],
        }
    )

    removed = await service.delete(created.record["id"])

    assert removed["Contract"] == 1
    assert removed["ContractClauseLog"] == 2
    for definition_level in ("Contract", *_entity_names(CONTRACT.children)):
        assert await both_stores(store_pair, definition_level) == ([], [])
    with pytest.raises(NotFoundError):
        await service.delete(created.record["id"])


@pytest.mark.asyncio
async def test_unknown_aggregate_is_rejected(store_pair: StorePair) -> None:
    with pytest.raises(KeyError, match="Unknown aggregate"):
        aggregate_service("Invoice", store_pair)


def _resend(clause: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": clause["id"],
        "logs": [{"id": log["id"]} for log in clause["logs"]],
        "points": [
            {"id": point["id"], "logs": [{"id": log["id"]} for log in point["logs"]]}
            for point in clause["points"]
        ],
    }


def _entity_names(levels: Any) -> list[str]:
    names: list[str] = []
    for level in levels:
        names.append(level.entity_name)
        names.extend(_entity_names(level.children))
    return names


@pytest.mark.asyncio
async def test_clause_log_sync_never_claims_point_logs(store_pair: StorePair) -> None:
    service = aggregate_service("Contract", store_pair)
    created = await service.create(
        {"clauses": [{"points": [{"logs": [{"description_indo_after": "point edit"}]}]}]}
    )
    clause = created.record["clauses"][0]
    point = clause["points"][0]
    point_log = point["logs"][0]

    await service.update(
        created.record["id"],
        {
            "clauses": [
                {
                    "id": clause["id"],
                    "logs": [],
                    "points": [
                        {
                            "id": point["id"],
                            "logs": [{**point_log, "id_contract_clause": clause["id"]}],
                        }
                    ],
                }
            ]
        },
    )

    primary, secondary = await both_stores(store_pair, "ContractClauseLog")
    assert [row["id"] for row in primary] == [row["id"] for row in secondary] == [point_log["id"]]
    assert primary[0]["id_contract_clause"] is None
    assert primary[0]["id_contract_clause_point"] == point["id"]


@pytest.mark.asyncio
async def test_contract_payments_stamp_owning_payment(store_pair: StorePair) -> None:
    service = aggregate_service("Contract", store_pair)

    created = await service.create(
        {
            "contract_no": "C-3",
            "payments": [
                {
                    "currency_type": "idr",
                    "total_payment_idr": 100.0,
                    "payment_list": [
                        {"payment_type": "dp", "services": [{"id_quotation_service": 4}]}
                    ],
                }
            ],
        }
    )

    payment = created.record["payments"][0]
    payment_list = payment["payment_list"][0]
    service_row = payment_list["services"][0]
    assert payment["id_contract"] == created.record["id"]
    assert service_row["id_contract_payment"] == payment["id"]
    assert service_row["id_contract_payment_list"] == payment_list["id"]
    assert created.totals["ContractPaymentService"].total_created == 1
    for entity_name in ("ContractPayment", "ContractPaymentList", "ContractPaymentService"):
        primary, secondary = await both_stores(store_pair, entity_name)
        assert [row["id"] for row in primary] == [row["id"] for row in secondary], entity_name

    await service.delete(created.record["id"])
    for entity_name in ("ContractPayment", "ContractPaymentList", "ContractPaymentService"):
        assert await both_stores(store_pair, entity_name) == ([], [])


@pytest.mark.asyncio
async def test_flow_processes_sync_per_category(store_pair: StorePair) -> None:
    service = aggregate_service("Category", store_pair)
    created = await service.create(
        {
            "category_name": "Visa",
            "flow_processes": [{"project_name_indo": "a", "process": [{"step": 1}]}],
        }
    )
    category_id = created.record["id"]
    kept = created.record["flow_processes"][0]

    result = await service.sync_collection(
        category_id,
        "flow_processes",
        [{"id": kept["id"], "project_name_indo": "a2"}, {"project_name_indo": "b"}],
    )

    assert result.totals["FlowProcess"].as_dict() == {
        "totalCreated": 1,
        "totalUpdated": 1,
        "totalDeleted": 0,
    }
    primary, secondary = await both_stores(store_pair, "FlowProcess")
    assert [row["project_name_indo"] for row in primary] == ["a2", "b"]
    assert primary[0]["process"] == [{"step": 1}]
    assert [row["id"] for row in primary] == [row["id"] for row in secondary]


@pytest.mark.asyncio
async def test_root_held_only_by_secondary(store_pair: StorePair) -> None:
    service = aggregate_service("Clause", store_pair)
    await insert_into(store_pair, "Clause", StoreRole.SECONDARY, {"id": 7})
    await insert_into(store_pair, "ClausePoint", StoreRole.SECONDARY, {"id_clause": 7})

    with pytest.raises(NotFoundError):
        await service.sync_collection(7, "points", [{"description_indo": "new"}])

    removed = await service.delete(7)

    assert removed == {"ClausePoint": 1, "Clause": 1}
    assert await both_stores(store_pair, "Clause") == ([], [])
    assert await both_stores(store_pair, "ClausePoint") == ([], [])
