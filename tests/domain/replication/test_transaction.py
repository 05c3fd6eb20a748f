from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import pytest

from dualstore.domain.errors import PartialReplicationFailureError, ReplicationError
from dualstore.domain.replication import ReplicationTransaction, StorePair, replicated_write

if TYPE_CHECKING:
    from collections.abc import AsyncIterator


@dataclass
class StubTransaction:
    store_name: str
    fail_commit: bool = False
    committed: bool = False
    rolled_back: bool = False

    @property
    def is_active(self) -> bool:
        return not (self.committed or self.rolled_back)

    async def commit(self) -> None:
        if self.fail_commit:
            raise RuntimeError("disk full")
        self.committed = True

    async def rollback(self) -> None:
        self.rolled_back = True


@dataclass
class StubHandle:
    name: str
    fail_begin: bool = False
    opened: list[StubTransaction] = field(default_factory=list[StubTransaction])

    @property
    def entity_names(self) -> frozenset[str]:
        return frozenset({"Category"})

    def accessor_for(self, entity_name: str) -> Any:
        raise NotImplementedError(entity_name)

    async def begin(self) -> StubTransaction:
        if self.fail_begin:
            raise ConnectionError(f"{self.name} unreachable")
        tx = StubTransaction(self.name)
        self.opened.append(tx)
        return tx

    @asynccontextmanager
    async def session(self) -> AsyncIterator[Any]:
        raise NotImplementedError
        yield


@pytest.mark.asyncio
async def test_commit_is_sequential_primary_first() -> None:
    primary, secondary = StubTransaction("primary"), StubTransaction("secondary")
    tx = ReplicationTransaction(primary=primary, secondary=secondary)

    await tx.commit()

    assert primary.committed
    assert secondary.committed
    assert not tx.is_active


@pytest.mark.asyncio
async def test_secondary_commit_failure_reports_partial_replication() -> None:
    primary = StubTransaction("primary")
    secondary = StubTransaction("secondary", fail_commit=True)
    tx = ReplicationTransaction(primary=primary, secondary=secondary)

    with pytest.raises(PartialReplicationFailureError) as exc:
        await tx.commit()

    assert primary.committed
    assert secondary.rolled_back
    assert exc.value.committed == "primary"
    assert exc.value.failed == "secondary"
    assert isinstance(exc.value.__cause__, RuntimeError)


@pytest.mark.asyncio
async def test_primary_commit_failure_rolls_back_secondary() -> None:
    primary = StubTransaction("primary", fail_commit=True)
    secondary = StubTransaction("secondary")
    tx = ReplicationTransaction(primary=primary, secondary=secondary)

    with pytest.raises(RuntimeError, match="disk full"):
        await tx.commit()

    assert secondary.rolled_back
    assert not secondary.committed


@pytest.mark.asyncio
async def test_block_exit_rolls_back_uncommitted_work() -> None:
    primary, secondary = StubTransaction("primary"), StubTransaction("secondary")

    with pytest.raises(KeyError):
        async with ReplicationTransaction(primary=primary, secondary=secondary):
            raise KeyError("boom")

    assert primary.rolled_back
    assert secondary.rolled_back


@pytest.mark.asyncio
async def test_begin_single_store_opens_primary_only() -> None:
    stores = StorePair(primary=StubHandle("primary"), secondary=StubHandle("secondary"))

    tx = await ReplicationTransaction.begin(stores, dual_mode=False)

    assert tx.secondary is None
    assert not tx.dual_mode
    assert stores.secondary.opened == []  # type: ignore[attr-defined]


@pytest.mark.asyncio
async def test_begin_failure_on_secondary_releases_primary() -> None:
    primary = StubHandle("primary")
    stores = StorePair(primary=primary, secondary=StubHandle("secondary", fail_begin=True))

    with pytest.raises(ConnectionError):
        await ReplicationTransaction.begin(stores, dual_mode=True)

    assert [tx.rolled_back for tx in primary.opened] == [True]


@pytest.mark.asyncio
async def test_replicated_write_tags_and_rolls_back() -> None:
    primary, secondary = StubHandle("primary"), StubHandle("secondary")
    stores = StorePair(primary=primary, secondary=secondary)

    with pytest.raises(ReplicationError) as exc:
        async with replicated_write(
            stores, entity_name="Category", operation="update", dual_mode=True
        ):
            raise LookupError("column missing")

    assert exc.value.entity_name == "Category"
    assert exc.value.operation == "update"
    assert isinstance(exc.value.__cause__, LookupError)
    assert str(exc.value) == "Failed to update Category: column missing"
    assert primary.opened[0].rolled_back
    assert secondary.opened[0].rolled_back


@pytest.mark.asyncio
async def test_replicated_write_tags_begin_failures() -> None:
    stores = StorePair(
        primary=StubHandle("primary", fail_begin=True), secondary=StubHandle("secondary")
    )

    with pytest.raises(ReplicationError) as exc:
        async with replicated_write(
            stores, entity_name="Category", operation="create", dual_mode=True
        ):
            pytest.fail("body must not run")

    assert exc.value.operation == "create"
    assert isinstance(exc.value.__cause__, ConnectionError)


def test_store_pair_requires_identical_registries() -> None:
    class OtherHandle(StubHandle):
        @property
        def entity_names(self) -> frozenset[str]:
            return frozenset({"Category", "Quotation"})

    with pytest.raises(ValueError, match="Quotation"):
        StorePair(primary=StubHandle("primary"), secondary=OtherHandle("secondary"))
