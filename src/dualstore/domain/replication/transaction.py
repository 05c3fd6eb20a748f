"""Paired transactions across the Primary and Secondary stores.

Commits are sequential, not atomic: Primary commits first, then Secondary. A
Secondary commit failure after Primary committed cannot be undone and surfaces
as :class:`PartialReplicationFailureError`; the drift tooling repairs it later.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

from dualstore.domain.errors import PartialReplicationFailureError

if TYPE_CHECKING:
    from types import TracebackType

    from dualstore.domain.ports import StoreTransaction

    from .stores import StorePair

log = logging.getLogger(__name__)


@dataclass(slots=True)
class ReplicationTransaction:
    """One transaction per store, opened, committed and rolled back together."""

    primary: StoreTransaction
    secondary: StoreTransaction | None = None

    @classmethod
    async def begin(cls, stores: StorePair, *, dual_mode: bool) -> ReplicationTransaction:
        primary = await stores.primary.begin()
        if not dual_mode:
            return cls(primary=primary)
        try:
            secondary = await stores.secondary.begin()
        except BaseException:
            await _rollback_quietly(primary)
            raise
        return cls(primary=primary, secondary=secondary)

    @property
    def dual_mode(self) -> bool:
        return self.secondary is not None

    @property
    def is_active(self) -> bool:
        return any(tx.is_active for tx in self._transactions())

    async def commit(self) -> None:
        try:
            await self.primary.commit()
        except BaseException:
            if self.secondary is not None:
                await _rollback_quietly(self.secondary)
            raise
        log.debug("Committed transaction on %s", self.primary.store_name)

        if self.secondary is None:
            return
        try:
            await self.secondary.commit()
        except Exception as exc:
            await _rollback_quietly(self.secondary)
            log.error(
                "Commit on %s failed after %s committed; stores have diverged",
                self.secondary.store_name,
                self.primary.store_name,
            )
            raise PartialReplicationFailureError(
                f"{self.primary.store_name} committed but {self.secondary.store_name} failed: {exc}",
                committed=self.primary.store_name,
                failed=self.secondary.store_name,
            ) from exc
        log.debug("Committed transaction on %s", self.secondary.store_name)

    async def rollback(self) -> None:
        """Roll back every still-open transaction, each independently."""

        for tx in self._transactions():
            if tx.is_active:
                await _rollback_quietly(tx)
                log.info("Rolled back transaction on %s", tx.store_name)

    async def __aenter__(self) -> ReplicationTransaction:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        # Uncommitted work never outlives the block, with or without an error.
        await self.rollback()
        return False

    def _transactions(self) -> tuple[StoreTransaction, ...]:
        if self.secondary is None:
            return (self.primary,)
        return (self.primary, self.secondary)


async def _rollback_quietly(tx: StoreTransaction) -> None:
    # The error that triggered the rollback is the one callers need to see.
    try:
        await tx.rollback()
    except Exception:
        log.exception("Rollback failed on %s", tx.store_name)
