"""Claimable balances - per-token fee and shipping buckets awaiting admin claim."""

from __future__ import annotations

import logging

from escrow_ledger.errors import INSUFFICIENT_FUNDS, FundsError
from escrow_ledger.interfaces.funds import FundsGateway
from escrow_ledger.interfaces.store import LedgerStore
from escrow_ledger.models.records import BalanceKind
from escrow_ledger.registry.access import require_admin
from escrow_ledger.units import normalize_token

log = logging.getLogger(__name__)


class ClaimableBalanceTracker:
    """Accrues fees and shipping costs at release; pays them out on claim."""

    def __init__(self, store: LedgerStore, funds: FundsGateway) -> None:
        self._store = store
        self._funds = funds

    async def claimable_fee(self, token: str | None) -> int:
        async with self._store.reading():
            return await self._store.get_claimable(BalanceKind.FEE, normalize_token(token))

    async def claimable_shipping_cost(self, token: str | None) -> int:
        async with self._store.reading():
            return await self._store.get_claimable(BalanceKind.SHIPPING, normalize_token(token))

    async def claim_fees(self, caller: str, token: str | None, amount: int) -> None:
        await self._claim(BalanceKind.FEE, caller, normalize_token(token), amount)

    async def claim_shipping_cost(self, caller: str, token: str | None, amount: int) -> None:
        await self._claim(BalanceKind.SHIPPING, caller, normalize_token(token), amount)

    async def accrue(self, token: str, fee: int, shipping_cost: int) -> None:
        """Credit both buckets. Runs inside the caller's transaction."""
        if fee:
            balance = await self._store.get_claimable(BalanceKind.FEE, token)
            await self._store.set_claimable(BalanceKind.FEE, token, balance + fee)
        if shipping_cost:
            balance = await self._store.get_claimable(BalanceKind.SHIPPING, token)
            await self._store.set_claimable(BalanceKind.SHIPPING, token, balance + shipping_cost)

    async def _claim(self, kind: BalanceKind, caller: str, token: str, amount: int) -> None:
        async with self._store.transaction():
            state = await require_admin(self._store, caller)
            balance = await self._store.get_claimable(kind, token)
            if amount < 0 or amount > balance:
                raise FundsError(
                    INSUFFICIENT_FUNDS, f"claim {amount} > claimable {kind.value} {balance}",
                )
            await self._store.set_claimable(kind, token, balance - amount)
            await self._store.log_activity(
                f"{kind.value}_claimed", f"Claimed {amount} {token} {kind.value}", amount=amount,
            )
            await self._funds.disburse(token, state.admin, amount)
        log.info("Claimed %d %s %s (remaining %d)", amount, token, kind.value, balance - amount)
