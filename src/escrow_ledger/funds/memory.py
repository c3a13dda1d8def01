"""In-memory funds gateway - custody simulator for tests and local runs."""

from __future__ import annotations

import logging
from collections import defaultdict

from escrow_ledger.errors import TransferError
from escrow_ledger.units import is_native, normalize_token

log = logging.getLogger(__name__)

CUSTODY = "custody"


class InMemoryFundsGateway:
    """Implements the FundsGateway protocol over plain balance tables.

    Native currency is debited directly (it is attached to the call). Other
    tokens are pulled against an allowance the payer granted to custody,
    mirroring approve/transferFrom token semantics.
    """

    def __init__(self) -> None:
        self._balances: dict[tuple[str, str], int] = defaultdict(int)
        self._allowances: dict[tuple[str, str], int] = defaultdict(int)
        self.transfers: list[tuple[str, str, str, int]] = []  # (token, from, to, amount)

    # ── Setup helpers ──────────────────────────────────────

    def mint(self, token: str | None, account: str, amount: int) -> None:
        self._balances[(normalize_token(token), account)] += amount

    def approve(self, token: str, owner: str, amount: int) -> None:
        self._allowances[(normalize_token(token), owner)] = amount

    def balance_of(self, token: str | None, account: str) -> int:
        return self._balances[(normalize_token(token), account)]

    def allowance(self, token: str, owner: str) -> int:
        return self._allowances[(normalize_token(token), owner)]

    # ── FundsGateway ───────────────────────────────────────

    async def collect(self, token: str, payer: str, amount: int) -> None:
        token = normalize_token(token)
        if not is_native(token):
            if self._allowances[(token, payer)] < amount:
                raise TransferError("insufficient allowance", token, payer, amount)
        if self._balances[(token, payer)] < amount:
            raise TransferError("insufficient balance", token, payer, amount)
        if not is_native(token):
            self._allowances[(token, payer)] -= amount
        self._move(token, payer, CUSTODY, amount)

    async def disburse(self, token: str, recipient: str, amount: int) -> None:
        token = normalize_token(token)
        if self._balances[(token, CUSTODY)] < amount:
            raise TransferError("insufficient custody balance", token, recipient, amount)
        self._move(token, CUSTODY, recipient, amount)

    async def custody_balance(self, token: str) -> int:
        return self._balances[(normalize_token(token), CUSTODY)]

    def _move(self, token: str, src: str, dst: str, amount: int) -> None:
        self._balances[(token, src)] -= amount
        self._balances[(token, dst)] += amount
        self.transfers.append((token, src, dst, amount))
        log.debug("Transfer %d %s: %s -> %s", amount, token, src[:16], dst[:16])
