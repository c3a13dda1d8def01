"""Escrow market - wires the ledger components around one store."""

from __future__ import annotations

import logging

from escrow_ledger.auth.verifier import ShippingAuthorizationVerifier
from escrow_ledger.catalog.batch import BatchOperator
from escrow_ledger.catalog.products import ProductCatalog
from escrow_ledger.clock import SystemClock
from escrow_ledger.encoding import is_valid_account
from escrow_ledger.errors import INVALID_ADMIN, INVALID_SIGNER, ValidationError
from escrow_ledger.fees.claimable import ClaimableBalanceTracker
from escrow_ledger.fees.controller import FeeController
from escrow_ledger.interfaces.clock import Clock
from escrow_ledger.interfaces.funds import FundsGateway
from escrow_ledger.interfaces.store import LedgerStore
from escrow_ledger.models.config import LedgerConfig
from escrow_ledger.models.records import (
    ActivityRecord,
    BalanceKind,
    LedgerState,
    ReconciliationRecord,
    TicketStatus,
)
from escrow_ledger.registry.access import require_state
from escrow_ledger.registry.whitelist import WhitelistRegistry
from escrow_ledger.storage.sqlite import SQLiteLedgerStore
from escrow_ledger.tickets.ledger import TicketLedger
from escrow_ledger.units import fee_from_percent, normalize_token, validate_fee

log = logging.getLogger(__name__)


async def bootstrap_ledger(
    store: LedgerStore,
    admin: str,
    initial_fee: int,
    allowed_signer: str,
    domain_id: str,
) -> LedgerState:
    """Create the singleton ledger state. Later calls return the stored state."""
    if not is_valid_account(admin):
        raise ValidationError(INVALID_ADMIN, f"invalid admin {admin!r}")
    if not is_valid_account(allowed_signer):
        raise ValidationError(INVALID_SIGNER, f"invalid allowed signer {allowed_signer!r}")
    validate_fee(initial_fee)
    async with store.transaction():
        state = await store.bootstrap(
            LedgerState(admin=admin, allowed_signer=allowed_signer, domain_id=domain_id),
            initial_fee,
        )
    if state.admin != admin:
        log.warning("Ledger already initialized with admin %s", state.admin[:16])
    return state


async def expected_custody(
    store: LedgerStore, tokens: list[str] | None = None
) -> dict[str, int]:
    """What custody should hold per token: waiting deposits plus claimable balances.

    Covers the given tokens, or every token seen in waiting tickets and
    claimable buckets. Runs inside an open ``reading()`` or transaction.
    """
    waiting = await store.get_tickets_by_status(TicketStatus.WAITING)
    if tokens is None:
        seen = {t.token_paid for t in waiting}
        seen.update(await store.get_claimable_tokens())
        tokens = sorted(seen)

    expected = {}
    for token in map(normalize_token, tokens):
        amount = sum(t.deposit for t in waiting if t.token_paid == token)
        amount += await store.get_claimable(BalanceKind.FEE, token)
        amount += await store.get_claimable(BalanceKind.SHIPPING, token)
        expected[token] = amount
    return expected


class EscrowMarket:
    """Escrowed marketplace ledger.

    Holds one component per concern, all sharing the same store:
    whitelist, fees, verifier, catalog, batch, balances and tickets.
    """

    def __init__(
        self,
        store: LedgerStore,
        funds: FundsGateway,
        clock: Clock | None = None,
    ) -> None:
        self.store = store
        self.funds = funds
        self.clock = clock or SystemClock()

        self.whitelist = WhitelistRegistry(store)
        self.fees = FeeController(store, self.clock)
        self.verifier = ShippingAuthorizationVerifier(store)
        self.catalog = ProductCatalog(store)
        self.batch = BatchOperator(store, self.catalog)
        self.balances = ClaimableBalanceTracker(store, funds)
        self.tickets = TicketLedger(store, self.verifier, self.balances, funds)

    @classmethod
    def from_config(
        cls, cfg: LedgerConfig, funds: FundsGateway, clock: Clock | None = None
    ) -> EscrowMarket:
        return cls(SQLiteLedgerStore(cfg.db_path), funds, clock)

    async def open(self) -> None:
        await self.store.initialize()

    async def close(self) -> None:
        await self.store.close()

    async def initialize(
        self,
        admin: str,
        initial_fee: int,
        allowed_signer: str,
        domain_id: str,
    ) -> LedgerState:
        state = await bootstrap_ledger(self.store, admin, initial_fee, allowed_signer, domain_id)
        log.info("Escrow market ready (admin=%s, domain=%s)", state.admin[:16], state.domain_id)
        return state

    async def initialize_from_config(self, cfg: LedgerConfig) -> LedgerState:
        return await self.initialize(
            cfg.admin, fee_from_percent(cfg.initial_fee), cfg.allowed_signer, cfg.domain_id,
        )

    async def state(self) -> LedgerState:
        async with self.store.reading():
            return await require_state(self.store)

    async def get_recent_activity(self, limit: int = 50) -> list[ActivityRecord]:
        async with self.store.reading():
            return await self.store.get_recent_activity(limit)

    async def reconcile(self, tokens: list[str] | None = None) -> list[ReconciliationRecord]:
        """Compare custody against waiting deposits plus claimable balances.

        Covers the given tokens, or every token seen in waiting tickets and
        claimable buckets.
        """
        async with self.store.reading():
            expected = await expected_custody(self.store, tokens)
            records = [
                ReconciliationRecord(
                    token=token, expected=amount, actual=await self.funds.custody_balance(token),
                )
                for token, amount in expected.items()
            ]

        for rec in records:
            if not rec.balanced:
                log.error(
                    "Custody mismatch for %s: expected %d, actual %d",
                    rec.token, rec.expected, rec.actual,
                )
        return records
