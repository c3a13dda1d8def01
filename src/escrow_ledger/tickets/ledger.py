"""Ticket ledger - the escrow state machine for payments, releases and refunds."""

from __future__ import annotations

import logging

from escrow_ledger.auth.verifier import ShippingAuthorizationVerifier
from escrow_ledger.catalog.products import MAX_PRODUCT_ID
from escrow_ledger.encoding import derive_ticket_id, is_valid_account, is_zero_ticket_id
from escrow_ledger.errors import (
    INVALID_BUYER,
    INVALID_TICKET_ID,
    NOT_ENABLED,
    NOT_FOUND,
    NOT_WAITING,
    OUT_OF_STOCK,
    WRONG_PAYMENT,
    FundsError,
    StateConflictError,
    ValidationError,
)
from escrow_ledger.fees.claimable import ClaimableBalanceTracker
from escrow_ledger.interfaces.funds import FundsGateway
from escrow_ledger.interfaces.store import LedgerStore
from escrow_ledger.models.auth import ShippingAuthorization
from escrow_ledger.models.records import Ticket, TicketStatus
from escrow_ledger.registry.access import require_admin
from escrow_ledger.units import compute_fee

log = logging.getLogger(__name__)


class TicketLedger:
    """Creates, releases and refunds escrow tickets.

    Lifecycle: WAITING -> SOLD (release) or WAITING -> REFUNDED (refund).
    Both outcomes are terminal.

    The buyer deposits ``price + shipping_cost``. The fee is computed at
    payment time and stored on the ticket, but it only moves at release, where
    it is carved out of the seller's payout. A refund therefore always returns
    the full deposit.

    Each operation commits its state changes before the funds transfer, which
    is issued last inside the same transaction; a failed transfer rolls the
    whole operation back.
    """

    def __init__(
        self,
        store: LedgerStore,
        verifier: ShippingAuthorizationVerifier,
        balances: ClaimableBalanceTracker,
        funds: FundsGateway,
    ) -> None:
        self._store = store
        self._verifier = verifier
        self._balances = balances
        self._funds = funds

    # ── Payment ────────────────────────────────────────────

    async def pay_product(
        self,
        caller: str,
        product_id: int,
        value: int = 0,
        shipping: ShippingAuthorization | None = None,
    ) -> Ticket:
        """Pay for one unit of ``product_id`` into escrow.

        ``value`` is the native amount attached to the call and must equal the
        total due for native-priced products and be zero otherwise.
        """
        if not is_valid_account(caller):
            raise ValidationError(INVALID_BUYER, f"invalid buyer {caller!r}")
        async with self._store.transaction() as seq:
            product = None
            if 0 < product_id <= MAX_PRODUCT_ID:
                product = await self._store.get_product(product_id)
            if product is None:
                raise StateConflictError(NOT_FOUND, f"product {product_id} does not exist")
            if not product.enabled:
                raise StateConflictError(NOT_ENABLED, f"product {product_id} is disabled")
            if product.stock == 0:
                raise StateConflictError(OUT_OF_STOCK, f"product {product_id} is out of stock")

            shipping_cost = 0
            if shipping is not None:
                await self._verifier.consume(product_id, caller, shipping, seq)
                shipping_cost = shipping.shipping_cost

            total_due = product.price + shipping_cost
            expected_value = total_due if product.is_native else 0
            if value != expected_value:
                raise FundsError(WRONG_PAYMENT, f"attached {value}, expected {expected_value}")

            stock_before = product.stock
            product.stock -= 1
            await self._store.save_product(product)

            fee_cfg = await self._store.get_fee_config()
            ticket = Ticket(
                ticket_id=derive_ticket_id(product_id, caller, seq, stock_before),
                product_id=product_id,
                buyer=caller,
                token_paid=product.token,
                price_paid=product.price,
                fee_charged=compute_fee(product.price, fee_cfg.current),
                shipping_cost=shipping_cost,
                status=TicketStatus.WAITING,
                created_at=seq,
            )
            await self._store.insert_ticket(ticket)
            await self._store.log_activity(
                "product_paid",
                f"Ticket {ticket.ticket_id[:16]} paid {total_due} {product.token}",
                product_id=product_id, ticket_id=ticket.ticket_id, amount=total_due,
            )

            await self._funds.collect(product.token, caller, total_due)

        log.info(
            "Product %d paid by %s: ticket %s (price=%d, shipping=%d, fee=%d %s)",
            product_id, caller[:16], ticket.ticket_id[:16],
            ticket.price_paid, shipping_cost, ticket.fee_charged, ticket.token_paid,
        )
        return ticket

    # ── Settlement ─────────────────────────────────────────

    async def release_pay(self, caller: str, ticket_id: str) -> Ticket:
        """Pay the seller ``price - fee`` and accrue fee and shipping as claimable."""
        async with self._store.transaction() as seq:
            await require_admin(self._store, caller)
            ticket = await self._require_waiting(ticket_id)
            product = await self._store.get_product(ticket.product_id)
            if product is None:
                raise StateConflictError(
                    NOT_FOUND, f"ticket {ticket_id} references missing product {ticket.product_id}",
                )

            await self._store.update_ticket_status(ticket.ticket_id, TicketStatus.SOLD, seq)
            await self._balances.accrue(ticket.token_paid, ticket.fee_charged, ticket.shipping_cost)
            await self._store.log_activity(
                "pay_released",
                f"Ticket {ticket.ticket_id[:16]} released to {product.seller}",
                product_id=ticket.product_id, ticket_id=ticket.ticket_id,
                amount=ticket.seller_payout,
            )

            await self._funds.disburse(ticket.token_paid, product.seller, ticket.seller_payout)

        ticket.status = TicketStatus.SOLD
        ticket.settled_at = seq
        log.info(
            "Ticket %s released: seller %s +%d %s (fee %d, shipping %d)",
            ticket.ticket_id[:16], product.seller[:16], ticket.seller_payout,
            ticket.token_paid, ticket.fee_charged, ticket.shipping_cost,
        )
        return ticket

    async def refund_product(self, caller: str, ticket_id: str) -> Ticket:
        """Return the full deposit to the buyer. No fee is retained."""
        if is_zero_ticket_id(ticket_id):
            raise ValidationError(INVALID_TICKET_ID, "ticket id is zero")
        async with self._store.transaction() as seq:
            await require_admin(self._store, caller)
            ticket = await self._require_waiting(ticket_id)

            await self._store.update_ticket_status(ticket.ticket_id, TicketStatus.REFUNDED, seq)
            await self._store.log_activity(
                "product_refunded",
                f"Ticket {ticket.ticket_id[:16]} refunded to {ticket.buyer}",
                product_id=ticket.product_id, ticket_id=ticket.ticket_id,
                amount=ticket.deposit,
            )

            await self._funds.disburse(ticket.token_paid, ticket.buyer, ticket.deposit)

        ticket.status = TicketStatus.REFUNDED
        ticket.settled_at = seq
        log.info(
            "Ticket %s refunded: buyer %s +%d %s",
            ticket.ticket_id[:16], ticket.buyer[:16], ticket.deposit, ticket.token_paid,
        )
        return ticket

    # ── Reads ──────────────────────────────────────────────

    async def get_ticket(self, ticket_id: str) -> Ticket | None:
        async with self._store.reading():
            return await self._store.get_ticket(ticket_id)

    async def get_tickets_ids(self) -> list[str]:
        async with self._store.reading():
            return await self._store.get_ticket_ids()

    async def get_tickets_ids_by_product(self, product_id: int) -> list[str]:
        async with self._store.reading():
            if not 0 < product_id <= MAX_PRODUCT_ID:
                return []
            return await self._store.get_ticket_ids_by_product(product_id)

    async def get_tickets_ids_by_address(self, buyer: str) -> list[str]:
        async with self._store.reading():
            return await self._store.get_ticket_ids_by_buyer(buyer)

    async def _require_waiting(self, ticket_id: str) -> Ticket:
        ticket = await self._store.get_ticket(ticket_id)
        if ticket is None:
            raise StateConflictError(NOT_FOUND, f"ticket {ticket_id[:16]} does not exist")
        if ticket.status is not TicketStatus.WAITING:
            raise StateConflictError(
                NOT_WAITING, f"ticket {ticket_id[:16]} is {ticket.status.name}",
            )
        return ticket
