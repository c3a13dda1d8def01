"""Escrow ticket state machine."""

from escrow_ledger.tickets.ledger import TicketLedger

__all__ = ["TicketLedger"]
