"""Data models for the escrow ledger."""

from escrow_ledger.models.auth import ShippingAuthorization
from escrow_ledger.models.config import LedgerConfig
from escrow_ledger.models.records import (
    Access,
    ActivityRecord,
    BalanceKind,
    FeeConfig,
    LedgerState,
    Product,
    ReconciliationRecord,
    Ticket,
    TicketStatus,
)

__all__ = [
    "ShippingAuthorization",
    "LedgerConfig",
    "Access", "ActivityRecord", "BalanceKind", "FeeConfig", "LedgerState",
    "Product", "ReconciliationRecord", "Ticket", "TicketStatus",
]
