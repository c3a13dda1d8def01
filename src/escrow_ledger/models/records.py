"""Ledger record types: products, tickets, fee state and audit entries."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum

from escrow_ledger.units import is_native


class TicketStatus(IntEnum):
    """Escrow ticket lifecycle. SOLD and REFUNDED are terminal."""

    WAITING = 0
    SOLD = 1
    REFUNDED = 2


class Access(str, Enum):
    """Outcome of the catalog access rule."""

    ADMIN = "admin"
    WHITELISTED_SELF = "whitelisted_self"  # seller managing its own listings
    DENIED = "denied"


class BalanceKind(str, Enum):
    """Claimable balance buckets."""

    FEE = "fee"
    SHIPPING = "shipping"


@dataclass
class Product:
    """A catalog listing."""

    product_id: int
    seller: str  # Stellar account id
    token: str  # NATIVE_TOKEN or a token identifier
    price: int  # token base units
    stock: int
    enabled: bool = True

    @property
    def is_native(self) -> bool:
        return is_native(self.token)


@dataclass
class Ticket:
    """An escrow record for one purchase.

    Price, token and fee are snapshots taken at payment time and never
    follow later product or fee changes.
    """

    ticket_id: str  # hex SHA-256
    product_id: int
    buyer: str
    token_paid: str
    price_paid: int
    fee_charged: int
    shipping_cost: int
    status: TicketStatus
    created_at: int  # ledger sequence number
    settled_at: int | None = None  # sequence of release/refund

    @property
    def deposit(self) -> int:
        """Amount held in custody while the ticket is waiting."""
        return self.price_paid + self.shipping_cost

    @property
    def seller_payout(self) -> int:
        return self.price_paid - self.fee_charged


@dataclass
class FeeConfig:
    """Current fee plus an optional time-locked proposal."""

    current: int  # fee units, FEE_UNIT == 1%
    pending: int | None = None
    unlock_at: int | None = None  # unix seconds


@dataclass
class LedgerState:
    """Singleton ledger parameters fixed at initialization."""

    admin: str
    allowed_signer: str
    domain_id: str
    sequence: int = 0
    auth_nonce: int = 0


@dataclass
class ActivityRecord:
    """A single audit log entry."""

    id: int
    event_type: str
    product_id: int | None
    ticket_id: str | None
    amount: int | None
    message: str
    sequence: int
    created_at: str


@dataclass
class ReconciliationRecord:
    """Expected vs. actual custody for one token."""

    token: str
    expected: int
    actual: int

    @property
    def balanced(self) -> bool:
        return self.expected == self.actual
