"""LedgerStore protocol - persists products, tickets, balances and ledger parameters."""

from __future__ import annotations

from contextlib import AbstractAsyncContextManager
from typing import Protocol

from escrow_ledger.models.records import (
    ActivityRecord,
    BalanceKind,
    FeeConfig,
    LedgerState,
    Product,
    Ticket,
    TicketStatus,
)


class LedgerStore(Protocol):
    """Single owned store shared by every ledger component."""

    # ── Lifecycle ──────────────────────────────────────────

    async def initialize(self) -> None:
        """Create tables if they don't exist."""
        ...

    async def close(self) -> None:
        """Close the database connection."""
        ...

    # ── Transactions ───────────────────────────────────────

    def transaction(self) -> AbstractAsyncContextManager[int]:
        """Serialized all-or-nothing write scope. Yields the new sequence number."""
        ...

    def reading(self) -> AbstractAsyncContextManager[None]:
        """Serialized read scope; refuses to run inside an active operation."""
        ...

    # ── Ledger parameters ──────────────────────────────────

    async def bootstrap(self, state: LedgerState, fee: int) -> LedgerState:
        ...

    async def get_state(self) -> LedgerState | None:
        ...

    async def increment_auth_nonce(self) -> int:
        ...

    async def get_fee_config(self) -> FeeConfig:
        ...

    async def set_fee_config(self, cfg: FeeConfig) -> None:
        ...

    # ── Whitelist ──────────────────────────────────────────

    async def set_whitelisted(self, address: str, whitelisted: bool) -> None:
        ...

    async def is_whitelisted(self, address: str) -> bool:
        ...

    async def get_whitelisted(self) -> list[str]:
        ...

    # ── Products ───────────────────────────────────────────

    async def insert_product(self, product: Product) -> None:
        ...

    async def save_product(self, product: Product) -> None:
        ...

    async def get_product(self, product_id: int) -> Product | None:
        ...

    async def get_product_ids(self) -> list[int]:
        ...

    # ── Tickets ────────────────────────────────────────────

    async def insert_ticket(self, ticket: Ticket) -> None:
        ...

    async def update_ticket_status(
        self, ticket_id: str, status: TicketStatus, settled_at: int
    ) -> None:
        ...

    async def get_ticket(self, ticket_id: str) -> Ticket | None:
        ...

    async def get_ticket_ids(self) -> list[str]:
        ...

    async def get_ticket_ids_by_product(self, product_id: int) -> list[str]:
        ...

    async def get_ticket_ids_by_buyer(self, buyer: str) -> list[str]:
        ...

    async def get_tickets_by_status(self, status: TicketStatus) -> list[Ticket]:
        ...

    # ── Claimable balances ─────────────────────────────────

    async def get_claimable(self, kind: BalanceKind, token: str) -> int:
        ...

    async def set_claimable(self, kind: BalanceKind, token: str, amount: int) -> None:
        ...

    async def get_claimable_tokens(self) -> list[str]:
        ...

    # ── Shipping authorizations ────────────────────────────

    async def is_digest_used(self, digest: str) -> bool:
        ...

    async def mark_digest_used(self, digest: str, sequence: int) -> None:
        ...

    # ── Activity log ───────────────────────────────────────

    async def log_activity(
        self,
        event_type: str,
        message: str,
        product_id: int | None = None,
        ticket_id: str | None = None,
        amount: int | None = None,
    ) -> None:
        ...

    async def get_recent_activity(self, limit: int = 50) -> list[ActivityRecord]:
        ...
