"""SQLite implementation of the LedgerStore protocol."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path

import aiosqlite

from escrow_ledger.errors import REENTRANT, StateConflictError
from escrow_ledger.models.records import (
    ActivityRecord,
    BalanceKind,
    FeeConfig,
    LedgerState,
    Product,
    Ticket,
    TicketStatus,
)

log = logging.getLogger(__name__)

# Amounts are TEXT: 18-decimal token amounts overflow SQLite's 64-bit INTEGER.
SCHEMA = """
-- Singleton ledger parameters, fee state and logical clock
CREATE TABLE IF NOT EXISTS ledger_state (
    id INTEGER PRIMARY KEY CHECK (id = 1),
    admin TEXT NOT NULL,
    allowed_signer TEXT NOT NULL,
    domain_id TEXT NOT NULL,
    sequence INTEGER NOT NULL DEFAULT 0,
    auth_nonce INTEGER NOT NULL DEFAULT 0,
    fee TEXT NOT NULL,
    pending_fee TEXT,
    fee_unlock_at INTEGER,
    created_at TEXT NOT NULL DEFAULT (datetime('now')),
    updated_at TEXT NOT NULL DEFAULT (datetime('now'))
);

-- Sellers allowed to manage their own listings
CREATE TABLE IF NOT EXISTS whitelist (
    address TEXT PRIMARY KEY,
    added_at TEXT NOT NULL DEFAULT (datetime('now'))
);

-- Catalog, position keeps insertion order
CREATE TABLE IF NOT EXISTS products (
    position INTEGER PRIMARY KEY AUTOINCREMENT,
    product_id INTEGER NOT NULL UNIQUE,
    seller TEXT NOT NULL,
    token TEXT NOT NULL,
    price TEXT NOT NULL,
    stock INTEGER NOT NULL,
    enabled INTEGER NOT NULL DEFAULT 1,
    updated_at TEXT NOT NULL DEFAULT (datetime('now'))
);

-- Escrow tickets
CREATE TABLE IF NOT EXISTS tickets (
    position INTEGER PRIMARY KEY AUTOINCREMENT,
    ticket_id TEXT NOT NULL UNIQUE,
    product_id INTEGER NOT NULL,
    buyer TEXT NOT NULL,
    token_paid TEXT NOT NULL,
    price_paid TEXT NOT NULL,
    fee_charged TEXT NOT NULL,
    shipping_cost TEXT NOT NULL,
    status INTEGER NOT NULL DEFAULT 0,
    created_at INTEGER NOT NULL,
    settled_at INTEGER
);
CREATE INDEX IF NOT EXISTS idx_tickets_product ON tickets(product_id);
CREATE INDEX IF NOT EXISTS idx_tickets_buyer ON tickets(buyer);
CREATE INDEX IF NOT EXISTS idx_tickets_status ON tickets(status);

-- Claimable fee / shipping buckets per token
CREATE TABLE IF NOT EXISTS claimable_balances (
    kind TEXT NOT NULL,
    token TEXT NOT NULL,
    amount TEXT NOT NULL,
    PRIMARY KEY (kind, token)
);

-- Consumed shipping authorization digests
CREATE TABLE IF NOT EXISTS used_authorizations (
    digest TEXT PRIMARY KEY,
    sequence INTEGER NOT NULL,
    used_at TEXT NOT NULL DEFAULT (datetime('now'))
);

-- Audit log
CREATE TABLE IF NOT EXISTS activity_log (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    event_type TEXT NOT NULL,
    product_id INTEGER,
    ticket_id TEXT,
    amount TEXT,
    message TEXT NOT NULL,
    sequence INTEGER NOT NULL,
    created_at TEXT NOT NULL DEFAULT (datetime('now'))
);
CREATE INDEX IF NOT EXISTS idx_activity_sequence ON activity_log(sequence);
"""

# Set while an operation holds the store; a nested entry point in the same
# context (e.g. a transfer callback) must not observe half-applied state.
_in_operation: ContextVar[bool] = ContextVar("escrow_ledger_in_operation", default=False)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _opt_int(value: str | None) -> int | None:
    return int(value) if value is not None else None


class SQLiteLedgerStore:
    """SQLite-backed implementation of the LedgerStore protocol."""

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        self._db: aiosqlite.Connection | None = None
        self._lock = asyncio.Lock()
        self._sequence = 0

    async def initialize(self) -> None:
        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        # Autocommit mode: transactions are opened explicitly in transaction().
        self._db = await aiosqlite.connect(self._db_path, isolation_level=None)
        self._db.row_factory = aiosqlite.Row
        await self._db.executescript(SCHEMA)

    async def close(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None

    @property
    def db(self) -> aiosqlite.Connection:
        assert self._db is not None, "Store not initialized. Call initialize() first."
        return self._db

    # ── Transactions ───────────────────────────────────────

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[int]:
        if _in_operation.get():
            raise StateConflictError(REENTRANT, "ledger operation already in progress")
        async with self._lock:
            token = _in_operation.set(True)
            try:
                await self.db.execute("BEGIN IMMEDIATE")
                try:
                    self._sequence = await self._bump_sequence()
                    yield self._sequence
                except BaseException:
                    await self.db.execute("ROLLBACK")
                    raise
                await self.db.execute("COMMIT")
            finally:
                _in_operation.reset(token)

    @asynccontextmanager
    async def reading(self) -> AsyncIterator[None]:
        if _in_operation.get():
            raise StateConflictError(REENTRANT, "ledger operation already in progress")
        async with self._lock:
            yield

    async def _bump_sequence(self) -> int:
        await self.db.execute("UPDATE ledger_state SET sequence = sequence + 1 WHERE id=1")
        async with self.db.execute("SELECT sequence FROM ledger_state WHERE id=1") as cur:
            row = await cur.fetchone()
            return row["sequence"] if row else 0

    # ── Ledger parameters ──────────────────────────────────

    async def bootstrap(self, state: LedgerState, fee: int) -> LedgerState:
        existing = await self.get_state()
        if existing is not None:
            return existing
        await self.db.execute(
            "INSERT INTO ledger_state (id, admin, allowed_signer, domain_id, fee, updated_at)"
            " VALUES (1, ?, ?, ?, ?, ?)",
            (state.admin, state.allowed_signer, state.domain_id, str(fee), _now()),
        )
        log.info("Ledger bootstrapped (admin=%s)", state.admin[:16])
        return await self.get_state()  # type: ignore[return-value]

    async def get_state(self) -> LedgerState | None:
        async with self.db.execute("SELECT * FROM ledger_state WHERE id=1") as cur:
            row = await cur.fetchone()
            if row is None:
                return None
            return LedgerState(
                admin=row["admin"],
                allowed_signer=row["allowed_signer"],
                domain_id=row["domain_id"],
                sequence=row["sequence"],
                auth_nonce=row["auth_nonce"],
            )

    async def increment_auth_nonce(self) -> int:
        await self.db.execute(
            "UPDATE ledger_state SET auth_nonce = auth_nonce + 1, updated_at=? WHERE id=1",
            (_now(),),
        )
        async with self.db.execute("SELECT auth_nonce FROM ledger_state WHERE id=1") as cur:
            row = await cur.fetchone()
            return row["auth_nonce"] if row else 0

    async def get_fee_config(self) -> FeeConfig:
        async with self.db.execute(
            "SELECT fee, pending_fee, fee_unlock_at FROM ledger_state WHERE id=1"
        ) as cur:
            row = await cur.fetchone()
            if row is None:
                return FeeConfig(current=0)
            return FeeConfig(
                current=int(row["fee"]),
                pending=_opt_int(row["pending_fee"]),
                unlock_at=row["fee_unlock_at"],
            )

    async def set_fee_config(self, cfg: FeeConfig) -> None:
        await self.db.execute(
            "UPDATE ledger_state SET fee=?, pending_fee=?, fee_unlock_at=?, updated_at=?"
            " WHERE id=1",
            (
                str(cfg.current),
                str(cfg.pending) if cfg.pending is not None else None,
                cfg.unlock_at,
                _now(),
            ),
        )

    # ── Whitelist ──────────────────────────────────────────

    async def set_whitelisted(self, address: str, whitelisted: bool) -> None:
        if whitelisted:
            await self.db.execute(
                "INSERT OR IGNORE INTO whitelist (address, added_at) VALUES (?, ?)",
                (address, _now()),
            )
        else:
            await self.db.execute("DELETE FROM whitelist WHERE address=?", (address,))

    async def is_whitelisted(self, address: str) -> bool:
        async with self.db.execute(
            "SELECT 1 FROM whitelist WHERE address=?", (address,)
        ) as cur:
            return await cur.fetchone() is not None

    async def get_whitelisted(self) -> list[str]:
        async with self.db.execute("SELECT address FROM whitelist ORDER BY rowid") as cur:
            return [row["address"] async for row in cur]

    # ── Products ───────────────────────────────────────────

    async def insert_product(self, product: Product) -> None:
        await self.db.execute(
            "INSERT INTO products (product_id, seller, token, price, stock, enabled, updated_at)"
            " VALUES (?, ?, ?, ?, ?, ?, ?)",
            (
                product.product_id, product.seller, product.token, str(product.price),
                product.stock, int(product.enabled), _now(),
            ),
        )

    async def save_product(self, product: Product) -> None:
        await self.db.execute(
            "UPDATE products SET seller=?, token=?, price=?, stock=?, enabled=?, updated_at=?"
            " WHERE product_id=?",
            (
                product.seller, product.token, str(product.price), product.stock,
                int(product.enabled), _now(), product.product_id,
            ),
        )

    async def get_product(self, product_id: int) -> Product | None:
        async with self.db.execute(
            "SELECT * FROM products WHERE product_id=?", (product_id,)
        ) as cur:
            row = await cur.fetchone()
            return _row_to_product(row) if row else None

    async def get_product_ids(self) -> list[int]:
        async with self.db.execute("SELECT product_id FROM products ORDER BY position") as cur:
            return [row["product_id"] async for row in cur]

    # ── Tickets ────────────────────────────────────────────

    async def insert_ticket(self, ticket: Ticket) -> None:
        await self.db.execute(
            "INSERT INTO tickets"
            " (ticket_id, product_id, buyer, token_paid, price_paid, fee_charged,"
            "  shipping_cost, status, created_at, settled_at)"
            " VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                ticket.ticket_id, ticket.product_id, ticket.buyer, ticket.token_paid,
                str(ticket.price_paid), str(ticket.fee_charged), str(ticket.shipping_cost),
                int(ticket.status), ticket.created_at, ticket.settled_at,
            ),
        )

    async def update_ticket_status(
        self, ticket_id: str, status: TicketStatus, settled_at: int
    ) -> None:
        await self.db.execute(
            "UPDATE tickets SET status=?, settled_at=? WHERE ticket_id=?",
            (int(status), settled_at, ticket_id),
        )

    async def get_ticket(self, ticket_id: str) -> Ticket | None:
        async with self.db.execute(
            "SELECT * FROM tickets WHERE ticket_id=?", (ticket_id,)
        ) as cur:
            row = await cur.fetchone()
            return _row_to_ticket(row) if row else None

    async def get_ticket_ids(self) -> list[str]:
        async with self.db.execute("SELECT ticket_id FROM tickets ORDER BY position") as cur:
            return [row["ticket_id"] async for row in cur]

    async def get_ticket_ids_by_product(self, product_id: int) -> list[str]:
        async with self.db.execute(
            "SELECT ticket_id FROM tickets WHERE product_id=? ORDER BY position",
            (product_id,),
        ) as cur:
            return [row["ticket_id"] async for row in cur]

    async def get_ticket_ids_by_buyer(self, buyer: str) -> list[str]:
        async with self.db.execute(
            "SELECT ticket_id FROM tickets WHERE buyer=? ORDER BY position", (buyer,)
        ) as cur:
            return [row["ticket_id"] async for row in cur]

    async def get_tickets_by_status(self, status: TicketStatus) -> list[Ticket]:
        async with self.db.execute(
            "SELECT * FROM tickets WHERE status=? ORDER BY position", (int(status),)
        ) as cur:
            return [_row_to_ticket(row) async for row in cur]

    # ── Claimable balances ─────────────────────────────────

    async def get_claimable(self, kind: BalanceKind, token: str) -> int:
        async with self.db.execute(
            "SELECT amount FROM claimable_balances WHERE kind=? AND token=?",
            (kind.value, token),
        ) as cur:
            row = await cur.fetchone()
            return int(row["amount"]) if row else 0

    async def set_claimable(self, kind: BalanceKind, token: str, amount: int) -> None:
        assert amount >= 0, f"negative {kind.value} balance for {token}"
        await self.db.execute(
            "INSERT INTO claimable_balances (kind, token, amount) VALUES (?, ?, ?)"
            " ON CONFLICT(kind, token) DO UPDATE SET amount=excluded.amount",
            (kind.value, token, str(amount)),
        )

    async def get_claimable_tokens(self) -> list[str]:
        async with self.db.execute(
            "SELECT DISTINCT token FROM claimable_balances ORDER BY token"
        ) as cur:
            return [row["token"] async for row in cur]

    # ── Shipping authorizations ────────────────────────────

    async def is_digest_used(self, digest: str) -> bool:
        async with self.db.execute(
            "SELECT 1 FROM used_authorizations WHERE digest=?", (digest,)
        ) as cur:
            return await cur.fetchone() is not None

    async def mark_digest_used(self, digest: str, sequence: int) -> None:
        await self.db.execute(
            "INSERT INTO used_authorizations (digest, sequence, used_at) VALUES (?, ?, ?)",
            (digest, sequence, _now()),
        )

    # ── Activity log ───────────────────────────────────────

    async def log_activity(
        self,
        event_type: str,
        message: str,
        product_id: int | None = None,
        ticket_id: str | None = None,
        amount: int | None = None,
    ) -> None:
        await self.db.execute(
            "INSERT INTO activity_log"
            " (event_type, product_id, ticket_id, amount, message, sequence, created_at)"
            " VALUES (?, ?, ?, ?, ?, ?, ?)",
            (
                event_type, product_id, ticket_id,
                str(amount) if amount is not None else None,
                message, self._sequence, _now(),
            ),
        )

    async def get_recent_activity(self, limit: int = 50) -> list[ActivityRecord]:
        async with self.db.execute(
            "SELECT * FROM activity_log ORDER BY id DESC LIMIT ?", (limit,)
        ) as cur:
            return [
                ActivityRecord(
                    id=row["id"],
                    event_type=row["event_type"],
                    product_id=row["product_id"],
                    ticket_id=row["ticket_id"],
                    amount=_opt_int(row["amount"]),
                    message=row["message"],
                    sequence=row["sequence"],
                    created_at=row["created_at"],
                )
                async for row in cur
            ]


# ── Row mappers ────────────────────────────────────────────


def _row_to_product(row: aiosqlite.Row) -> Product:
    return Product(
        product_id=row["product_id"],
        seller=row["seller"],
        token=row["token"],
        price=int(row["price"]),
        stock=row["stock"],
        enabled=bool(row["enabled"]),
    )


def _row_to_ticket(row: aiosqlite.Row) -> Ticket:
    return Ticket(
        ticket_id=row["ticket_id"],
        product_id=row["product_id"],
        buyer=row["buyer"],
        token_paid=row["token_paid"],
        price_paid=int(row["price_paid"]),
        fee_charged=int(row["fee_charged"]),
        shipping_cost=int(row["shipping_cost"]),
        status=TicketStatus(row["status"]),
        created_at=row["created_at"],
        settled_at=row["settled_at"],
    )
