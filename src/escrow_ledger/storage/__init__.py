"""Persistence backends."""

from escrow_ledger.storage.sqlite import SQLiteLedgerStore

__all__ = ["SQLiteLedgerStore"]
