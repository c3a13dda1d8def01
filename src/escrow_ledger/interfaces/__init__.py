"""Protocol interfaces for all escrow_ledger components."""

from escrow_ledger.interfaces.clock import Clock
from escrow_ledger.interfaces.funds import FundsGateway
from escrow_ledger.interfaces.store import LedgerStore

__all__ = ["Clock", "FundsGateway", "LedgerStore"]
