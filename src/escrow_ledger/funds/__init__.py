"""Funds gateway implementations."""

from escrow_ledger.funds.memory import CUSTODY, InMemoryFundsGateway

__all__ = ["CUSTODY", "InMemoryFundsGateway"]
