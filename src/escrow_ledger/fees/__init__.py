"""Fee controller and claimable fee/shipping balances."""

from escrow_ledger.fees.claimable import ClaimableBalanceTracker
from escrow_ledger.fees.controller import FEE_TIMELOCK, FeeController

__all__ = ["ClaimableBalanceTracker", "FeeController", "FEE_TIMELOCK"]
