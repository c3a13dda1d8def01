"""FundsGateway protocol - moves native currency and tokens in and out of custody."""

from __future__ import annotations

from typing import Protocol


class FundsGateway(Protocol):
    """Transfer primitive provided by the host ledger.

    Implementations raise ``TransferError`` (or their own exception) on
    failure; the ledger propagates it unchanged and rolls back.
    """

    async def collect(self, token: str, payer: str, amount: int) -> None:
        """Pull ``amount`` of ``token`` from ``payer`` into custody."""
        ...

    async def disburse(self, token: str, recipient: str, amount: int) -> None:
        """Pay ``amount`` of ``token`` out of custody to ``recipient``."""
        ...

    async def custody_balance(self, token: str) -> int:
        """Amount of ``token`` currently held in custody."""
        ...
