"""Ledger error taxonomy and the reason codes surfaced to callers."""

from __future__ import annotations

# ── Input validation ───────────────────────────────────
INVALID_PRODUCT_ID = "!productId"
INVALID_PRICE = "!price"
INVALID_SELLER = "!seller"
INVALID_STOCK = "!stock"
INVALID_STOCK_TO_ADD = "!stockToAdd"
INVALID_STOCK_TO_REMOVE = "!stockToRemove"
INVALID_TICKET_ID = "!ticketId"
INVALID_FEE = "!fee"
INVALID_ADMIN = "!admin"
INVALID_BUYER = "!buyer"
PRODUCTS_ARITY = "!productsId"
STOCKS_ARITY = "!stocks"

# ── State conflicts ────────────────────────────────────
ALREADY_EXISTS = "alreadyExist"
NOT_FOUND = "!exist"
NOT_ENABLED = "!enabled"
OUT_OF_STOCK = "!stock"
NOT_WAITING = "!waiting"
REENTRANT = "!reentrant"
NOT_INITIALIZED = "!initialized"

# ── Authorization ──────────────────────────────────────
NOT_OWNER = "!owner"
NOT_WHITELISTED = "!whitelisted"
INVALID_SIGNER = "!allowedSigner"
REUSED_AUTHORIZATION = "!signedMessage"
NOT_PREPARED = "!prepared"
NOT_UNLOCKED = "!unlocked"

# ── Funds ──────────────────────────────────────────────
WRONG_PAYMENT = "!msg.value"
INSUFFICIENT_FUNDS = "!funds"


class LedgerError(Exception):
    """Base class for every operation failure.

    ``reason`` carries the stable reason code (e.g. ``"!waiting"``); the
    message is free-form detail for logs.
    """

    def __init__(self, reason: str, message: str | None = None) -> None:
        self.reason = reason
        self.message = message or reason
        super().__init__(f"{reason}: {message}" if message else reason)


class ValidationError(LedgerError):
    """Malformed input: zero ids, prices or addresses, arity mismatches."""


class StateConflictError(LedgerError):
    """The ledger state does not allow the operation."""


class AccessDeniedError(LedgerError):
    """Caller lacks permission, or a signed authorization/fee gate fails."""


class FundsError(LedgerError):
    """Insufficient payment or claimable balance."""


class TransferError(FundsError):
    """Raised by a funds gateway when a transfer cannot be performed."""

    def __init__(self, reason: str, token: str, account: str, amount: int) -> None:
        super().__init__(reason, f"{amount} of {token} for {account[:16]}")
        self.token = token
        self.account = account
        self.amount = amount
