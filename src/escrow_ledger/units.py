"""Token identifiers and fixed-point amount helpers."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation

from escrow_ledger.errors import INVALID_FEE, ValidationError

NATIVE_TOKEN = "native"

# Fees are percentages with 18 decimals: FEE_UNIT == 1%.
FEE_DECIMALS = 18
FEE_UNIT = 10**FEE_DECIMALS
MAX_FEE = 100 * FEE_UNIT

# Stellar amounts carry 7 decimals (stroops).
NATIVE_DECIMALS = 7


def normalize_token(token: str | None) -> str:
    """Map the zero-value token identifiers to ``NATIVE_TOKEN``."""
    if token is None or token == "" or token == NATIVE_TOKEN:
        return NATIVE_TOKEN
    return token


def is_native(token: str | None) -> bool:
    return normalize_token(token) == NATIVE_TOKEN


def parse_units(value: str | int | Decimal, decimals: int) -> int:
    """Convert a human amount ("1.5") into integer base units.

    Raises ValueError when the value has more precision than ``decimals``.
    """
    try:
        d = Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"not a number: {value!r}") from exc
    scaled = d.scaleb(decimals)
    if scaled != scaled.to_integral_value():
        raise ValueError(f"{value!r} exceeds {decimals} decimals")
    return int(scaled)


def format_units(amount: int, decimals: int) -> str:
    """Render integer base units as a human amount without trailing zeros."""
    d = Decimal(amount).scaleb(-decimals)
    text = format(d, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def fee_from_percent(percent: str | int | Decimal) -> int:
    """Parse a human percentage ("2.5") into fee units."""
    fee = parse_units(percent, FEE_DECIMALS)
    validate_fee(fee)
    return fee


def validate_fee(fee: int) -> None:
    if not 0 <= fee <= MAX_FEE:
        raise ValidationError(INVALID_FEE, f"fee {fee} outside [0, {MAX_FEE}]")


def compute_fee(price: int, fee: int) -> int:
    """Fee carved out of ``price``. Floor division; the remainder stays with the seller."""
    return price * fee // MAX_FEE
