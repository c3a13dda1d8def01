"""Canonical byte encoding for ticket ids and shipping authorization digests.

Integers are encoded as 32-byte big-endian words and accounts as their raw
32-byte ed25519 public key, so every field has a fixed width and two distinct
tuples can never encode to the same bytes.
"""

from __future__ import annotations

import hashlib

from stellar_sdk import StrKey

ZERO_ACCOUNT = StrKey.encode_ed25519_public_key(bytes(32))

_WORD = 32
MAX_UINT256 = 2**256 - 1


def is_valid_account(address: str | None) -> bool:
    """True for a well-formed, non-zero Stellar account id."""
    if not address or address == ZERO_ACCOUNT:
        return False
    return StrKey.is_valid_ed25519_public_key(address)


def encode_uint(value: int) -> bytes:
    if not 0 <= value <= MAX_UINT256:
        raise ValueError(f"cannot encode {value} as a 32-byte word")
    return value.to_bytes(_WORD, "big")


def encode_account(address: str) -> bytes:
    return StrKey.decode_ed25519_public_key(address)


def domain_separator(domain_id: str) -> bytes:
    return hashlib.sha256(domain_id.encode("utf-8")).digest()


def derive_ticket_id(product_id: int, buyer: str, sequence: int, stock_before: int) -> str:
    """Ticket id for a purchase: hex SHA-256 of (product, buyer, sequence, stock)."""
    payload = (
        encode_uint(product_id)
        + encode_account(buyer)
        + encode_uint(sequence)
        + encode_uint(stock_before)
    )
    return hashlib.sha256(payload).hexdigest()


def shipping_digest(
    domain_id: str,
    product_id: int,
    buyer: str,
    shipping_cost: int,
    nonce: int,
) -> bytes:
    """Digest signed by the allowed signer to authorize one shipping charge."""
    payload = (
        domain_separator(domain_id)
        + encode_uint(product_id)
        + encode_account(buyer)
        + encode_uint(shipping_cost)
        + encode_uint(nonce)
    )
    return hashlib.sha256(payload).digest()


def is_zero_ticket_id(ticket_id: str | None) -> bool:
    if not ticket_id:
        return True
    text = ticket_id[2:] if ticket_id.startswith("0x") else ticket_id
    return text == "" or set(text) <= {"0"}
