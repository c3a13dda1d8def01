"""Signed shipping-cost authorization."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ShippingAuthorization:
    """One-time permission to charge ``shipping_cost`` on a specific purchase.

    The product and buyer are not carried here: the verifier binds them from
    the payment call itself, so the token only verifies for the purchase it
    was issued for.
    """

    shipping_cost: int
    nonce: int
    signature: bytes  # ed25519 signature by the allowed signer

    @property
    def signature_hex(self) -> str:
        return self.signature.hex()

    @classmethod
    def from_hex(cls, shipping_cost: int, nonce: int, signature_hex: str) -> ShippingAuthorization:
        return cls(shipping_cost=shipping_cost, nonce=nonce, signature=bytes.fromhex(signature_hex))
