"""Shipping authorization verifier - one-time, off-chain-signed shipping charges."""

from __future__ import annotations

import logging

from stellar_sdk import Keypair
from stellar_sdk.exceptions import BadSignatureError

from escrow_ledger.encoding import MAX_UINT256, is_valid_account, shipping_digest
from escrow_ledger.errors import INVALID_SIGNER, REUSED_AUTHORIZATION, AccessDeniedError
from escrow_ledger.interfaces.store import LedgerStore
from escrow_ledger.models.auth import ShippingAuthorization
from escrow_ledger.registry.access import require_state

log = logging.getLogger(__name__)

_SIGNATURE_BYTES = 64  # ed25519


def sign_shipping_authorization(
    keypair: Keypair,
    domain_id: str,
    product_id: int,
    buyer: str,
    shipping_cost: int,
    nonce: int,
) -> ShippingAuthorization:
    """Issue an authorization for ``buyer`` to pay ``shipping_cost`` on ``product_id``."""
    digest = shipping_digest(domain_id, product_id, buyer, shipping_cost, nonce)
    return ShippingAuthorization(
        shipping_cost=shipping_cost,
        nonce=nonce,
        signature=keypair.sign(digest),
    )


class ShippingAuthorizationVerifier:
    """Validates and consumes shipping authorizations.

    An authorization is a capability token: it allows exactly one shipping
    charge for one product/buyer pair. Replays are rejected through the set of
    consumed digests. The nonce counter only tracks how many have been used,
    so the signer can pick fresh nonces.
    """

    def __init__(self, store: LedgerStore) -> None:
        self._store = store

    async def next_nonce(self) -> int:
        async with self._store.reading():
            state = await require_state(self._store)
        return state.auth_nonce

    async def verify(
        self, product_id: int, buyer: str, authorization: ShippingAuthorization
    ) -> None:
        """Verify and consume ``authorization`` as a standalone operation."""
        async with self._store.transaction() as seq:
            await self.consume(product_id, buyer, authorization, seq)

    async def consume(
        self,
        product_id: int,
        buyer: str,
        authorization: ShippingAuthorization,
        sequence: int,
    ) -> None:
        """Verify and mark used. Runs inside the caller's transaction."""
        state = await require_state(self._store)
        if (
            not is_valid_account(buyer)
            or not 0 <= product_id <= MAX_UINT256
            or not 0 <= authorization.shipping_cost <= MAX_UINT256
            or not 0 <= authorization.nonce <= MAX_UINT256
            or len(authorization.signature) != _SIGNATURE_BYTES
        ):
            raise AccessDeniedError(INVALID_SIGNER, "malformed authorization")

        digest = shipping_digest(
            state.domain_id, product_id, buyer, authorization.shipping_cost, authorization.nonce,
        )
        try:
            Keypair.from_public_key(state.allowed_signer).verify(digest, authorization.signature)
        except BadSignatureError:
            log.warning(
                "Rejected shipping authorization for product %d, buyer %s: bad signature",
                product_id, buyer[:16],
            )
            raise AccessDeniedError(INVALID_SIGNER, "signature does not match allowed signer")

        if await self._store.is_digest_used(digest.hex()):
            log.warning(
                "Rejected replayed shipping authorization for product %d, buyer %s",
                product_id, buyer[:16],
            )
            raise AccessDeniedError(REUSED_AUTHORIZATION, "authorization already used")

        await self._store.mark_digest_used(digest.hex(), sequence)
        nonce = await self._store.increment_auth_nonce()
        log.debug("Shipping authorization consumed (nonce counter now %d)", nonce)
