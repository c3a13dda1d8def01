"""Off-chain signed shipping authorizations."""

from escrow_ledger.auth.verifier import ShippingAuthorizationVerifier, sign_shipping_authorization

__all__ = ["ShippingAuthorizationVerifier", "sign_shipping_authorization"]
