"""Whitelist registry and the catalog access rule."""

from escrow_ledger.registry.access import check_access, require_access, require_admin
from escrow_ledger.registry.whitelist import WhitelistRegistry

__all__ = ["WhitelistRegistry", "check_access", "require_access", "require_admin"]
