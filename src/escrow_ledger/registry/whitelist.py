"""Whitelist registry - sellers allowed to self-service their own listings."""

from __future__ import annotations

import logging

from escrow_ledger.interfaces.store import LedgerStore
from escrow_ledger.models.records import Access
from escrow_ledger.registry.access import check_access, require_admin

log = logging.getLogger(__name__)


class WhitelistRegistry:
    """Admin-controlled set of self-service seller addresses."""

    def __init__(self, store: LedgerStore) -> None:
        self._store = store

    async def add_whitelisted_seller(self, caller: str, address: str) -> None:
        async with self._store.transaction():
            await require_admin(self._store, caller)
            await self._store.set_whitelisted(address, True)
            await self._store.log_activity("seller_whitelisted", f"Whitelisted {address}")
        log.info("Seller whitelisted: %s", address[:16])

    async def remove_whitelisted_seller(self, caller: str, address: str) -> None:
        async with self._store.transaction():
            await require_admin(self._store, caller)
            await self._store.set_whitelisted(address, False)
            await self._store.log_activity("seller_removed", f"Removed {address} from whitelist")
        log.info("Seller removed from whitelist: %s", address[:16])

    async def is_whitelisted(self, address: str) -> bool:
        async with self._store.reading():
            return await self._store.is_whitelisted(address)

    async def get_whitelisted_sellers(self) -> list[str]:
        async with self._store.reading():
            return await self._store.get_whitelisted()

    async def access_for(self, caller: str, *sellers: str) -> Access:
        """Resolve the access rule for ``caller`` acting on ``sellers``' listings."""
        async with self._store.reading():
            return await check_access(self._store, caller, *sellers)
