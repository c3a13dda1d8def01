"""Caller checks shared by every mutating entry point."""

from __future__ import annotations

import logging

from escrow_ledger.errors import (
    NOT_INITIALIZED,
    NOT_OWNER,
    NOT_WHITELISTED,
    AccessDeniedError,
    StateConflictError,
)
from escrow_ledger.interfaces.store import LedgerStore
from escrow_ledger.models.records import Access, LedgerState

log = logging.getLogger(__name__)


async def require_state(store: LedgerStore) -> LedgerState:
    state = await store.get_state()
    if state is None:
        raise StateConflictError(NOT_INITIALIZED, "ledger has not been initialized")
    return state


async def require_admin(store: LedgerStore, caller: str) -> LedgerState:
    """Fail with ``!owner`` unless ``caller`` is the ledger admin."""
    state = await require_state(store)
    if caller != state.admin:
        log.warning("Admin-only operation refused for %s", caller[:16])
        raise AccessDeniedError(NOT_OWNER, f"{caller[:16]} is not the admin")
    return state


async def check_access(store: LedgerStore, caller: str, *sellers: str) -> Access:
    """Evaluate the catalog access rule.

    The admin may act on any listing. A whitelisted caller may act only when
    every seller involved is the caller itself.
    """
    state = await require_state(store)
    if caller == state.admin:
        return Access.ADMIN
    if sellers and all(s == caller for s in sellers) and await store.is_whitelisted(caller):
        return Access.WHITELISTED_SELF
    return Access.DENIED


async def require_access(store: LedgerStore, caller: str, *sellers: str) -> Access:
    access = await check_access(store, caller, *sellers)
    if access is Access.DENIED:
        log.warning("Catalog mutation refused for %s", caller[:16])
        raise AccessDeniedError(NOT_WHITELISTED, f"{caller[:16]} may not manage this listing")
    return access
