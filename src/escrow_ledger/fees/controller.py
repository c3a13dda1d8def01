"""Fee controller - current platform fee and the time-locked update protocol."""

from __future__ import annotations

import logging

from escrow_ledger.errors import NOT_PREPARED, NOT_UNLOCKED, AccessDeniedError
from escrow_ledger.interfaces.clock import Clock
from escrow_ledger.interfaces.store import LedgerStore
from escrow_ledger.models.records import FeeConfig
from escrow_ledger.registry.access import require_admin
from escrow_ledger.units import FEE_DECIMALS, format_units, validate_fee

log = logging.getLogger(__name__)

# A prepared fee can be implemented one week after it was proposed.
FEE_TIMELOCK = 7 * 24 * 60 * 60


def _pct(fee: int) -> str:
    return f"{format_units(fee, FEE_DECIMALS)}%"


class FeeController:
    """Two-phase fee updates: prepare, wait ``FEE_TIMELOCK``, implement.

    The fee is snapshotted into each ticket at payment time, so a change never
    affects tickets already in escrow.
    """

    def __init__(self, store: LedgerStore, clock: Clock) -> None:
        self._store = store
        self._clock = clock

    async def fee(self) -> int:
        async with self._store.reading():
            cfg = await self._store.get_fee_config()
        return cfg.current

    async def fee_config(self) -> FeeConfig:
        async with self._store.reading():
            return await self._store.get_fee_config()

    async def prepare_fee(self, caller: str, new_fee: int) -> FeeConfig:
        """Propose ``new_fee``, replacing any earlier proposal."""
        validate_fee(new_fee)
        async with self._store.transaction():
            await require_admin(self._store, caller)
            cfg = await self._store.get_fee_config()
            cfg.pending = new_fee
            cfg.unlock_at = self._clock.now() + FEE_TIMELOCK
            await self._store.set_fee_config(cfg)
            await self._store.log_activity(
                "fee_prepared", f"Fee {_pct(new_fee)} unlocks at {cfg.unlock_at}", amount=new_fee,
            )
        log.info("Fee %s prepared, unlocks at %d", _pct(new_fee), cfg.unlock_at)
        return cfg

    async def implement_fee(self, caller: str) -> FeeConfig:
        async with self._store.transaction():
            await require_admin(self._store, caller)
            cfg = await self._store.get_fee_config()
            if cfg.pending is None or cfg.unlock_at is None:
                raise AccessDeniedError(NOT_PREPARED, "no pending fee")
            now = self._clock.now()
            if now < cfg.unlock_at:
                raise AccessDeniedError(
                    NOT_UNLOCKED, f"fee unlocks in {cfg.unlock_at - now}s",
                )
            old = cfg.current
            cfg = FeeConfig(current=cfg.pending)
            await self._store.set_fee_config(cfg)
            await self._store.log_activity(
                "fee_implemented", f"Fee {_pct(old)} -> {_pct(cfg.current)}", amount=cfg.current,
            )
        log.info("Fee changed: %s -> %s", _pct(old), _pct(cfg.current))
        return cfg
