"""Fee controller timelock and fixed-point fee arithmetic."""

from __future__ import annotations

import pytest

from escrow_ledger.errors import AccessDeniedError, ValidationError
from escrow_ledger.fees.controller import FEE_TIMELOCK
from escrow_ledger.units import (
    FEE_UNIT,
    MAX_FEE,
    compute_fee,
    fee_from_percent,
    format_units,
    parse_units,
)

from tests.conftest import INITIAL_FEE
from tests.factories import ADMIN, SELLER


# ── Timelock ──────────────────────────────────────────────────────


async def test_initial_fee(market):
    assert await market.fees.fee() == INITIAL_FEE
    cfg = await market.fees.fee_config()
    assert cfg.pending is None
    assert cfg.unlock_at is None


async def test_implement_before_prepare(market):
    with pytest.raises(AccessDeniedError) as exc:
        await market.fees.implement_fee(ADMIN)
    assert exc.value.reason == "!prepared"


async def test_implement_respects_timelock(market, clock):
    prepared = await market.fees.prepare_fee(ADMIN, 5 * FEE_UNIT)
    assert prepared.unlock_at == clock.now() + FEE_TIMELOCK

    with pytest.raises(AccessDeniedError) as exc:
        await market.fees.implement_fee(ADMIN)
    assert exc.value.reason == "!unlocked"

    clock.advance(FEE_TIMELOCK - 1)
    with pytest.raises(AccessDeniedError) as exc:
        await market.fees.implement_fee(ADMIN)
    assert exc.value.reason == "!unlocked"
    assert await market.fees.fee() == INITIAL_FEE

    clock.advance(1)
    cfg = await market.fees.implement_fee(ADMIN)
    assert cfg.current == 5 * FEE_UNIT
    assert await market.fees.fee() == 5 * FEE_UNIT

    stored = await market.fees.fee_config()
    assert stored.pending is None
    assert stored.unlock_at is None

    with pytest.raises(AccessDeniedError) as exc:
        await market.fees.implement_fee(ADMIN)
    assert exc.value.reason == "!prepared"


async def test_prepare_replaces_pending_proposal(market, clock):
    await market.fees.prepare_fee(ADMIN, 5 * FEE_UNIT)
    clock.advance(FEE_TIMELOCK - 10)
    await market.fees.prepare_fee(ADMIN, 7 * FEE_UNIT)

    clock.advance(10)
    with pytest.raises(AccessDeniedError) as exc:
        await market.fees.implement_fee(ADMIN)
    assert exc.value.reason == "!unlocked"

    clock.advance(FEE_TIMELOCK)
    assert (await market.fees.implement_fee(ADMIN)).current == 7 * FEE_UNIT


async def test_fee_changes_are_admin_only(market):
    with pytest.raises(AccessDeniedError) as exc:
        await market.fees.prepare_fee(SELLER, FEE_UNIT)
    assert exc.value.reason == "!owner"

    with pytest.raises(AccessDeniedError) as exc:
        await market.fees.implement_fee(SELLER)
    assert exc.value.reason == "!owner"


@pytest.mark.parametrize("fee", [-1, MAX_FEE + 1])
async def test_prepare_rejects_out_of_range(market, fee):
    with pytest.raises(ValidationError) as exc:
        await market.fees.prepare_fee(ADMIN, fee)
    assert exc.value.reason == "!fee"
    assert (await market.fees.fee_config()).pending is None


async def test_zero_and_full_fee_allowed(market, clock):
    await market.fees.prepare_fee(ADMIN, 0)
    clock.advance(FEE_TIMELOCK)
    assert (await market.fees.implement_fee(ADMIN)).current == 0

    await market.fees.prepare_fee(ADMIN, MAX_FEE)
    clock.advance(FEE_TIMELOCK)
    assert (await market.fees.implement_fee(ADMIN)).current == MAX_FEE


async def test_fee_activity_log(market, clock):
    await market.fees.prepare_fee(ADMIN, 2 * FEE_UNIT)
    clock.advance(FEE_TIMELOCK)
    await market.fees.implement_fee(ADMIN)

    activity = await market.get_recent_activity(2)
    assert [a.event_type for a in activity] == ["fee_implemented", "fee_prepared"]
    assert activity[0].amount == 2 * FEE_UNIT


# ── Arithmetic ────────────────────────────────────────────────────


def test_compute_fee_floors():
    assert compute_fee(180, 10 * FEE_UNIT) == 18
    assert compute_fee(999, FEE_UNIT) == 9
    assert compute_fee(1, 99 * FEE_UNIT) == 0
    assert compute_fee(180, MAX_FEE) == 180
    assert compute_fee(180, 0) == 0


def test_compute_fee_handles_large_amounts():
    price = 1_000_000 * 10**18
    assert compute_fee(price, fee_from_percent("2.5")) == 25_000 * 10**18


def test_fee_from_percent():
    assert fee_from_percent("1") == FEE_UNIT
    assert fee_from_percent("2.5") == 25 * 10**17
    assert fee_from_percent(0) == 0

    with pytest.raises(ValidationError):
        fee_from_percent("100.5")
    with pytest.raises(ValueError):
        fee_from_percent("ten")


def test_parse_and_format_units():
    assert parse_units("1.5", 7) == 15_000_000
    assert parse_units(3, 2) == 300
    assert format_units(15_000_000, 7) == "1.5"
    assert format_units(2 * FEE_UNIT, 18) == "2"

    with pytest.raises(ValueError):
        parse_units("0.123456789", 7)
