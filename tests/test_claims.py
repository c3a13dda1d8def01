"""Claimable fee and shipping balances."""

from __future__ import annotations

import pytest

from escrow_ledger.errors import AccessDeniedError, FundsError

from tests.factories import (
    ADMIN,
    BUYER,
    BUYER2,
    DAI,
    SELLER,
    fund_buyer,
    make_paid_ticket,
    make_product,
    make_shipping,
)


async def _released(market, funds, shipping_cost: int = 0):
    await make_product(market)
    fund_buyer(funds)
    shipping = make_shipping(256, BUYER, shipping_cost=shipping_cost) if shipping_cost else None
    ticket = await market.tickets.pay_product(BUYER, 256, shipping=shipping)
    await market.tickets.release_pay(ADMIN, ticket.ticket_id)
    return ticket


async def test_claim_more_than_claimable(market, funds):
    await _released(market, funds)
    assert await market.balances.claimable_fee(DAI) == 18

    with pytest.raises(FundsError) as exc:
        await market.balances.claim_fees(ADMIN, DAI, 19)
    assert exc.value.reason == "!funds"
    assert await market.balances.claimable_fee(DAI) == 18


async def test_claim_exact_balance(market, funds):
    await _released(market, funds)

    await market.balances.claim_fees(ADMIN, DAI, 18)

    assert await market.balances.claimable_fee(DAI) == 0
    assert funds.balance_of(DAI, ADMIN) == 18
    assert await funds.custody_balance(DAI) == 0


async def test_partial_shipping_claims(market, funds):
    await _released(market, funds, shipping_cost=20)
    assert await market.balances.claimable_shipping_cost(DAI) == 20

    await market.balances.claim_shipping_cost(ADMIN, DAI, 5)
    assert await market.balances.claimable_shipping_cost(DAI) == 15
    await market.balances.claim_shipping_cost(ADMIN, DAI, 15)
    assert await market.balances.claimable_shipping_cost(DAI) == 0

    with pytest.raises(FundsError) as exc:
        await market.balances.claim_shipping_cost(ADMIN, DAI, 1)
    assert exc.value.reason == "!funds"

    assert funds.balance_of(DAI, ADMIN) == 20
    assert await market.balances.claimable_fee(DAI) == 18


async def test_buckets_are_independent(market, funds):
    await _released(market, funds, shipping_cost=20)

    with pytest.raises(FundsError):
        await market.balances.claim_fees(ADMIN, DAI, 20)
    await market.balances.claim_fees(ADMIN, DAI, 18)
    assert await market.balances.claimable_shipping_cost(DAI) == 20


async def test_claims_are_admin_only(market, funds):
    await _released(market, funds)

    with pytest.raises(AccessDeniedError) as exc:
        await market.balances.claim_fees(SELLER, DAI, 1)
    assert exc.value.reason == "!owner"

    with pytest.raises(AccessDeniedError) as exc:
        await market.balances.claim_shipping_cost(BUYER, DAI, 0)
    assert exc.value.reason == "!owner"


async def test_negative_claim(market, funds):
    await _released(market, funds)
    with pytest.raises(FundsError) as exc:
        await market.balances.claim_fees(ADMIN, DAI, -1)
    assert exc.value.reason == "!funds"


async def test_claimable_per_token(market, funds):
    await _released(market, funds)
    assert await market.balances.claimable_fee("USDC:GUSDC") == 0
    assert await market.balances.claimable_fee(None) == 0


async def test_refund_leaves_claimables(market, funds):
    await _released(market, funds)
    ticket = await make_paid_ticket(market, funds, buyer=BUYER2)
    await market.tickets.refund_product(ADMIN, ticket.ticket_id)

    assert await market.balances.claimable_fee(DAI) == 18
    assert await market.balances.claimable_shipping_cost(DAI) == 0


async def test_claim_activity(market, funds):
    await _released(market, funds)
    await market.balances.claim_fees(ADMIN, DAI, 10)

    latest = (await market.get_recent_activity(1))[0]
    assert latest.event_type == "fee_claimed"
    assert latest.amount == 10
