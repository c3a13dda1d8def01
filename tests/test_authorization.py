"""Signed shipping authorizations: binding, replay protection and rollback."""

from __future__ import annotations

import dataclasses

import pytest

from escrow_ledger.encoding import shipping_digest
from escrow_ledger.errors import AccessDeniedError, TransferError
from escrow_ledger.models.auth import ShippingAuthorization

from tests.factories import (
    ADMIN,
    BUYER,
    BUYER2,
    DAI,
    DOMAIN_ID,
    OUTSIDER_KP,
    SIGNER_KP,
    fund_buyer,
    make_product,
    make_shipping,
)


async def test_pay_with_shipping(market, funds):
    await make_product(market)
    fund_buyer(funds, BUYER, DAI, 1_000)
    assert await market.verifier.next_nonce() == 0

    ticket = await market.tickets.pay_product(
        BUYER, 256, shipping=make_shipping(256, BUYER, shipping_cost=20),
    )

    assert ticket.shipping_cost == 20
    assert ticket.fee_charged == 18
    assert funds.balance_of(DAI, BUYER) == 800
    assert await market.verifier.next_nonce() == 1


async def test_shipping_accrues_on_release(market, funds):
    await make_product(market)
    fund_buyer(funds)
    ticket = await market.tickets.pay_product(
        BUYER, 256, shipping=make_shipping(256, BUYER, shipping_cost=20),
    )
    await market.tickets.release_pay(ADMIN, ticket.ticket_id)

    assert await market.balances.claimable_shipping_cost(DAI) == 20
    assert await market.balances.claimable_fee(DAI) == 18


async def test_replayed_authorization(market, funds):
    await make_product(market)
    fund_buyer(funds, amount=10_000)
    shipping = make_shipping(256, BUYER, shipping_cost=20)
    await market.tickets.pay_product(BUYER, 256, shipping=shipping)

    with pytest.raises(AccessDeniedError) as exc:
        await market.tickets.pay_product(BUYER, 256, shipping=shipping)
    assert exc.value.reason == "!signedMessage"

    assert (await market.catalog.get_product(256)).stock == 4
    assert await market.verifier.next_nonce() == 1


async def test_fresh_nonce_accepted(market, funds):
    await make_product(market)
    fund_buyer(funds, amount=10_000)
    await market.tickets.pay_product(BUYER, 256, shipping=make_shipping(256, nonce=0))
    nonce = await market.verifier.next_nonce()

    ticket = await market.tickets.pay_product(BUYER, 256, shipping=make_shipping(256, nonce=nonce))
    assert ticket.shipping_cost == 20


async def test_wrong_signer(market, funds):
    await make_product(market)
    fund_buyer(funds)

    with pytest.raises(AccessDeniedError) as exc:
        await market.tickets.pay_product(
            BUYER, 256, shipping=make_shipping(256, BUYER, signer=OUTSIDER_KP),
        )
    assert exc.value.reason == "!allowedSigner"


async def test_authorization_bound_to_buyer(market, funds):
    await make_product(market)
    fund_buyer(funds, BUYER2)

    with pytest.raises(AccessDeniedError) as exc:
        await market.tickets.pay_product(BUYER2, 256, shipping=make_shipping(256, BUYER))
    assert exc.value.reason == "!allowedSigner"


async def test_authorization_bound_to_product(market, funds):
    await make_product(market, product_id=256)
    await make_product(market, product_id=257)
    fund_buyer(funds)

    with pytest.raises(AccessDeniedError) as exc:
        await market.tickets.pay_product(BUYER, 257, shipping=make_shipping(256, BUYER))
    assert exc.value.reason == "!allowedSigner"


async def test_authorization_bound_to_domain(market, funds):
    await make_product(market)
    fund_buyer(funds)

    with pytest.raises(AccessDeniedError) as exc:
        await market.tickets.pay_product(
            BUYER, 256, shipping=make_shipping(256, BUYER, domain_id="another ledger"),
        )
    assert exc.value.reason == "!allowedSigner"


async def test_tampered_cost(market, funds):
    await make_product(market)
    fund_buyer(funds)
    shipping = dataclasses.replace(make_shipping(256, shipping_cost=20), shipping_cost=1)

    with pytest.raises(AccessDeniedError) as exc:
        await market.tickets.pay_product(BUYER, 256, shipping=shipping)
    assert exc.value.reason == "!allowedSigner"


async def test_malformed_signature(market, funds):
    await make_product(market)
    fund_buyer(funds)
    shipping = ShippingAuthorization(shipping_cost=20, nonce=0, signature=b"\x01" * 10)

    with pytest.raises(AccessDeniedError) as exc:
        await market.tickets.pay_product(BUYER, 256, shipping=shipping)
    assert exc.value.reason == "!allowedSigner"


@pytest.mark.parametrize("cost, nonce", [(2**256, 0), (20, 2**256), (-1, 0)])
async def test_out_of_range_authorization(market, funds, cost, nonce):
    await make_product(market)
    fund_buyer(funds)
    shipping = ShippingAuthorization(shipping_cost=cost, nonce=nonce, signature=b"\x01" * 64)

    with pytest.raises(AccessDeniedError) as exc:
        await market.tickets.pay_product(BUYER, 256, shipping=shipping)
    assert exc.value.reason == "!allowedSigner"
    assert await market.verifier.next_nonce() == 0


async def test_failed_payment_does_not_consume(market, funds):
    """A payment that aborts later leaves the authorization usable."""
    await make_product(market)
    shipping = make_shipping(256, BUYER, shipping_cost=20)

    with pytest.raises(TransferError):
        await market.tickets.pay_product(BUYER, 256, shipping=shipping)
    assert await market.verifier.next_nonce() == 0

    fund_buyer(funds)
    ticket = await market.tickets.pay_product(BUYER, 256, shipping=shipping)
    assert ticket.shipping_cost == 20


async def test_standalone_verify_consumes(market):
    shipping = make_shipping(300, BUYER, shipping_cost=5)
    await market.verifier.verify(300, BUYER, shipping)

    with pytest.raises(AccessDeniedError) as exc:
        await market.verifier.verify(300, BUYER, shipping)
    assert exc.value.reason == "!signedMessage"


def test_signature_covers_digest():
    auth = make_shipping(256, BUYER, shipping_cost=20, nonce=7)
    digest = shipping_digest(DOMAIN_ID, 256, BUYER, 20, 7)

    SIGNER_KP.verify(digest, auth.signature)
    assert len(auth.signature) == 64
    assert ShippingAuthorization.from_hex(20, 7, auth.signature_hex) == auth
