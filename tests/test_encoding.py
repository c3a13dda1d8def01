"""Canonical encoding, ticket id derivation and account checks."""

from __future__ import annotations

import pytest

from escrow_ledger.encoding import (
    ZERO_ACCOUNT,
    derive_ticket_id,
    encode_account,
    encode_uint,
    is_valid_account,
    is_zero_ticket_id,
    shipping_digest,
)

from tests.factories import BUYER, BUYER2, DOMAIN_ID, SIGNER_KP


def test_encode_uint():
    assert encode_uint(0) == bytes(32)
    assert encode_uint(256) == bytes(30) + b"\x01\x00"
    with pytest.raises(ValueError):
        encode_uint(-1)
    with pytest.raises(ValueError):
        encode_uint(2**256)
    assert encode_uint(2**256 - 1) == b"\xff" * 32


def test_encode_account_is_raw_key():
    assert encode_account(SIGNER_KP.public_key) == SIGNER_KP.raw_public_key()
    assert len(encode_account(BUYER)) == 32


def test_account_validation():
    assert is_valid_account(BUYER)
    assert not is_valid_account(ZERO_ACCOUNT)
    assert not is_valid_account("")
    assert not is_valid_account(None)
    assert not is_valid_account(SIGNER_KP.secret)
    assert not is_valid_account(BUYER[:-1])


def test_ticket_id_depends_on_every_field():
    base = derive_ticket_id(256, BUYER, 7, 5)
    assert len(base) == 64
    assert base == derive_ticket_id(256, BUYER, 7, 5)
    assert len({
        base,
        derive_ticket_id(257, BUYER, 7, 5),
        derive_ticket_id(256, BUYER2, 7, 5),
        derive_ticket_id(256, BUYER, 8, 5),
        derive_ticket_id(256, BUYER, 7, 4),
    }) == 5


def test_shipping_digest_is_domain_separated():
    a = shipping_digest(DOMAIN_ID, 256, BUYER, 20, 0)
    assert len(a) == 32
    assert a != shipping_digest("other", 256, BUYER, 20, 0)
    assert a != shipping_digest(DOMAIN_ID, 256, BUYER, 20, 1)


@pytest.mark.parametrize(
    "ticket_id, zero",
    [("", True), (None, True), ("0" * 64, True), ("0x" + "0" * 64, True),
     ("0" * 63 + "1", False), ("ab" * 32, False)],
)
def test_is_zero_ticket_id(ticket_id, zero):
    assert is_zero_ticket_id(ticket_id) is zero
