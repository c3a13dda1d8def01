"""Shared fixtures for escrow_ledger tests."""

from __future__ import annotations

import pytest
from pytest_metadata.plugin import metadata_key

from escrow_ledger.funds.memory import InMemoryFundsGateway
from escrow_ledger.market import EscrowMarket
from escrow_ledger.models.config import LedgerConfig
from escrow_ledger.storage.sqlite import SQLiteLedgerStore
from escrow_ledger.units import FEE_UNIT

from tests.factories import ADMIN, DOMAIN_ID, SIGNER, SIGNER_KP
from tests.mocks import FakeClock

INITIAL_FEE = 10 * FEE_UNIT  # 10%


# ── Report metadata ───────────────────────────────────────────────


def pytest_configure(config):
    """Add ledger parameters to the report Environment table."""
    meta = config.stash.setdefault(metadata_key, {})
    meta["Domain"] = DOMAIN_ID
    meta["Admin Account"] = ADMIN
    meta["Allowed Signer"] = SIGNER


def make_test_config(**overrides) -> LedgerConfig:
    """Build a LedgerConfig suitable for testing."""
    defaults = dict(
        admin=ADMIN,
        allowed_signer=SIGNER,
        initial_fee="10",
        domain_id=DOMAIN_ID,
        db_path=":memory:",
        signer_secret=SIGNER_KP.secret,
    )
    defaults.update(overrides)
    return LedgerConfig(**defaults)


@pytest.fixture
def test_config():
    """Default LedgerConfig for tests."""
    return make_test_config()


@pytest.fixture
async def store():
    """Initialized in-memory SQLiteLedgerStore."""
    s = SQLiteLedgerStore(":memory:")
    await s.initialize()
    yield s
    await s.close()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def funds():
    return InMemoryFundsGateway()


@pytest.fixture
async def market(store, funds, clock):
    """EscrowMarket initialized with a 10% fee."""
    m = EscrowMarket(store, funds, clock)
    await m.initialize(ADMIN, INITIAL_FEE, SIGNER, DOMAIN_ID)
    return m
