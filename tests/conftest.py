"""
conftest.py - Shared pytest fixtures for serp tests

Provides common fixtures used across unit, conformance and functional tests:
- Ledgers (empty, registered, funded)
- Controller setups at the reference parameters (peg 1_000, rate 1%)
- Price feeds and a config-driven protocol
"""

import pytest

from serp import (
    Ledger, Price, SupplyController, ElasticParams,
    StaticDataProvider, DefaultPriceProvider, ElasticReserveProtocol,
)

from tests.helpers import NATIVE, STABLE, SERPER, PEG_UNIT, make_ledger, reference_config


# =============================================================================
# LEDGER FIXTURES
# =============================================================================

@pytest.fixture
def empty_ledger():
    """Fresh ledger with no registrations."""
    return Ledger("test", verbose=False)


@pytest.fixture
def ledger():
    """Ledger with SETM and SETUSD registered, no balances."""
    return make_ledger()


@pytest.fixture
def funded_ledger(ledger):
    """Ledger where alice holds 10_000 SETUSD and 5_000 SETM."""
    ledger.deposit(STABLE, "alice", 10_000)
    ledger.deposit(NATIVE, "alice", 5_000)
    return ledger


# =============================================================================
# CONTROLLER FIXTURES
# =============================================================================

@pytest.fixture
def reference_params():
    """peg 1_000, no tolerance band, 1% incentive rate, every tick."""
    return ElasticParams(
        peg_unit=PEG_UNIT,
        tolerance=0,
        incentive_rate=Price.from_decimal("0.01"),
        adjustment_frequency=1,
    )


@pytest.fixture
def controller(ledger, reference_params):
    """Controller over a ledger with 1_000_000 SETUSD outstanding at the serper."""
    ledger.deposit(STABLE, SERPER, 1_000_000)
    return SupplyController(ledger, {STABLE: reference_params}, serper=SERPER)


# =============================================================================
# PRICING FIXTURES
# =============================================================================

@pytest.fixture
def feed():
    """SETUSD at 1.1 USD and SETM at 10 USD."""
    return StaticDataProvider({
        STABLE: Price.from_decimal("1.1"),
        NATIVE: Price.from_int(10),
    }, reference="USD")


@pytest.fixture
def protocol(feed):
    """Config-driven protocol with 1_000_000 SETUSD outstanding at the serper."""
    protocol = ElasticReserveProtocol.from_config(reference_config(), DefaultPriceProvider(feed))
    protocol.ledger.deposit(STABLE, SERPER, 1_000_000)
    return protocol
