"""
conftest.py - Shared pytest fixtures for vAMM tests

Provides common fixtures used across unit and functional tests:
- A ledger acting as the chain (clock + token balances)
- A 6-decimal USDC collateral token
- A factory and one open market expiring 2025-06-01
- Traders with deposited collateral
"""

import pytest
from datetime import datetime
from decimal import Decimal

from vamm import Ledger, LedgerToken, MarketFactory, StaticPriceOracle, cash

from tests.fakes import EXPIRY, START, fund, insure


# =============================================================================
# CHAIN FIXTURES
# =============================================================================

@pytest.fixture
def chain():
    """Ledger at 2025-01-01 with the USDC unit registered."""
    ledger = Ledger("chain", START, verbose=False, test_mode=True)
    ledger.register_unit(cash("USDC", "USD Coin", decimal_places=6))
    return ledger


@pytest.fixture
def usdc(chain):
    """Collateral token bound to the chain's USDC unit."""
    return LedgerToken(chain, "USDC")


@pytest.fixture
def oracle():
    """Settlement oracle starting at 1.0."""
    return StaticPriceOracle(Decimal("1"))


# =============================================================================
# MARKET FIXTURES
# =============================================================================

@pytest.fixture
def factory(chain):
    return MarketFactory(chain, owner="owner")


@pytest.fixture
def market(factory, oracle, usdc):
    """Open GOLD market expiring 2025-06-01."""
    market_id = factory.create_market(oracle, usdc, Decimal("1"), EXPIRY, symbol="GOLD")
    return factory.get_market(market_id)


@pytest.fixture
def funded_market(market, usdc):
    """Market where alice and bob each deposited 1000 USDC."""
    fund(usdc, market, "alice", 1000)
    fund(usdc, market, "bob", 1000)
    return market


@pytest.fixture
def insured_market(funded_market, usdc):
    """Funded market with 100 USDC of insurance backing trader profits."""
    insure(usdc, funded_market, 100)
    return funded_market


@pytest.fixture
def expire(chain):
    """Callable that moves the chain clock to the market expiry (or later)."""
    def _expire(when: datetime = EXPIRY):
        chain.advance_time(when)
    return _expire
