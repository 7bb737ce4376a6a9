"""
test_oracle.py - Unit tests for price oracles
"""

import pytest
from datetime import datetime
from decimal import Decimal

from vamm import (
    PriceOracle, StaticPriceOracle, TimeSeriesPriceOracle,
    InvalidParameter, OracleError,
)


class TestStaticPriceOracle:

    def test_reports_stored_price(self):
        oracle = StaticPriceOracle("1.5")
        assert isinstance(oracle, PriceOracle)
        assert oracle.get_price() == Decimal("1.5")

    def test_update_and_move(self):
        oracle = StaticPriceOracle(100)
        oracle.update_price(200)
        assert oracle.get_price() == Decimal("200")
        assert oracle.move_price(500) == Decimal("210")
        assert oracle.move_price(-1000) == Decimal("189")

    @pytest.mark.parametrize("bad", [0, -1, "nan", None])
    def test_invalid_price_rejected(self, bad):
        with pytest.raises(InvalidParameter):
            StaticPriceOracle(bad)


class TestTimeSeriesPriceOracle:

    @pytest.fixture
    def oracle(self, chain):
        return TimeSeriesPriceOracle(chain, [
            (datetime(2025, 3, 1), Decimal("1.2")),
            (datetime(2025, 1, 1), Decimal("1.0")),
            (datetime(2025, 6, 1), Decimal("1.1")),
        ])

    def test_latest_observation_at_or_before_now(self, oracle, chain):
        assert oracle.get_price() == Decimal("1.0")
        chain.advance_time(datetime(2025, 4, 15))
        assert oracle.get_price() == Decimal("1.2")
        chain.advance_time(datetime(2025, 6, 1))
        assert oracle.get_price() == Decimal("1.1")

    def test_history_sorted(self, oracle):
        stamps = [ts for ts, _ in oracle.history]
        assert stamps == sorted(stamps)

    def test_no_observation_yet(self, chain):
        oracle = TimeSeriesPriceOracle(chain, [(datetime(2025, 2, 1), 1)])
        with pytest.raises(OracleError):
            oracle.get_price()
        assert oracle.price_at(datetime(2024, 1, 1)) is None

    def test_observations(self, oracle):
        assert oracle.observations()[datetime(2025, 3, 1)] == Decimal("1.2")
