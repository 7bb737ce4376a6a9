"""
Reserve Conformance Tests

INVARIANT: At all times,

    virtual_long > 0, virtual_short > 0
    price = truncate18(virtual_short / virtual_long) > 0

Opening a long adds exactly its size to virtual_short (price rises);
opening a short adds exactly its size to virtual_long (price falls).
Closing removes exactly the position's magnitude again.
"""

from hypothesis import given, settings
from hypothesis import strategies as st
from decimal import Decimal

from vamm import SEED_RESERVE, calculate_price, calculate_size

from tests.fakes import build_market, fund, insure


amounts = st.decimals(
    min_value=Decimal("0.000001"),
    max_value=Decimal("5000"),
    places=6,
    allow_nan=False,
    allow_infinity=False,
)

fills = st.lists(st.tuples(amounts, st.booleans()), min_size=1, max_size=8)


class TestReserveDirection:
    """Each open moves exactly one reserve, in the right direction."""

    @given(fills)
    @settings(max_examples=100, deadline=None)
    def test_open_moves_one_reserve_by_size(self, trades):
        chain, token, oracle, market = build_market()
        for i, (amount, is_long) in enumerate(trades):
            trader = f"trader_{i}"
            fund(token, market, trader, amount)
            vl, vs, price = market.virtual_long, market.virtual_short, market.get_price()
            expected_size = calculate_size(amount, price)

            position = market.open_position(trader, amount, is_long=is_long)

            assert position.magnitude == expected_size
            if is_long:
                assert market.virtual_short == vs + expected_size
                assert market.virtual_long == vl
                assert market.get_price() > price
            else:
                assert market.virtual_long == vl + expected_size
                assert market.virtual_short == vs
                assert market.get_price() < price

    @given(fills)
    @settings(max_examples=100, deadline=None)
    def test_price_always_matches_reserves(self, trades):
        chain, token, oracle, market = build_market()
        for i, (amount, is_long) in enumerate(trades):
            fund(token, market, f"trader_{i}", amount)
            market.open_position(f"trader_{i}", amount, is_long=is_long)
            price = market.get_price()
            assert price > 0
            assert price == calculate_price(market.virtual_long, market.virtual_short)
            assert market.virtual_long >= SEED_RESERVE
            assert market.virtual_short >= SEED_RESERVE


class TestCloseReversesOpen:
    """Closing every position in any order restores the seed reserves."""

    @given(fills, st.randoms(use_true_random=False))
    @settings(max_examples=100, deadline=None)
    def test_all_closed_restores_seed(self, trades, rnd):
        chain, token, oracle, market = build_market()
        insure(token, market, Decimal("10000"))
        traders = []
        for i, (amount, is_long) in enumerate(trades):
            trader = f"trader_{i}"
            fund(token, market, trader, amount)
            market.open_position(trader, amount, is_long=is_long)
            traders.append(trader)

        rnd.shuffle(traders)
        for trader in traders:
            position = market.get_position(trader)
            vl, vs = market.virtual_long, market.virtual_short
            market.close_position(trader)
            if position.is_long:
                assert market.virtual_short == vs - position.magnitude
            else:
                assert market.virtual_long == vl - position.magnitude

        assert market.virtual_long == SEED_RESERVE
        assert market.virtual_short == SEED_RESERVE
        assert market.get_price() == Decimal("1")
