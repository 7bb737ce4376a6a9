"""
Solvency Conformance Tests

INVARIANT: After every operation, successful or not,

    custody == collateral_token.balance_of(market.address)
    Σ balances + Σ position collateral <= custody

and any operation that raises leaves reserves, balances, positions,
custody and the event log exactly as they were.

These tests drive a market with arbitrary operation sequences.

An open immediately followed by a close returns exactly the collateral,
whatever other positions are outstanding.
"""

from hypothesis import given, settings, note
from hypothesis import strategies as st
from decimal import Decimal

from vamm import VammError, InsufficientBalance

from tests.fakes import build_market, fund, snapshot


TRADERS = ["alice", "bob", "carol"]

amounts = st.decimals(
    min_value=Decimal("0.000001"),
    max_value=Decimal("2000"),
    places=6,
    allow_nan=False,
    allow_infinity=False,
)

operations = st.lists(
    st.tuples(
        st.sampled_from(["deposit", "withdraw", "open", "close", "insure"]),
        st.sampled_from(TRADERS),
        amounts,
        st.booleans(),
    ),
    min_size=1,
    max_size=30,
)


def apply(token, market, op, trader, amount, is_long):
    if op == "deposit":
        token.mint(trader, amount)
        token.approve(trader, market.address, amount)
        market.deposit_collateral(trader, amount)
    elif op == "withdraw":
        market.withdraw(trader, amount)
    elif op == "open":
        market.open_position(trader, amount, is_long=is_long)
    elif op == "close":
        market.close_position(trader)
    else:
        token.mint("insurer", amount)
        token.approve("insurer", market.address, amount)
        market.fund_insurance("insurer", amount)


def assert_solvent(token, market):
    assert market.custody == token.balance_of(market.address)
    assert market.total_liabilities() <= market.custody
    assert all(balance >= 0 for balance in market.balances.values())


class TestSolvencyUnderArbitraryOperations:

    @given(operations)
    @settings(max_examples=150, deadline=None)
    def test_custody_covers_liabilities(self, ops):
        chain, token, oracle, market = build_market()
        for op in ops:
            note(f"{op}")
            before = snapshot(market)
            try:
                apply(token, market, *op)
            except VammError:
                assert snapshot(market) == before
            assert_solvent(token, market)

    @given(operations)
    @settings(max_examples=100, deadline=None)
    def test_everyone_can_exit_after_settlement(self, ops):
        """After settling every position, each trader can withdraw their full balance."""
        chain, token, oracle, market = build_market()
        for op in ops:
            try:
                apply(token, market, *op)
            except VammError:
                pass

        chain.advance_time(market.expiry)
        for trader in list(market.positions):
            market.settle(trader)
        assert market.positions == {}

        for trader in TRADERS:
            balance = market.get_balance(trader)
            if balance > 0:
                market.withdraw(trader, balance)
        assert market.total_liabilities() == Decimal("0")
        assert market.custody == token.balance_of(market.address)
        assert market.custody >= 0


class TestImmediateRoundTrip:

    @given(
        st.lists(st.tuples(st.sampled_from(["bob", "carol"]), amounts, st.booleans()), max_size=8),
        amounts,
        st.booleans(),
    )
    @settings(max_examples=150, deadline=None)
    def test_open_then_close_returns_collateral(self, prior, amount, is_long):
        """Whatever others did before, opening and closing at once is flat."""
        chain, token, oracle, market = build_market(strict_solvency=True)
        for trader, size, side in prior:
            fund(token, market, trader, size)
            market.open_position(trader, size, is_long=side)
        fund(token, market, "alice", amount)
        reserves = (market.virtual_long, market.virtual_short)

        market.open_position("alice", amount, is_long=is_long)
        result = market.close_position("alice")

        assert result.pnl == Decimal("0")
        assert result.payout == amount
        assert not result.is_insolvent
        assert (market.virtual_long, market.virtual_short) == reserves
        assert market.get_balance("alice") == amount
        assert_solvent(token, market)


class TestWithdrawBounds:

    @given(amounts, amounts)
    @settings(max_examples=100, deadline=None)
    def test_withdraw_over_balance_always_fails(self, deposit, excess):
        chain, token, oracle, market = build_market()
        fund(token, market, "alice", deposit)
        before = snapshot(market)
        try:
            market.withdraw("alice", deposit + excess)
        except InsufficientBalance:
            pass
        else:
            raise AssertionError("withdrawal above balance succeeded")
        assert snapshot(market) == before
        assert token.balance_of("alice") == Decimal("0")

    @given(amounts, st.booleans())
    @settings(max_examples=100, deadline=None)
    def test_locked_collateral_cannot_be_withdrawn(self, amount, is_long):
        chain, token, oracle, market = build_market()
        fund(token, market, "alice", amount)
        market.open_position("alice", amount, is_long=is_long)
        assert market.get_balance("alice") == Decimal("0")
        before = snapshot(market)
        try:
            market.withdraw("alice", amount)
        except InsufficientBalance:
            pass
        else:
            raise AssertionError("locked collateral was withdrawn")
        assert snapshot(market) == before
