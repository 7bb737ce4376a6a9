"""
market.py - Virtual AMM Market

The Market is the only object that mutates reserve, balance and position
state. Every operation follows the same shape:

    1. Validate inputs and state (raise before touching anything)
    2. Compute the new state with the pure functions in pricing.py
    3. Commit the new state
    4. Interact with the collateral token, if the operation needs to

Deposits are the one exception to step order: tokens must arrive before
they can be credited, so the credit happens after the transfer. The
non-reentrant guard keeps a token callback from observing or using the
half-finished operation.

=== THE VIRTUAL RESERVE MODEL ===

    price = virtual_short / virtual_long

    open long  (size s): virtual_short += s    price rises
    open short (size s): virtual_long  += s    price falls
    close               : subtract the position's magnitude back out and
                          take PnL at the price that leaves behind
    settle              : reserves untouched, PnL against the oracle price

Both reserves start at SEED_RESERVE and never drop below zero.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from functools import wraps
from typing import Any, Dict, List, Optional

from .core import (
    Clock, SEED_RESERVE, FEE_RATE,
    InvalidParameter, InsufficientBalance, NoPosition, TradingClosed,
    SettlementNotReady, MarketPaused, Unauthorized, SlippageExceeded,
    InsolvencyError, ReentrancyError, TransferFailed, OracleError,
    InvariantViolation,
    to_decimal, to_positive_decimal, quantum,
)
from .events import (
    CollateralDeposited, CollateralWithdrawn, InsuranceFunded,
    PositionOpened, PositionClosed, PositionSettled, InsolvencyRecorded,
    MarketPausedEvent, MarketUnpausedEvent,
)
from .oracle import PriceOracle
from .pricing import (
    Direction, Position, PayoutResult, ZERO,
    calculate_price, calculate_size, calculate_pnl, calculate_payout,
    calculate_reserves_after_open, calculate_reserves_after_close, calculate_exit_price,
    calculate_merged_position, calculate_price_impact, check_price_bounds,
)
from .token import CollateralToken


@dataclass(frozen=True, slots=True)
class MarketTerms:
    """
    Immutable creation-time parameters of a market.

    initial_price is recorded for reference; pricing always starts from
    the symmetric seed reserves.
    """
    owner: str
    oracle: PriceOracle
    collateral_token: CollateralToken
    initial_price: Decimal
    expiry: datetime
    symbol: Optional[str] = None


def non_reentrant(method):
    """Reject calls that arrive while another guarded call is running on the same market."""
    @wraps(method)
    def wrapper(self, *args, **kwargs):
        if self._entered:
            raise ReentrancyError(f"{method.__name__} re-entered market {self.address}")
        self._entered = True
        try:
            return method(self, *args, **kwargs)
        finally:
            self._entered = False
    return wrapper


class Market:
    """
    One synthetic-asset market: reserves, balances, positions and settlement.

    Callers identify themselves explicitly (`caller`); the market's own
    `address` is its custody account with the collateral token.

    Example:
        market.deposit_collateral("alice", 1000)
        market.open_position("alice", 500, is_long=True)
        result = market.close_position("alice")
        market.withdraw("alice", market.get_balance("alice"))
    """

    FEE_RATE = FEE_RATE

    def __init__(
        self,
        address: str,
        terms: MarketTerms,
        clock: Clock,
        verbose: bool = False,
        strict_solvency: bool = False,
    ):
        """
        Create a market seeded with symmetric reserves.

        Args:
            address: Market identity and custody account
            terms: Immutable market parameters
            clock: Source of the time compared against expiry
            verbose: Print state transitions (default: False)
            strict_solvency: Raise InsolvencyError instead of clamping a
                payout the market cannot cover (default: False)
        """
        self.address = address
        self.terms = terms
        self.clock = clock
        self.verbose = verbose
        self.strict_solvency = strict_solvency

        self.virtual_long: Decimal = SEED_RESERVE
        self.virtual_short: Decimal = SEED_RESERVE
        self.balances: Dict[str, Decimal] = {}
        self.positions: Dict[str, Position] = {}
        self.custody: Decimal = ZERO
        self.paused = False
        self.events: List[Any] = []
        self._entered = False

    # ========================================================================
    # READ-ONLY ACCESS
    # ========================================================================

    @property
    def owner(self) -> str:
        return self.terms.owner

    @property
    def oracle(self) -> PriceOracle:
        return self.terms.oracle

    @property
    def collateral_token(self) -> CollateralToken:
        return self.terms.collateral_token

    @property
    def expiry(self) -> datetime:
        return self.terms.expiry

    @property
    def is_expired(self) -> bool:
        return self.clock.current_time >= self.terms.expiry

    def get_price(self) -> Decimal:
        """Current virtual price. Raises InvariantViolation if a reserve is not positive."""
        return calculate_price(self.virtual_long, self.virtual_short)

    def get_balance(self, trader: str) -> Decimal:
        return self.balances.get(trader, ZERO)

    def get_position(self, trader: str) -> Optional[Position]:
        return self.positions.get(trader)

    def get_unrealized_pnl(self, trader: str) -> Decimal:
        """PnL a close would realize right now (0 if no position)."""
        position = self.positions.get(trader)
        if position is None:
            return ZERO
        return calculate_pnl(position, calculate_exit_price(self.virtual_long, self.virtual_short, position))

    def get_price_impact(self, collateral_amount, is_long: bool) -> Decimal:
        """Relative price move an open of this size would cause, without trading."""
        amount = to_positive_decimal(collateral_amount, "collateral_amount")
        return calculate_price_impact(
            self.virtual_long, self.virtual_short, amount, Direction.from_is_long(is_long)
        )

    def total_liabilities(self) -> Decimal:
        """Everything the market owes traders: free balances plus locked collateral."""
        return (sum(self.balances.values(), ZERO)
                + sum((p.collateral for p in self.positions.values()), ZERO))

    # ========================================================================
    # COLLATERAL
    # ========================================================================

    @non_reentrant
    def deposit_collateral(self, caller: str, amount) -> Decimal:
        """
        Pull collateral from caller and credit their free balance.

        The caller must have approved the market as spender first.

        Returns:
            The caller's new free balance

        Raises:
            InvalidParameter: amount not positive or too precise for the token
            MarketPaused: market is paused
            InvariantViolation: market already owes more than it holds
            TransferFailed: the token refused the transfer
        """
        value = self._token_amount(amount, "amount")
        self._require_not_paused()
        self._check_solvency()

        if not self.collateral_token.transfer_from(self.address, caller, self.address, value):
            raise TransferFailed(f"transfer_from {caller} of {value} failed")

        self.balances[caller] = self.get_balance(caller) + value
        self.custody += value
        self._emit(CollateralDeposited(caller, value, self.clock.current_time))
        if self.verbose:
            print(f"💰 DEPOSIT {self.address}: {caller} +{value}")
        return self.balances[caller]

    @non_reentrant
    def withdraw(self, caller: str, amount) -> Decimal:
        """
        Pay free balance back out to caller.

        Balance and custody are debited before the token is called; a failed
        transfer restores both.

        Returns:
            The caller's remaining free balance
        """
        value = self._token_amount(amount, "amount")
        balance = self.get_balance(caller)
        if balance < value:
            raise InsufficientBalance(f"{caller} has {balance}, cannot withdraw {value}")

        self.balances[caller] = balance - value
        self.custody -= value
        try:
            ok = self.collateral_token.transfer(self.address, caller, value)
        except Exception:
            self.balances[caller] = balance
            self.custody += value
            raise
        if not ok:
            self.balances[caller] = balance
            self.custody += value
            raise TransferFailed(f"transfer of {value} to {caller} failed")

        self._emit(CollateralWithdrawn(caller, value, self.clock.current_time))
        if self.verbose:
            print(f"🏧 WITHDRAW {self.address}: {caller} -{value}")
        return self.balances[caller]

    @non_reentrant
    def fund_insurance(self, caller: str, amount) -> Decimal:
        """
        Add collateral that backs trader profits without creating a liability.

        Returns:
            The market's surplus after funding
        """
        value = self._token_amount(amount, "amount")
        if not self.collateral_token.transfer_from(self.address, caller, self.address, value):
            raise TransferFailed(f"transfer_from {caller} of {value} failed")
        self.custody += value
        self._emit(InsuranceFunded(caller, value, self.clock.current_time))
        return self.surplus()

    def surplus(self) -> Decimal:
        return self.custody - self.total_liabilities()

    # ========================================================================
    # TRADING
    # ========================================================================

    @non_reentrant
    def open_position(
        self,
        caller: str,
        collateral_amount,
        is_long: bool,
        min_price=None,
        max_price=None,
    ) -> Position:
        """
        Lock collateral into a new or existing position at the current price.

        Exposure is 1x: size = collateral / price. A second open in the same
        direction merges with a size-weighted entry price.

        Args:
            caller: Trader opening the position
            collateral_amount: Free balance to lock
            is_long: True for long, False for short
            min_price / max_price: Optional bounds on the execution price

        Returns:
            The trader's position after the fill
        """
        amount = self._token_amount(collateral_amount, "collateral_amount")
        direction = Direction.from_is_long(is_long)
        min_bound, max_bound = self._price_bounds(min_price, max_price)
        self._require_trading_open()

        balance = self.get_balance(caller)
        if balance < amount:
            raise InsufficientBalance(f"{caller} has {balance}, cannot lock {amount}")

        price = self.get_price()
        self._require_within(price, min_bound, max_bound)
        size = calculate_size(amount, price)
        position = calculate_merged_position(self.positions.get(caller), direction, size, price, amount)
        new_long, new_short = calculate_reserves_after_open(
            self.virtual_long, self.virtual_short, direction, size
        )

        self.balances[caller] = balance - amount
        self.positions[caller] = position
        self.virtual_long, self.virtual_short = new_long, new_short

        self._emit(PositionOpened(caller, direction is Direction.LONG, amount,
                                  size * direction.sign, price, self.clock.current_time))
        if self.verbose:
            print(f"📈 OPEN {self.address}: {caller} {direction.value} {size} @ {price} → {self.get_price()}")
        return position

    @non_reentrant
    def close_position(self, caller: str, min_price=None, max_price=None) -> PayoutResult:
        """
        Close the caller's position against the virtual reserves.

        The position's magnitude is taken back out of the reserves and PnL is
        taken at the price that leaves behind, so an open followed straight
        away by a close returns the collateral unchanged. The payout
        (collateral + PnL, clamped) is credited to free balance.

        After expiry positions can only be settled; see settle().

        Args:
            caller: Trader closing the position
            min_price / max_price: Optional bounds on the execution price
        """
        min_bound, max_bound = self._price_bounds(min_price, max_price)
        self._require_trading_open()
        position = self._require_position(caller)

        new_long, new_short = calculate_reserves_after_close(
            self.virtual_long, self.virtual_short, position
        )
        price = calculate_price(new_long, new_short)
        self._require_within(price, min_bound, max_bound)
        pnl = calculate_pnl(position, price)
        result = self._payout_for(caller, position, pnl, price)

        self.virtual_long, self.virtual_short = new_long, new_short
        self._release(caller, result)

        self._emit(PositionClosed(caller, position.size, price, result.pnl, result.payout,
                                  self.clock.current_time))
        if self.verbose:
            print(f"📉 CLOSE {self.address}: {caller} {position.size} @ {price} pnl={result.pnl} payout={result.payout}")
        return result

    @non_reentrant
    def settle(self, caller: str) -> PayoutResult:
        """
        Settle the caller's position against the oracle price after expiry.

        Reserves are left untouched; the market is winding down.
        """
        if not self.is_expired:
            raise SettlementNotReady(
                f"{self.address} expires at {self.terms.expiry}, now {self.clock.current_time}"
            )
        position = self._require_position(caller)
        price = self._read_oracle()
        pnl = calculate_pnl(position, price)
        result = self._payout_for(caller, position, pnl, price)

        self._release(caller, result)

        self._emit(PositionSettled(caller, position.size, price, result.pnl, result.payout,
                                   self.clock.current_time))
        if self.verbose:
            print(f"🏁 SETTLE {self.address}: {caller} {position.size} @ {price} pnl={result.pnl} payout={result.payout}")
        return result

    # ========================================================================
    # ADMINISTRATION
    # ========================================================================

    def pause(self, caller: str) -> None:
        """Stop deposits, opens and closes. Owner only."""
        self._require_owner(caller)
        self.paused = True
        self._emit(MarketPausedEvent(caller, self.clock.current_time))

    def unpause(self, caller: str) -> None:
        """Resume trading. Owner only."""
        self._require_owner(caller)
        self.paused = False
        self._emit(MarketUnpausedEvent(caller, self.clock.current_time))

    # ========================================================================
    # INTERNALS
    # ========================================================================

    def _payout_for(self, caller: str, position: Position, pnl: Decimal, price: Decimal) -> PayoutResult:
        result = calculate_payout(
            position.collateral, pnl, self.surplus(), price, self.collateral_token.decimals
        )
        if self.strict_solvency and result.shortfall > 0:
            raise InsolvencyError(
                f"{caller} is owed {position.collateral + pnl}, market can cover {result.payout}"
            )
        return result

    def _release(self, caller: str, result: PayoutResult) -> None:
        """Delete the position and credit its payout; records any clamp."""
        del self.positions[caller]
        self.balances[caller] = self.get_balance(caller) + result.payout
        if result.is_insolvent:
            self._emit(InsolvencyRecorded(caller, result.shortfall, result.bad_debt,
                                          self.clock.current_time))
            if self.verbose:
                print(f"⚠️  INSOLVENCY {self.address}: {caller} shortfall={result.shortfall} bad_debt={result.bad_debt}")

    def _read_oracle(self) -> Decimal:
        try:
            value = to_decimal(self.oracle.get_price(), "oracle price")
        except InvalidParameter as e:
            raise OracleError(str(e)) from None
        if value <= 0:
            raise OracleError(f"Oracle price must be positive, got {value}")
        return value

    def _token_amount(self, amount, name: str) -> Decimal:
        value = to_positive_decimal(amount, name)
        places = self.collateral_token.decimals
        if value != value.quantize(quantum(places)):
            raise InvalidParameter(f"{name} {value} has more than {places} decimal places")
        return value

    def _price_bounds(self, min_price, max_price):
        min_bound = None if min_price is None else to_decimal(min_price, "min_price")
        max_bound = None if max_price is None else to_decimal(max_price, "max_price")
        if min_bound is not None and max_bound is not None and min_bound > max_bound:
            raise InvalidParameter(f"min_price {min_bound} exceeds max_price {max_bound}")
        return min_bound, max_bound

    def _require_within(self, price: Decimal, min_bound, max_bound) -> None:
        reason = check_price_bounds(price, min_bound, max_bound)
        if reason:
            raise SlippageExceeded(reason)

    def _require_position(self, caller: str) -> Position:
        position = self.positions.get(caller)
        if position is None:
            raise NoPosition(f"{caller} has no open position in {self.address}")
        return position

    def _require_not_paused(self) -> None:
        if self.paused:
            raise MarketPaused(f"{self.address} is paused")

    def _require_trading_open(self) -> None:
        self._require_not_paused()
        if self.is_expired:
            raise TradingClosed(f"{self.address} expired at {self.terms.expiry}; use settle()")

    def _require_owner(self, caller: str) -> None:
        if caller != self.terms.owner:
            raise Unauthorized(f"{caller} is not the owner of {self.address}")

    def _check_solvency(self) -> None:
        if self.total_liabilities() > self.custody:
            raise InvariantViolation(
                f"{self.address} owes {self.total_liabilities()} but holds {self.custody}"
            )

    def _emit(self, event: Any) -> None:
        self.events.append(event)

    def __repr__(self):
        return (f"Market({self.address}, price={self.get_price()}, "
                f"{len(self.positions)} positions, custody={self.custody})")
