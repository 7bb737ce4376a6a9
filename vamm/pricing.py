"""
pricing.py - Pure vAMM calculations

ARCHITECTURE (Pure Function Pattern):
=====================================

1. FROZEN DATACLASSES (explicit inputs and outputs):
   - Position: Immutable snapshot of one trader's exposure
   - PayoutResult: Outcome of closing or settling a position

2. PURE CALCULATION FUNCTIONS (calculate_*):
   - Take all inputs explicitly as parameters
   - No market object, no hidden state
   - The Market class is the only caller that commits their results

Key Formulas:
    price        = virtual_short / virtual_long
    size         = collateral / price
    long open    : virtual_short += size   (buy pressure, price rises)
    short open   : virtual_long  += size   (sell pressure, price falls)
    exit price   = price after the closing position's size is removed
    long pnl     = size * (exit_price - entry_price)
    short pnl    = size * (entry_price - exit_price)
    merged entry = (m1 * e1 + m2 * e2) / (m1 + m2)
    payout       = clamp(collateral + pnl, 0, collateral + surplus)
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from decimal import Decimal, ROUND_DOWN, ROUND_FLOOR
from enum import Enum
from typing import Optional, Tuple

from .core import (
    PRICE_DECIMAL_PLACES, SIZE_DECIMAL_PLACES,
    InvalidParameter, InvariantViolation, PositionDirectionMismatch,
    quantum,
)


ZERO = Decimal("0")


# ============================================================================
# VALUE TYPES
# ============================================================================

class Direction(Enum):
    """Side of a position. The sign of notional size lives here, never in a bare number."""
    LONG = "long"
    SHORT = "short"

    @classmethod
    def from_is_long(cls, is_long: bool) -> Direction:
        if not isinstance(is_long, bool):
            raise InvalidParameter(f"is_long must be a bool, got {is_long!r}")
        return cls.LONG if is_long else cls.SHORT

    @property
    def sign(self) -> int:
        return 1 if self is Direction.LONG else -1


@dataclass(frozen=True, slots=True)
class Position:
    """
    Immutable snapshot of a trader's exposure in one market.

    Each change (merge, close) produces a new instance or removes it;
    nothing mutates a Position in place.
    """
    direction: Direction
    magnitude: Decimal     # Notional size, always > 0
    entry_price: Decimal   # Size-weighted cost basis
    collateral: Decimal    # Collateral locked behind the position

    def __post_init__(self):
        if self.magnitude <= 0:
            raise InvalidParameter(f"Position magnitude must be positive, got {self.magnitude}")
        if self.entry_price <= 0:
            raise InvalidParameter(f"Position entry_price must be positive, got {self.entry_price}")
        if self.collateral < 0:
            raise InvalidParameter(f"Position collateral cannot be negative, got {self.collateral}")

    @property
    def size(self) -> Decimal:
        """Signed notional: positive for long, negative for short."""
        return self.magnitude * self.direction.sign

    @property
    def is_long(self) -> bool:
        return self.direction is Direction.LONG


@dataclass(frozen=True, slots=True)
class PayoutResult:
    """
    Outcome of closing or settling a position.

    shortfall is profit the market could not cover; bad_debt is loss
    beyond the position's collateral. At most one of them is non-zero.
    """
    exit_price: Decimal
    pnl: Decimal
    payout: Decimal
    shortfall: Decimal = ZERO
    bad_debt: Decimal = ZERO

    @property
    def is_insolvent(self) -> bool:
        return self.shortfall > 0 or self.bad_debt > 0


# ============================================================================
# PURE CALCULATION FUNCTIONS
# ============================================================================

def calculate_price(virtual_long: Decimal, virtual_short: Decimal) -> Decimal:
    """
    Price implied by the virtual reserves, truncated to 18 places.

    Raises:
        InvariantViolation: If either reserve is not strictly positive
    """
    if virtual_long <= 0 or virtual_short <= 0:
        raise InvariantViolation(
            f"Reserves must stay positive: long={virtual_long}, short={virtual_short}"
        )
    return (virtual_short / virtual_long).quantize(quantum(PRICE_DECIMAL_PLACES), rounding=ROUND_DOWN)


def calculate_size(collateral: Decimal, price: Decimal) -> Decimal:
    """
    Notional size bought by an amount of collateral at 1x exposure.

    Raises:
        InvalidParameter: If the collateral is too small to buy any size
    """
    if price <= 0:
        raise InvariantViolation(f"Price must be positive, got {price}")
    size = (collateral / price).quantize(quantum(SIZE_DECIMAL_PLACES), rounding=ROUND_DOWN)
    if size <= 0:
        raise InvalidParameter(f"Collateral {collateral} is too small to open a position at {price}")
    return size


def calculate_reserves_after_open(
    virtual_long: Decimal, virtual_short: Decimal, direction: Direction, size: Decimal,
) -> Tuple[Decimal, Decimal]:
    """Add size to the reserve the trade pushes against."""
    if direction is Direction.LONG:
        return virtual_long, virtual_short + size
    return virtual_long + size, virtual_short


def calculate_reserves_after_close(
    virtual_long: Decimal, virtual_short: Decimal, position: Position,
) -> Tuple[Decimal, Decimal]:
    """
    Take a position's magnitude back out of the reserve it was added to.

    Raises:
        InvariantViolation: If the reversal would leave a reserve <= 0
    """
    if position.direction is Direction.LONG:
        new_long, new_short = virtual_long, virtual_short - position.magnitude
    else:
        new_long, new_short = virtual_long - position.magnitude, virtual_short
    if new_long <= 0 or new_short <= 0:
        raise InvariantViolation(
            f"Closing {position.size} would leave reserves long={new_long}, short={new_short}"
        )
    return new_long, new_short


def calculate_exit_price(
    virtual_long: Decimal, virtual_short: Decimal, position: Position,
) -> Decimal:
    """
    Execution price of closing a position: the price once its size is out.

    With no trade in between, this is exactly the entry price, so an
    open followed by a close is flat.
    """
    return calculate_price(*calculate_reserves_after_close(virtual_long, virtual_short, position))


def calculate_merged_position(
    existing: Optional[Position],
    direction: Direction,
    size: Decimal,
    price: Decimal,
    collateral: Decimal,
) -> Position:
    """
    Fold a new fill into an existing position.

    Same-direction fills accumulate magnitude and collateral; the entry
    price becomes the size-weighted average so the cost basis survives.

    Raises:
        PositionDirectionMismatch: If existing points the other way
    """
    if existing is None:
        return Position(direction=direction, magnitude=size, entry_price=price, collateral=collateral)
    if existing.direction is not direction:
        raise PositionDirectionMismatch(
            f"Cannot add a {direction.value} fill to an open {existing.direction.value} position"
        )
    magnitude = existing.magnitude + size
    entry = ((existing.magnitude * existing.entry_price + size * price) / magnitude).quantize(
        quantum(PRICE_DECIMAL_PLACES)
    )
    return replace(existing, magnitude=magnitude, entry_price=entry,
                   collateral=existing.collateral + collateral)


def calculate_pnl(position: Position, exit_price: Decimal) -> Decimal:
    """
    Signed profit or loss of a position against an exit price.

    Floored to 18 places so rounding never credits the trader.
    """
    pnl = position.magnitude * (exit_price - position.entry_price) * position.direction.sign
    return pnl.quantize(quantum(PRICE_DECIMAL_PLACES), rounding=ROUND_FLOOR)


def calculate_payout(
    collateral: Decimal,
    pnl: Decimal,
    surplus: Decimal,
    exit_price: Decimal,
    decimal_places: int,
) -> PayoutResult:
    """
    Turn collateral and signed PnL into the amount credited back.

    Args:
        collateral: Collateral locked behind the position
        pnl: Signed PnL from calculate_pnl()
        surplus: Funds held beyond all liabilities (custody - liabilities)
        exit_price: Price the position was valued at
        decimal_places: Precision of the collateral token

    The payout never goes below zero and never exceeds collateral plus
    surplus; whatever is cut off is reported as bad_debt or shortfall.
    """
    if surplus < 0:
        raise InvariantViolation(f"Liabilities exceed custody by {-surplus}")
    step = quantum(decimal_places)
    gross = collateral + pnl
    if gross < 0:
        return PayoutResult(exit_price=exit_price, pnl=pnl, payout=ZERO, bad_debt=-gross)
    cap = collateral + surplus
    if gross > cap:
        payout = cap.quantize(step, rounding=ROUND_FLOOR)
        return PayoutResult(exit_price=exit_price, pnl=pnl, payout=payout, shortfall=gross - cap)
    return PayoutResult(exit_price=exit_price, pnl=pnl, payout=gross.quantize(step, rounding=ROUND_FLOOR))


def calculate_price_impact(
    virtual_long: Decimal, virtual_short: Decimal, collateral: Decimal, direction: Direction,
) -> Decimal:
    """Relative price move a trade of this collateral would cause."""
    before = calculate_price(virtual_long, virtual_short)
    size = calculate_size(collateral, before)
    after = calculate_price(*calculate_reserves_after_open(virtual_long, virtual_short, direction, size))
    return (after - before) / before


def check_price_bounds(
    price: Decimal, min_price: Optional[Decimal], max_price: Optional[Decimal],
) -> Optional[str]:
    """Return a reason string if price lies outside the bounds, else None."""
    if min_price is not None and price < min_price:
        return f"price {price} below minimum {min_price}"
    if max_price is not None and price > max_price:
        return f"price {price} above maximum {max_price}"
    return None
