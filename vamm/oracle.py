"""
oracle.py - Price oracle capability for settlement

Markets consult the oracle only at or after expiry. The engine depends on
nothing but the PriceOracle protocol; the two classes here are reference
implementations for simulations and tests.

Classes:
- PriceOracle: Protocol defining the settlement price interface
- StaticPriceOracle: Fixed price, updated explicitly
- TimeSeriesPriceOracle: Price path read at the clock's current time
"""

from bisect import bisect_right
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional, Protocol, Tuple, runtime_checkable

from .core import Clock, OracleError, to_positive_decimal


@runtime_checkable
class PriceOracle(Protocol):
    """
    Read-only price source for the underlying asset.

    get_price() returns the current price as a Decimal. There is no write
    surface; how the price is produced is the implementation's business.
    """

    def get_price(self) -> Decimal:
        """Return the current price of the underlying."""
        ...


class StaticPriceOracle:
    """
    Oracle that reports a single stored price.

    The price only changes through update_price(), which makes settlement
    outcomes fully controlled in tests.
    """

    def __init__(self, price):
        self.price = to_positive_decimal(price, "price")

    def get_price(self) -> Decimal:
        return self.price

    def update_price(self, price) -> None:
        """Replace the reported price."""
        self.price = to_positive_decimal(price, "price")

    def move_price(self, basis_points: int) -> Decimal:
        """
        Shift the price by a number of basis points and return the new price.

        move_price(500) raises the price by 5%; negative values lower it.
        """
        factor = Decimal(10_000 + basis_points) / Decimal(10_000)
        self.update_price(self.price * factor)
        return self.price

    def __repr__(self):
        return f"StaticPriceOracle({self.price})"


class TimeSeriesPriceOracle:
    """
    Oracle backed by a historical price path.

    Reports the most recent observation at or before the clock's current
    time. Asking for a price before the first observation is an error.
    """

    def __init__(self, clock: Clock, path: Optional[List[Tuple[datetime, Decimal]]] = None):
        """
        Args:
            clock: Source of the time at which prices are read
            path: Optional list of (timestamp, price) observations

        Example:
            oracle = TimeSeriesPriceOracle(ledger, [(t0, 100), (t1, 102)])
        """
        self.clock = clock
        self.history: List[Tuple[datetime, Decimal]] = []
        for timestamp, price in path or []:
            self.add_price(timestamp, price)

    def add_price(self, timestamp: datetime, price) -> None:
        """Record a price observation, keeping the history sorted."""
        self.history.append((timestamp, to_positive_decimal(price, "price")))
        self.history.sort(key=lambda x: x[0])

    def get_price(self) -> Decimal:
        """
        Return the latest price at or before clock.current_time.

        Raises:
            OracleError: If no observation exists yet
        """
        price = self.price_at(self.clock.current_time)
        if price is None:
            raise OracleError(f"No price observed at or before {self.clock.current_time}")
        return price

    def price_at(self, timestamp: datetime) -> Optional[Decimal]:
        """Binary search for the last observation with ts <= timestamp."""
        timestamps = [ts for ts, _ in self.history]
        idx = bisect_right(timestamps, timestamp)
        if idx == 0:
            return None
        return self.history[idx - 1][1]

    def observations(self) -> Dict[datetime, Decimal]:
        return dict(self.history)

    def __repr__(self):
        return f"TimeSeriesPriceOracle({len(self.history)} observations)"
