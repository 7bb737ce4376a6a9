"""
factory.py - Market creation and registry

MarketFactory validates creation parameters, instantiates Market objects
seeded with symmetric reserves, and keeps an append-only registry of every
market it created. Creation is all-or-nothing: a rejected call leaves the
registry and the event log exactly as they were.
"""

from __future__ import annotations
from datetime import datetime
from typing import Dict, List, Optional

from .core import Clock, InvalidParameter, MarketNotFound, to_positive_decimal
from .events import MarketCreated
from .market import Market, MarketTerms
from .oracle import PriceOracle
from .token import CollateralToken


class MarketFactory:
    """
    Creates markets and remembers them in insertion order.

    Market ids double as the markets' custody accounts with the collateral
    token: vamm:{factory}:{sequence}. Creation claims the id as a fresh
    token account, so a second factory of the same name on the same token
    is refused instead of sharing custody.
    """

    def __init__(
        self,
        clock: Clock,
        name: str = "factory",
        owner: str = "factory_owner",
        verbose: bool = False,
        strict_solvency: bool = False,
    ):
        """
        Args:
            clock: Time source shared with every market created here
            name: Factory identifier, part of every market id
            owner: Default owner of created markets
            verbose: Passed to every market (default: False)
            strict_solvency: Passed to every market (default: False)
        """
        self.clock = clock
        self.name = name
        self.owner = owner
        self.verbose = verbose
        self.strict_solvency = strict_solvency
        self.events: List[MarketCreated] = []
        self._registry: List[str] = []
        self._markets: Dict[str, Market] = {}

    @property
    def market_count(self) -> int:
        return len(self._registry)

    def create_market(
        self,
        oracle: PriceOracle,
        collateral_token: CollateralToken,
        initial_price,
        expiry: datetime,
        symbol: Optional[str] = None,
        owner: Optional[str] = None,
    ) -> str:
        """
        Validate parameters and create a new market.

        Args:
            oracle: Settlement price source
            collateral_token: Token used for deposits and payouts
            initial_price: Reference price, must be > 0
            expiry: Time from which trading stops and settlement opens;
                must be strictly after the clock's current time
            symbol: Optional market symbol (e.g., "BTC")
            owner: Market owner (default: the factory owner)

        Returns:
            The new market's id

        Raises:
            InvalidParameter: If any parameter is rejected,
                or the market address is already held on the token
        """
        if oracle is None or not isinstance(oracle, PriceOracle):
            raise InvalidParameter(f"oracle must provide get_price(), got {oracle!r}")
        if collateral_token is None or not isinstance(collateral_token, CollateralToken):
            raise InvalidParameter(f"collateral_token is not a token, got {collateral_token!r}")
        price = to_positive_decimal(initial_price, "initial_price")
        if not isinstance(expiry, datetime):
            raise InvalidParameter(f"expiry must be a datetime, got {expiry!r}")
        now = self.clock.current_time
        if expiry <= now:
            raise InvalidParameter(f"expiry {expiry} must be after current time {now}")
        if symbol is not None and not symbol.strip():
            raise InvalidParameter("symbol cannot be blank")
        market_owner = owner or self.owner

        market_id = f"vamm:{self.name}:{len(self._registry):06d}"
        if not collateral_token.open_account(market_id):
            raise InvalidParameter(
                f"market address {market_id} is already in use; give the factory a distinct name"
            )
        terms = MarketTerms(
            owner=market_owner,
            oracle=oracle,
            collateral_token=collateral_token,
            initial_price=price,
            expiry=expiry,
            symbol=symbol,
        )
        market = Market(market_id, terms, self.clock,
                        verbose=self.verbose, strict_solvency=self.strict_solvency)

        self._markets[market_id] = market
        self._registry.append(market_id)
        self.events.append(MarketCreated(
            market=market_id, oracle=oracle, collateral=collateral_token.symbol,
            initial_price=price, expiry=expiry, symbol=symbol, owner=market_owner,
            timestamp=now,
        ))
        if self.verbose:
            print(f"🏭 CREATED {market_id} ({symbol or 'unnamed'}) expiry={expiry}")
        return market_id

    def get_all_markets(self) -> List[str]:
        """All market ids in creation order. Returns a fresh list on every call."""
        return list(self._registry)

    def get_market(self, market_id: str) -> Market:
        if market_id not in self._markets:
            raise MarketNotFound(f"Unknown market {market_id}")
        return self._markets[market_id]

    def __iter__(self):
        return iter(self.get_all_markets())

    def __len__(self):
        return self.market_count
