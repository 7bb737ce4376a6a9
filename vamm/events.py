"""
events.py - Immutable event records

Markets and the factory append one of these to their `events` list for
every state transition. Together with the ledger's transaction log they
form the audit trail; nothing reads them back to make decisions.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional


@dataclass(frozen=True, slots=True)
class MarketCreated:
    market: str
    oracle: Any
    collateral: str
    initial_price: Decimal
    expiry: datetime
    symbol: Optional[str]
    owner: str
    timestamp: datetime


@dataclass(frozen=True, slots=True)
class CollateralDeposited:
    trader: str
    amount: Decimal
    timestamp: datetime


@dataclass(frozen=True, slots=True)
class CollateralWithdrawn:
    trader: str
    amount: Decimal
    timestamp: datetime


@dataclass(frozen=True, slots=True)
class InsuranceFunded:
    funder: str
    amount: Decimal
    timestamp: datetime


@dataclass(frozen=True, slots=True)
class PositionOpened:
    trader: str
    is_long: bool
    collateral: Decimal
    size: Decimal           # Signed size of this fill
    price: Decimal
    timestamp: datetime


@dataclass(frozen=True, slots=True)
class PositionClosed:
    trader: str
    size: Decimal
    exit_price: Decimal
    pnl: Decimal
    payout: Decimal
    timestamp: datetime


@dataclass(frozen=True, slots=True)
class PositionSettled:
    trader: str
    size: Decimal
    oracle_price: Decimal
    pnl: Decimal
    payout: Decimal
    timestamp: datetime


@dataclass(frozen=True, slots=True)
class InsolvencyRecorded:
    """A payout was clamped: shortfall is uncovered profit, bad_debt is loss beyond collateral."""
    trader: str
    shortfall: Decimal
    bad_debt: Decimal
    timestamp: datetime


@dataclass(frozen=True, slots=True)
class MarketPausedEvent:
    by: str
    timestamp: datetime


@dataclass(frozen=True, slots=True)
class MarketUnpausedEvent:
    by: str
    timestamp: datetime
