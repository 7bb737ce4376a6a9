"""
vamm - Virtual AMM Market Engine

Synthetic long/short exposure priced from two virtual reserve counters,
with settlement against an external oracle at expiry.

Usage:
    from datetime import datetime
    from vamm import Ledger, LedgerToken, MarketFactory, StaticPriceOracle, cash

    chain = Ledger("chain", datetime(2025, 1, 1), verbose=False)
    chain.register_unit(cash("USDC", "USD Coin"))
    usdc = LedgerToken(chain, "USDC")
    usdc.mint("alice", 1000)

    factory = MarketFactory(chain)
    market_id = factory.create_market(
        StaticPriceOracle(1), usdc, initial_price=1, expiry=datetime(2025, 6, 1)
    )
    market = factory.get_market(market_id)

    usdc.approve("alice", market.address, 1000)
    market.deposit_collateral("alice", 1000)
    market.open_position("alice", 500, is_long=True)
    market.close_position("alice")
"""

# Core types
from .core import (
    Clock,
    Move,
    Transaction,
    Unit,
    ExecuteResult,
    cash,
    to_decimal,
    SYSTEM_WALLET,
    SEED_RESERVE,
    PRICE_DECIMAL_PLACES,
    SIZE_DECIMAL_PLACES,
    FEE_RATE,
    DEFAULT_TOKEN_DECIMALS,
    # Exceptions
    VammError,
    ValidationError,
    InvalidParameter,
    StateError,
    InsufficientBalance,
    NoPosition,
    PositionDirectionMismatch,
    TradingClosed,
    SettlementNotReady,
    MarketPaused,
    Unauthorized,
    SlippageExceeded,
    MarketNotFound,
    SolvencyError,
    InsolvencyError,
    ReentrancyError,
    TransferFailed,
    OracleError,
    InvariantViolation,
    LedgerError,
    UnitNotRegistered,
    WalletNotRegistered,
)

# Ledger and token
from .ledger import Ledger
from .token import CollateralToken, LedgerToken

# Oracles
from .oracle import PriceOracle, StaticPriceOracle, TimeSeriesPriceOracle

# Pure pricing functions
from .pricing import (
    Direction,
    Position,
    PayoutResult,
    calculate_price,
    calculate_size,
    calculate_pnl,
    calculate_payout,
    calculate_reserves_after_open,
    calculate_reserves_after_close,
    calculate_exit_price,
    calculate_merged_position,
    calculate_price_impact,
)

# Events
from .events import (
    MarketCreated,
    CollateralDeposited,
    CollateralWithdrawn,
    InsuranceFunded,
    PositionOpened,
    PositionClosed,
    PositionSettled,
    InsolvencyRecorded,
    MarketPausedEvent,
    MarketUnpausedEvent,
)

# Engine
from .market import Market, MarketTerms
from .factory import MarketFactory

__all__ = [
    # Core
    'Clock', 'Move', 'Transaction', 'Unit', 'ExecuteResult', 'cash', 'to_decimal',
    'SYSTEM_WALLET', 'SEED_RESERVE', 'PRICE_DECIMAL_PLACES', 'SIZE_DECIMAL_PLACES',
    'FEE_RATE', 'DEFAULT_TOKEN_DECIMALS',
    # Exceptions
    'VammError', 'ValidationError', 'InvalidParameter', 'StateError',
    'InsufficientBalance', 'NoPosition', 'PositionDirectionMismatch',
    'TradingClosed', 'SettlementNotReady', 'MarketPaused', 'Unauthorized',
    'SlippageExceeded', 'MarketNotFound', 'SolvencyError', 'InsolvencyError',
    'ReentrancyError', 'TransferFailed', 'OracleError', 'InvariantViolation',
    'LedgerError', 'UnitNotRegistered', 'WalletNotRegistered',
    # Ledger and token
    'Ledger', 'CollateralToken', 'LedgerToken',
    # Oracles
    'PriceOracle', 'StaticPriceOracle', 'TimeSeriesPriceOracle',
    # Pricing
    'Direction', 'Position', 'PayoutResult',
    'calculate_price', 'calculate_size', 'calculate_pnl', 'calculate_payout',
    'calculate_reserves_after_open', 'calculate_reserves_after_close',
    'calculate_exit_price', 'calculate_merged_position', 'calculate_price_impact',
    # Events
    'MarketCreated', 'CollateralDeposited', 'CollateralWithdrawn', 'InsuranceFunded',
    'PositionOpened', 'PositionClosed', 'PositionSettled', 'InsolvencyRecorded',
    'MarketPausedEvent', 'MarketUnpausedEvent',
    # Engine
    'Market', 'MarketTerms', 'MarketFactory',
]

__version__ = '1.0.0'
