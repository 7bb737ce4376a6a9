"""
Core types and helpers for the vAMM engine.

This module provides the foundational pieces shared by every other module:
1. Decimal context configuration and numeric constants
2. Exceptions: VammError and the validation/state/solvency taxonomy
3. Protocols: Clock for reading logical time
4. Immutable ledger records: Move, Transaction, Unit
5. Conversion helpers that turn user input into validated Decimals

Nothing in this module mutates market or ledger state.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation, ROUND_DOWN, ROUND_HALF_EVEN, getcontext
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional, Protocol, Tuple, runtime_checkable


# ============================================================================
# DECIMAL CONTEXT CONFIGURATION
# ============================================================================
#
# Prices carry 18 fractional digits on top of reserves in the millions, so
# intermediate products need well over 28 significant digits.
#
# PRECONDITION: No other code should modify the global Decimal context.
#
_VAMM_DECIMAL_CONTEXT = getcontext()
_VAMM_DECIMAL_CONTEXT.prec = 50
_VAMM_DECIMAL_CONTEXT.rounding = ROUND_HALF_EVEN


# ============================================================================
# CONSTANTS
# ============================================================================

# Reserved ledger wallet for token issuance and redemption.
# The system wallet is exempt from balance validation.
SYSTEM_WALLET = "system"

# Symmetric seed for both virtual reserves; the opening price is 1.0.
SEED_RESERVE = Decimal("1000000")

# Fixed-point precision of prices and notional sizes.
PRICE_DECIMAL_PLACES = 18
SIZE_DECIMAL_PLACES = 18

# Declared trading fee. Not charged anywhere; see DESIGN.md.
FEE_RATE = Decimal("0.003")

# Default precision for collateral tokens (USDC-style).
DEFAULT_TOKEN_DECIMALS = 6

UNIT_TYPE_CASH = "CASH"


# ============================================================================
# EXCEPTIONS
# ============================================================================

class VammError(Exception):
    """Base exception for all vAMM errors."""
    pass


class ValidationError(VammError, ValueError):
    """Raised when an input is rejected before any state is touched."""
    pass


class InvalidParameter(ValidationError):
    """Raised for zero/negative amounts, bad capabilities or a past expiry."""
    pass


class StateError(VammError):
    """Raised when the current market state does not allow the operation."""
    pass


class InsufficientBalance(StateError):
    """Raised when a trader's free balance cannot cover the requested amount."""
    pass


class NoPosition(StateError):
    """Raised when closing or settling without an open position."""
    pass


class PositionDirectionMismatch(StateError):
    """Raised when opening against the direction of an existing position."""
    pass


class TradingClosed(StateError):
    """Raised when trading is attempted at or after expiry."""
    pass


class SettlementNotReady(StateError):
    """Raised when settlement is attempted before expiry."""
    pass


class MarketPaused(StateError):
    """Raised when a trading operation hits a paused market."""
    pass


class Unauthorized(StateError):
    """Raised when a caller lacks the owner capability."""
    pass


class SlippageExceeded(StateError):
    """Raised when the execution price falls outside the caller's bounds."""
    pass


class MarketNotFound(StateError, KeyError):
    """Raised when a factory lookup names an unknown market."""
    pass


class SolvencyError(VammError):
    """Base class for payouts the market cannot cover."""
    pass


class InsolvencyError(SolvencyError):
    """Raised in strict mode when a payout exceeds the funds the market holds."""
    pass


class ReentrancyError(VammError):
    """Raised when a guarded operation is entered while another is running."""
    pass


class TransferFailed(VammError):
    """Raised when the collateral token reports a failed transfer."""
    pass


class OracleError(VammError):
    """Raised when the oracle returns no price or an unusable one."""
    pass


class InvariantViolation(VammError):
    """Raised when an internal invariant is broken. Always fatal."""
    pass


class LedgerError(VammError):
    """Base exception for token-ledger errors."""
    pass


class UnitNotRegistered(LedgerError):
    """Raised when operating on a unit the ledger does not know."""
    pass


class WalletNotRegistered(LedgerError):
    """Raised when operating on a wallet the ledger does not know."""
    pass


# ============================================================================
# PROTOCOLS
# ============================================================================

@runtime_checkable
class Clock(Protocol):
    """
    Read-only source of logical time.

    Markets compare current_time against their expiry; nothing else about
    the host is consulted. The Ledger implements this protocol.
    """

    @property
    def current_time(self) -> datetime:
        """Return the current logical time."""
        ...


# ============================================================================
# ENUMS
# ============================================================================

class ExecuteResult(Enum):
    """
    Outcome of a ledger execution attempt.

    APPLIED: All moves were validated and applied.
    REJECTED: Validation failed; no move was applied.
    """
    APPLIED = "applied"
    REJECTED = "rejected"


# ============================================================================
# NUMERIC HELPERS
# ============================================================================

def to_decimal(value: Any, name: str = "value") -> Decimal:
    """
    Convert user input to a finite Decimal.

    Floats go through str() so that 0.1 becomes Decimal("0.1") rather than
    its binary expansion. Booleans are rejected even though they are ints.

    Raises:
        InvalidParameter: If the value is not numeric, NaN or infinite.
    """
    if isinstance(value, bool) or value is None:
        raise InvalidParameter(f"{name} must be numeric, got {value!r}")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float, str)):
        try:
            result = Decimal(str(value))
        except InvalidOperation:
            raise InvalidParameter(f"{name} must be numeric, got {value!r}") from None
    else:
        raise InvalidParameter(f"{name} must be numeric, got {type(value).__name__}")
    if not result.is_finite():
        raise InvalidParameter(f"{name} must be finite, got {result}")
    return result


def to_positive_decimal(value: Any, name: str = "amount") -> Decimal:
    """Convert to Decimal and require a strictly positive result."""
    result = to_decimal(value, name)
    if result <= 0:
        raise InvalidParameter(f"{name} must be positive, got {result}")
    return result


def quantum(decimal_places: int) -> Decimal:
    """Return the quantization target for a number of decimal places."""
    return Decimal(10) ** -decimal_places


# ============================================================================
# LEDGER RECORDS
# ============================================================================

@dataclass(frozen=True, slots=True)
class Move:
    """
    A single transfer of value between two wallets.

    Attributes:
        quantity: The amount to transfer (finite, positive Decimal).
        unit_symbol: The symbol of the unit being transferred.
        source: The wallet ID from which value is debited.
        dest: The wallet ID to which value is credited.
        memo: Free-form reference for the audit trail.
    """
    quantity: Decimal
    unit_symbol: str
    source: str
    dest: str
    memo: str = ""

    def __post_init__(self):
        if not self.source or not self.source.strip():
            raise ValueError("Move source cannot be empty")
        if not self.dest or not self.dest.strip():
            raise ValueError("Move dest cannot be empty")
        if not self.unit_symbol or not self.unit_symbol.strip():
            raise ValueError("Move unit_symbol cannot be empty")
        if not isinstance(self.quantity, Decimal):
            raise ValueError(f"Move quantity must be Decimal, got {type(self.quantity)}")
        if not self.quantity.is_finite():
            raise ValueError(f"Move quantity must be finite, got {self.quantity}")
        if self.quantity <= 0:
            raise ValueError(f"Move quantity must be positive, got {self.quantity}")
        if self.source == self.dest:
            raise ValueError("Source and dest must be different")

    def __repr__(self) -> str:
        return f"Move({self.quantity} {self.unit_symbol}: {self.source}→{self.dest})"


@dataclass(frozen=True, slots=True)
class Transaction:
    """
    An executed, immutable record of ledger moves.

    Attributes:
        moves: The moves applied together
        sequence_number: Monotonic sequence within the ledger
        execution_time: Ledger time at which the moves were applied
        exec_id: Unique execution identifier (ledger + sequence)
        wallets: Wallets touched by the moves (auto-populated)
    """
    moves: Tuple[Move, ...]
    sequence_number: int
    execution_time: datetime
    exec_id: str
    wallets: FrozenSet[str] = None

    def __post_init__(self):
        if not self.moves:
            raise ValueError("Transaction must have moves")
        if self.wallets is None:
            object.__setattr__(
                self, 'wallets',
                frozenset(w for m in self.moves for w in (m.source, m.dest))
            )

    def __repr__(self) -> str:
        return f"Transaction({self.exec_id}, {len(self.moves)} moves)"


@dataclass(frozen=True, slots=True)
class Unit:
    """
    Definition of a fungible unit held in the ledger.

    Attributes:
        symbol: Short identifier (e.g., "USDC").
        name: Human-readable name.
        unit_type: Category of the unit.
        decimal_places: Precision of balances; moves are rounded down to it.
        min_balance: Minimum allowed balance in any non-system wallet.
        metadata: Optional descriptive data.
    """
    symbol: str
    name: str
    unit_type: str = UNIT_TYPE_CASH
    decimal_places: int = DEFAULT_TOKEN_DECIMALS
    min_balance: Decimal = Decimal("0")
    metadata: Dict[str, Any] = field(default_factory=dict)

    def round(self, value: Decimal) -> Decimal:
        """Round down to this unit's precision so amounts are never inflated."""
        if not isinstance(value, Decimal):
            value = Decimal(str(value))
        return value.quantize(quantum(self.decimal_places), rounding=ROUND_DOWN)

    def is_representable(self, value: Decimal) -> bool:
        """True if value carries no digits finer than decimal_places."""
        return self.round(value) == value


def cash(symbol: str, name: str, decimal_places: int = DEFAULT_TOKEN_DECIMALS) -> Unit:
    """
    Create a cash-like collateral unit.

    Balances may not go negative; only the system wallet can hold a
    negative balance, which mirrors the outstanding issued supply.
    """
    if decimal_places < 0:
        raise ValueError(f"decimal_places must be non-negative, got {decimal_places}")
    return Unit(symbol=symbol, name=name, unit_type=UNIT_TYPE_CASH,
                decimal_places=decimal_places, min_balance=Decimal("0"))
