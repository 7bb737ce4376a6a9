"""
ledger.py - Double-Entry Token Ledger

The Ledger is the host the vAMM engine runs on. It holds collateral-token
balances for every account (traders, market custody, the system wallet)
and owns the logical clock that markets compare against their expiry.

Key responsibilities:
    - Implements the Clock protocol (current_time, advance_time)
    - Executes batches of moves atomically (all moves apply or none do)
    - Maintains wallet balances and unit definitions
    - Records every applied batch in an append-only transaction log
"""

from __future__ import annotations
from collections import defaultdict
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

from .core import (
    Move, Transaction, Unit, ExecuteResult,
    SYSTEM_WALLET,
    LedgerError, UnitNotRegistered, WalletNotRegistered,
)


class Ledger:
    """
    Double-entry ledger with full validation and an audit trail.

    Design Principles:
        - Always validates: every batch is checked against registration and
          balance constraints before anything is applied.
        - Always logs: every applied batch lands in transaction_log.

    The system wallet is registered automatically and is exempt from
    balance validation; issuing tokens is a move out of it.

    Example:
        ledger = Ledger("chain", datetime(2025, 1, 1))
        ledger.register_unit(cash("USDC", "USD Coin"))
        ledger.register_wallet("alice")
        ledger.execute([Move(Decimal("1000"), "USDC", SYSTEM_WALLET, "alice", "mint")])
    """

    def __init__(
        self,
        name: str,
        initial_time: Optional[datetime] = None,
        verbose: bool = True,
        test_mode: bool = False
    ):
        """
        Create a ledger.

        Args:
            name: Ledger identifier
            initial_time: Starting time for the ledger (default: 1970-01-01)
            verbose: Print rejected batches and registrations (default: True)
            test_mode: Allow set_balance() calls (default: False)
        """
        self.name = name
        self.balances: Dict[str, Dict[str, Decimal]] = {}
        self.units: Dict[str, Unit] = {}
        self.registered_wallets: Set[str] = set()
        self.transaction_log: List[Transaction] = []
        self._current_time: datetime = initial_time or datetime(1970, 1, 1)
        self.verbose = verbose
        self._test_mode = test_mode
        self._next_sequence: int = 0

        self.registered_wallets.add(SYSTEM_WALLET)
        self.balances[SYSTEM_WALLET] = defaultdict(lambda: Decimal("0"))

    # ========================================================================
    # READ-ONLY ACCESS
    # ========================================================================

    @property
    def current_time(self) -> datetime:
        """Current logical time of the ledger."""
        return self._current_time

    def get_balance(self, wallet_id: str, unit_symbol: str) -> Decimal:
        """
        Get the balance of a specific unit in a wallet.

        Raises:
            WalletNotRegistered: If wallet is not registered
            UnitNotRegistered: If unit is not registered
        """
        if wallet_id not in self.registered_wallets:
            raise WalletNotRegistered(f"Wallet {wallet_id} not registered")
        if unit_symbol not in self.units:
            raise UnitNotRegistered(f"Unit {unit_symbol} not registered")
        return self.balances[wallet_id].get(unit_symbol, Decimal("0"))

    def get_unit(self, symbol: str) -> Unit:
        """Return the Unit object for a given symbol."""
        if symbol not in self.units:
            raise UnitNotRegistered(f"Unit {symbol} not registered")
        return self.units[symbol]

    def is_registered(self, wallet_id: str) -> bool:
        """Check if a wallet is registered."""
        return wallet_id in self.registered_wallets

    def list_wallets(self) -> Set[str]:
        """List all registered wallet IDs."""
        return self.registered_wallets.copy()

    def total_supply(self, unit_symbol: str) -> Decimal:
        """
        Sum a unit's balances across all wallets, system wallet included.

        Under double-entry this is always zero: issuance debits the system
        wallet by exactly what it credits elsewhere.
        """
        if unit_symbol not in self.units:
            raise UnitNotRegistered(f"Unit {unit_symbol} not registered")
        return sum(
            (self.balances[w].get(unit_symbol, Decimal("0")) for w in sorted(self.registered_wallets)),
            Decimal("0"),
        )

    def outstanding_supply(self, unit_symbol: str) -> Decimal:
        """Amount of a unit issued out of the system wallet and not redeemed."""
        return -self.get_balance(SYSTEM_WALLET, unit_symbol)

    def verify_double_entry(self, tolerance: Decimal = Decimal("0")) -> Dict[str, Any]:
        """
        Verify that every unit's balances sum to zero.

        Returns:
            Dict with 'valid' (bool), 'supplies' (unit -> sum) and
            'discrepancies' (list of units whose sum drifted).
        """
        supplies = {symbol: self.total_supply(symbol) for symbol in self.units}
        discrepancies = [
            {'unit': symbol, 'actual': total}
            for symbol, total in supplies.items()
            if abs(total) > tolerance
        ]
        return {
            'valid': not discrepancies,
            'supplies': supplies,
            'discrepancies': discrepancies,
        }

    # ========================================================================
    # TIME MANAGEMENT
    # ========================================================================

    def advance_time(self, new_time: datetime) -> None:
        """
        Advance the ledger's logical clock.

        Raises:
            ValueError: If new_time is before the current time
        """
        if new_time < self._current_time:
            raise ValueError(
                f"Cannot move time backwards: {new_time} < {self._current_time}"
            )
        self._current_time = new_time

    # ========================================================================
    # REGISTRATION (Mutating)
    # ========================================================================

    def register_wallet(self, wallet_id: str) -> str:
        """
        Register a new wallet.

        Raises:
            ValueError: If the wallet is already registered or the id is blank
        """
        if not wallet_id or not wallet_id.strip():
            raise ValueError("wallet_id cannot be empty")
        if wallet_id in self.registered_wallets:
            raise ValueError(f"Wallet {wallet_id} already registered")
        self.registered_wallets.add(wallet_id)
        self.balances[wallet_id] = defaultdict(lambda: Decimal("0"))
        return wallet_id

    def register_unit(self, unit: Unit) -> None:
        """
        Register a new unit.

        Raises:
            ValueError: If unit symbol is already registered
        """
        if unit.symbol in self.units:
            raise ValueError(f"Unit {unit.symbol} already registered")
        self.units[unit.symbol] = unit
        if self.verbose:
            print(f"📝 Registered: {unit.symbol} ({unit.name}) [{unit.unit_type}, {unit.decimal_places}dp]")

    def set_balance(self, wallet_id: str, unit_symbol: str, quantity: Decimal) -> None:
        """
        Overwrite a wallet's balance directly.

        WARNING: Bypasses double-entry accounting; only available in test mode.

        Raises:
            LedgerError: If called when test_mode is False
        """
        if not self._test_mode:
            raise LedgerError(
                "set_balance() is disabled in production mode. "
                "Use execute() to modify balances. "
                "Set test_mode=True when creating Ledger for testing."
            )
        if wallet_id not in self.registered_wallets:
            raise WalletNotRegistered(f"Wallet {wallet_id} not registered")
        if unit_symbol not in self.units:
            raise UnitNotRegistered(f"Unit {unit_symbol} not registered")
        if not isinstance(quantity, Decimal):
            quantity = Decimal(str(quantity))
        self.balances[wallet_id][unit_symbol] = quantity

    # ========================================================================
    # EXECUTION (Mutating)
    # ========================================================================

    def execute(self, moves: Sequence[Move]) -> ExecuteResult:
        """
        Apply a batch of moves atomically.

        Either every move is applied or none is. An empty batch is a no-op
        that reports APPLIED.

        Returns:
            ExecuteResult.APPLIED if successful
            ExecuteResult.REJECTED if validation failed
        """
        if not moves:
            return ExecuteResult.APPLIED

        valid, reason = self._validate(moves)
        if not valid:
            if self.verbose:
                print(f"✗ REJECTED: {reason}")
            return ExecuteResult.REJECTED

        sequence = self._next_sequence
        self._next_sequence += 1
        tx = Transaction(
            moves=tuple(moves),
            sequence_number=sequence,
            execution_time=self._current_time,
            exec_id=f"exec:{self.name}:{sequence:012d}",
        )
        self._apply(tx.moves)
        self.transaction_log.append(tx)
        return ExecuteResult.APPLIED

    def _validate(self, moves: Sequence[Move]) -> Tuple[bool, str]:
        """
        Validate a batch against registration and balance constraints.

        Net deltas are accumulated per (wallet, unit) first, so a batch that
        passes value through an empty wallet is judged by its net effect.
        """
        net: Dict[Tuple[str, str], Decimal] = {}
        for move in moves:
            if move.unit_symbol not in self.units:
                return False, f"unit not registered: {move.unit_symbol}"
            if move.source not in self.registered_wallets:
                return False, f"wallet not registered: {move.source}"
            if move.dest not in self.registered_wallets:
                return False, f"wallet not registered: {move.dest}"
            unit = self.units[move.unit_symbol]
            qty = unit.round(move.quantity)
            if qty <= 0:
                return False, f"{move.unit_symbol}: {move.quantity} rounds to zero"
            key_src = (move.source, move.unit_symbol)
            key_dst = (move.dest, move.unit_symbol)
            net[key_src] = net.get(key_src, Decimal("0")) - qty
            net[key_dst] = net.get(key_dst, Decimal("0")) + qty

        for (wallet, unit_sym), delta in net.items():
            if wallet == SYSTEM_WALLET:
                continue
            proposed = self.balances[wallet][unit_sym] + delta
            unit = self.units[unit_sym]
            if proposed < unit.min_balance:
                return False, f"{wallet} {unit_sym}: {proposed} < min {unit.min_balance}"

        return True, ""

    def _apply(self, moves: Sequence[Move]) -> None:
        """Apply validated moves to wallet balances."""
        for move in moves:
            unit = self.units[move.unit_symbol]
            qty = unit.round(move.quantity)
            self.balances[move.source][move.unit_symbol] -= qty
            self.balances[move.dest][move.unit_symbol] += qty
