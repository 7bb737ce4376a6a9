"""
token.py - Collateral token capability

Markets never touch ledger balances directly; they move collateral through
a CollateralToken. Any object with the protocol's shape can be used, which
is also how tests inject failing or re-entrant tokens.

Classes:
- CollateralToken: Protocol the engine consumes
- LedgerToken: Fungible token with allowances, backed by a Ledger unit

Transfer semantics follow the usual fungible-token rules:
    transfer(sender, dest, amount)                 sender moves its own funds
    transfer_from(spender, source, dest, amount)   spender moves source's funds
                                                   within an approved allowance
Both return False (never raise) when the ledger rejects the move.
open_account(account) claims an unused id so two holders never share one.
"""

from __future__ import annotations
from decimal import Decimal
from typing import Dict, Protocol, Tuple, runtime_checkable

from .core import (
    Move, ExecuteResult, SYSTEM_WALLET,
    InvalidParameter,
    to_decimal, to_positive_decimal,
)
from .ledger import Ledger


@runtime_checkable
class CollateralToken(Protocol):
    """
    Fungible asset used for deposits and payouts.

    Implementations must return a success flag from both transfer methods;
    the engine treats False as a failed interaction and aborts.
    """
    symbol: str

    @property
    def decimals(self) -> int:
        """Number of fractional digits an amount may carry."""
        ...

    def balance_of(self, account: str) -> Decimal:
        """Return the token balance held by account."""
        ...

    def transfer(self, sender: str, dest: str, amount: Decimal) -> bool:
        """Move sender's own tokens to dest."""
        ...

    def transfer_from(self, spender: str, source: str, dest: str, amount: Decimal) -> bool:
        """Move source's tokens to dest, spending spender's allowance."""
        ...

    def open_account(self, account: str) -> bool:
        """Claim a fresh account id; False if it is already known to the token."""
        ...


class LedgerToken:
    """
    Collateral token whose balances live in a Ledger unit.

    Accounts are registered with the ledger on first use, so any identity
    can receive tokens without a separate registration step.
    """

    def __init__(self, ledger: Ledger, symbol: str):
        """
        Bind a token to a unit already registered in the ledger.

        Args:
            ledger: Ledger holding the balances
            symbol: Unit symbol of the token
        """
        self.ledger = ledger
        self.symbol = symbol
        self._unit = ledger.get_unit(symbol)
        self._allowances: Dict[Tuple[str, str], Decimal] = {}
        self._transfer_count = 0

    @property
    def decimals(self) -> int:
        return self._unit.decimal_places

    def balance_of(self, account: str) -> Decimal:
        if not self.ledger.is_registered(account):
            return Decimal("0")
        return self.ledger.get_balance(account, self.symbol)

    def allowance(self, owner: str, spender: str) -> Decimal:
        return self._allowances.get((owner, spender), Decimal("0"))

    def open_account(self, account: str) -> bool:
        """
        Register a new account with the ledger.

        Returns False, without touching anything, if the id is already taken.
        """
        if self.ledger.is_registered(account):
            return False
        self.ledger.register_wallet(account)
        return True

    def approve(self, owner: str, spender: str, amount) -> None:
        """Set (not add to) the amount spender may move out of owner's account."""
        value = to_decimal(amount, "allowance")
        if value < 0:
            raise InvalidParameter(f"allowance must be non-negative, got {value}")
        self._allowances[(owner, spender)] = value

    def mint(self, account: str, amount) -> None:
        """
        Issue new tokens to an account out of the system wallet.

        Raises:
            InvalidParameter: If amount is not positive or too precise
        """
        value = self._checked_amount(amount)
        self._ensure_account(account)
        result = self.ledger.execute([
            Move(value, self.symbol, SYSTEM_WALLET, account, self._memo("mint"))
        ])
        if result != ExecuteResult.APPLIED:
            raise InvalidParameter(f"mint of {value} {self.symbol} to {account} rejected")

    def transfer(self, sender: str, dest: str, amount) -> bool:
        value = self._checked_amount(amount)
        if not self.ledger.is_registered(sender):
            return False
        return self._move(sender, dest, value, "transfer")

    def transfer_from(self, spender: str, source: str, dest: str, amount) -> bool:
        value = self._checked_amount(amount)
        allowed = self.allowance(source, spender)
        if allowed < value or not self.ledger.is_registered(source):
            return False
        if not self._move(source, dest, value, "transfer_from"):
            return False
        self._allowances[(source, spender)] = allowed - value
        return True

    def _move(self, source: str, dest: str, value: Decimal, kind: str) -> bool:
        if source == dest:
            return True
        self._ensure_account(dest)
        result = self.ledger.execute([
            Move(value, self.symbol, source, dest, self._memo(kind))
        ])
        return result == ExecuteResult.APPLIED

    def _checked_amount(self, amount) -> Decimal:
        value = to_positive_decimal(amount)
        if not self._unit.is_representable(value):
            raise InvalidParameter(
                f"{value} has more than {self.decimals} decimal places for {self.symbol}"
            )
        return value

    def _ensure_account(self, account: str) -> None:
        if not self.ledger.is_registered(account):
            self.ledger.register_wallet(account)

    def _memo(self, kind: str) -> str:
        self._transfer_count += 1
        return f"{self.symbol}:{kind}:{self._transfer_count}"

    def __repr__(self):
        return f"LedgerToken({self.symbol}, {self.decimals}dp, ledger={self.ledger.name})"
