"""
test_token.py - Unit tests for LedgerToken

Tests:
- Protocol conformance
- Minting, balances and precision checks
- transfer / transfer_from success flags and allowances
- open_account id claims
"""

import pytest
from decimal import Decimal

from vamm import CollateralToken, InvalidParameter, SYSTEM_WALLET


class TestProtocol:

    def test_ledger_token_is_collateral_token(self, usdc):
        assert isinstance(usdc, CollateralToken)
        assert usdc.decimals == 6
        assert usdc.symbol == "USDC"


class TestMint:

    def test_mint_credits_account(self, usdc, chain):
        usdc.mint("alice", 250)
        assert usdc.balance_of("alice") == Decimal("250")
        assert chain.outstanding_supply("USDC") == Decimal("250")

    def test_unknown_account_has_zero_balance(self, usdc):
        assert usdc.balance_of("nobody") == Decimal("0")

    @pytest.mark.parametrize("amount", [0, -5, "1.0000001"])
    def test_bad_amounts_rejected(self, usdc, amount):
        with pytest.raises(InvalidParameter):
            usdc.mint("alice", amount)


class TestTransfer:

    def test_transfer_moves_funds(self, usdc):
        usdc.mint("alice", 100)
        assert usdc.transfer("alice", "bob", 40) is True
        assert usdc.balance_of("alice") == Decimal("60")
        assert usdc.balance_of("bob") == Decimal("40")

    def test_transfer_over_balance_returns_false(self, usdc):
        usdc.mint("alice", 10)
        assert usdc.transfer("alice", "bob", 11) is False
        assert usdc.balance_of("alice") == Decimal("10")

    def test_unregistered_sender_returns_false(self, usdc):
        assert usdc.transfer("ghost", "bob", 1) is False

    def test_transfer_to_self_is_noop(self, usdc, chain):
        usdc.mint("alice", 10)
        before = len(chain.transaction_log)
        assert usdc.transfer("alice", "alice", 5) is True
        assert len(chain.transaction_log) == before


class TestAllowances:

    def test_transfer_from_spends_allowance(self, usdc):
        usdc.mint("alice", 100)
        usdc.approve("alice", "market", 60)
        assert usdc.transfer_from("market", "alice", "market", 50) is True
        assert usdc.allowance("alice", "market") == Decimal("10")
        assert usdc.balance_of("market") == Decimal("50")

    def test_transfer_from_without_allowance_fails(self, usdc):
        usdc.mint("alice", 100)
        assert usdc.transfer_from("market", "alice", "market", 1) is False
        assert usdc.balance_of("alice") == Decimal("100")

    def test_failed_transfer_keeps_allowance(self, usdc):
        usdc.mint("alice", 10)
        usdc.approve("alice", "market", 100)
        assert usdc.transfer_from("market", "alice", "market", 50) is False
        assert usdc.allowance("alice", "market") == Decimal("100")

    def test_approve_sets_rather_than_adds(self, usdc):
        usdc.approve("alice", "market", 10)
        usdc.approve("alice", "market", 3)
        assert usdc.allowance("alice", "market") == Decimal("3")

    def test_negative_allowance_rejected(self, usdc):
        with pytest.raises(InvalidParameter):
            usdc.approve("alice", "market", -1)

    def test_minting_is_a_system_wallet_move(self, usdc, chain):
        usdc.mint("alice", 1)
        move = chain.transaction_log[-1].moves[0]
        assert move.source == SYSTEM_WALLET
        assert move.memo == "USDC:mint:1"


class TestOpenAccount:

    def test_claims_fresh_id(self, usdc, chain):
        assert usdc.open_account("vamm:x:000000") is True
        assert chain.is_registered("vamm:x:000000")
        assert usdc.balance_of("vamm:x:000000") == Decimal("0")

    def test_taken_id_refused(self, usdc):
        usdc.mint("alice", 5)
        assert usdc.open_account("alice") is False
        assert usdc.open_account("alice") is False
        assert usdc.balance_of("alice") == Decimal("5")
