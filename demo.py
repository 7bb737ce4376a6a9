#!/usr/bin/env python3
"""
demo.py - Walkthrough of a vAMM market from creation to settlement

This script follows one market through its whole life:
1. Factory creates a GOLD market with a 1,000,000 / 1,000,000 seed
2. Traders deposit USDC and an insurer backs trader profits
3. Alice goes long, Bob goes short; watch the virtual price move
4. Alice closes early; her size comes out of the reserves first
5. The market expires and Bob settles against the oracle
6. Everyone withdraws and the books are checked

=== THE VIRTUAL RESERVE MODEL ===

    price = virtual_short / virtual_long

    long  open:  size = collateral / price,  virtual_short += size
    short open:  size = collateral / price,  virtual_long  += size
    close:       size taken back out, pnl at the price left behind
    settle:      pnl at the oracle price, reserves untouched

    payout = clamp(collateral + pnl, 0, collateral + surplus)

Run with: python demo.py [--verbose]
"""

import sys
from datetime import datetime
from decimal import Decimal

from vamm import (
    Ledger, LedgerToken, MarketFactory, StaticPriceOracle, cash,
    InsufficientBalance, SettlementNotReady, TradingClosed,
)


START = datetime(2025, 1, 1)
EXPIRY = datetime(2025, 6, 1)


def banner(title: str) -> None:
    print("\n" + "=" * 60)
    print(f"  {title}")
    print("=" * 60)


def print_market(market, traders) -> None:
    print(f"\n  virtual_long  = {market.virtual_long:,.6f}")
    print(f"  virtual_short = {market.virtual_short:,.6f}")
    print(f"  price         = {market.get_price():.8f}")
    print(f"  custody       = {market.custody:,.6f}   surplus = {market.surplus():,.6f}")
    for trader in traders:
        position = market.get_position(trader)
        held = "flat" if position is None else (
            f"{position.direction.value} {position.magnitude:.6f} @ {position.entry_price:.8f}"
        )
        print(f"  {trader:<8} free={market.get_balance(trader):>12,.6f}   {held}")


def main(verbose: bool = False) -> None:
    banner("SETUP")
    chain = Ledger("chain", START, verbose=verbose)
    chain.register_unit(cash("USDC", "USD Coin", decimal_places=6))
    usdc = LedgerToken(chain, "USDC")
    oracle = StaticPriceOracle(Decimal("1"))
    factory = MarketFactory(chain, owner="dao", verbose=True)

    market_id = factory.create_market(oracle, usdc, initial_price=1, expiry=EXPIRY, symbol="GOLD")
    market = factory.get_market(market_id)
    market.verbose = True
    traders = ["alice", "bob"]

    for who, amount in (("alice", 1000), ("bob", 1000), ("insurer", 100)):
        usdc.mint(who, amount)
        usdc.approve(who, market.address, amount)
    market.deposit_collateral("alice", 1000)
    market.deposit_collateral("bob", 1000)
    market.fund_insurance("insurer", 100)
    print_market(market, traders)

    # =========================================================================
    # TRADING
    # =========================================================================
    banner("TRADING")
    print("""
  Alice locks 500 long at price 1:
    size = 500 / 1 = 500
    virtual_short = 1,000,000 + 500 = 1,000,500
    price = 1,000,500 / 1,000,000 = 1.0005
""")
    print(f"  Impact preview: {market.get_price_impact(500, True):.6%}")
    market.open_position("alice", 500, is_long=True)

    print("""
  Bob locks 400 short at price 1.0005:
    size = 400 / 1.0005 = 399.80...
    virtual_long = 1,000,000 + 399.80... ; price falls back toward 1
""")
    market.open_position("bob", 400, is_long=False)
    print_market(market, traders)

    try:
        market.withdraw("alice", 600)
    except InsufficientBalance as e:
        print(f"\n  Locked collateral stays locked: {e}")

    # =========================================================================
    # EARLY CLOSE
    # =========================================================================
    banner("ALICE CLOSES")
    print("  Taking her 500 back out of virtual_short leaves bob's short in the\n"
          "  reserves, so she exits a little below her entry of 1.\n")
    print(f"  Unrealized pnl before close: {market.get_unrealized_pnl('alice'):+.6f}")
    result = market.close_position("alice")
    print(f"  Exit {result.exit_price:.8f}  pnl {result.pnl:+.6f}  payout {result.payout:,.6f}")
    print_market(market, traders)

    try:
        market.settle("bob")
    except SettlementNotReady as e:
        print(f"\n  Too early to settle: {e}")

    # =========================================================================
    # EXPIRY
    # =========================================================================
    banner("EXPIRY AND SETTLEMENT")
    chain.advance_time(EXPIRY)
    oracle.update_price(Decimal("0.95"))
    print(f"  Oracle reports {oracle.get_price()} at {chain.current_time}")

    try:
        market.open_position("alice", 10, is_long=True)
    except TradingClosed as e:
        print(f"  Trading is over: {e}")

    result = market.settle("bob")
    print(f"  Bob settles: pnl {result.pnl:+.6f}  payout {result.payout:,.6f}")
    print_market(market, traders)

    # =========================================================================
    # EXIT
    # =========================================================================
    banner("WITHDRAWALS")
    for trader in traders:
        market.withdraw(trader, market.get_balance(trader))
        print(f"  {trader:<8} wallet: {usdc.balance_of(trader):,.6f} USDC")

    check = chain.verify_double_entry()
    print(f"""
  Market still holds {market.custody:,.6f} USDC of insurance
  Token balance of market: {usdc.balance_of(market.address):,.6f}
  Outstanding USDC supply: {chain.outstanding_supply('USDC'):,.6f}
  Double entry valid: {check['valid']}
  Market events: {len(market.events)}; markets in factory: {factory.market_count}
""")


if __name__ == '__main__':
    main(verbose='--verbose' in sys.argv)
