"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the vAMM engine.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. reserves.py - Price formula and reserve direction
2. solvency.py - Custody covers liabilities; failed calls change nothing
3. settlement.py - Expiry gating and oracle settlement
4. registry.py - Factory registry is append-only and all-or-nothing

These tests use hypothesis for property-based testing.
"""
