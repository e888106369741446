"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the ledger and controller.

The tests are organized by invariant:
1. conservation.py - Issuance equals the sum of balances; transfers conserve
2. atomicity.py - A tick applies both legs or neither
3. idempotency.py - Duplicate adjustments are applied once
4. locks.py - Effective lock is the maximum, extend_lock is monotonic
5. slash.py - Forced deduction saturates and never fails
6. control.py - Zero point and round-trip behavior of the controller

These tests use hypothesis for property-based testing.
"""
