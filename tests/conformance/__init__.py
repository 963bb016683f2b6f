"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the custodial bank.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. test_conservation.py - Custody equals what accounts are owed
2. test_atomicity.py - All-or-nothing operations, harmless rejections
3. test_lifetime_values.py - Monotonic valuations, registration, cap, reward
4. test_determinism.py - Reproducible behavior

These tests use hypothesis for property-based testing over random
operation sequences (see operations.py).
"""
