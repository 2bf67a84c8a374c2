"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the ticket ledger.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. conservation.py - Ticket and currency movement on purchase
2. non_negative.py - No reachable negative balance
3. reserve_bound.py - Reserve never exceeds its limit
4. atomicity.py - All-or-nothing operation semantics
5. owner_gating.py - Policy changes are owner-only
6. determinism.py - Reproducible behavior and replay

These tests use hypothesis for property-based testing.
"""
