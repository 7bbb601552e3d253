"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the engine.

The tests are organized by invariant:
1. test_atomicity.py - Failed operations leave no trace
2. test_solvency_invariant.py - No committed operation leaves a debtor below the minimum health factor
3. test_conversion.py - Fixed-point conversions round down and stay monotonic

These tests use hypothesis for property-based testing.
"""
