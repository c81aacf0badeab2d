"""
Test Fixtures and Utilities

Synthetic documents and helpers shared across the test suite.

All tax IDs, names and amounts are synthetic; the tax IDs carry valid check
digits so they behave like real ones.
"""
